"""Vector index administration endpoints"""
import logging

from fastapi import APIRouter, Depends, HTTPException

from app.core.errors import SearchServiceError
from app.dependencies import get_creator_store, get_indexer
from app.models.search import EmbedCreatorsRequest, EmbedCreatorsResponse

router = APIRouter()

logger = logging.getLogger("search_api")


@router.get("/index/stats")
async def index_stats(indexer=Depends(get_indexer)):
    try:
        stats = await indexer.index_stats()
    except SearchServiceError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return {"success": True, "stats": stats}


@router.post("/index/embed", response_model=EmbedCreatorsResponse)
async def embed_creators(
    request: EmbedCreatorsRequest,
    indexer=Depends(get_indexer),
    store=Depends(get_creator_store),
):
    logger.info("Embed request | ids=%s limit=%s", request.creator_ids, request.limit)

    try:
        if request.creator_ids:
            creators = []
            for creator_id in request.creator_ids:
                creator = await store.get_by_id(creator_id)
                if creator is None:
                    raise HTTPException(status_code=404, detail=f"Creator '{creator_id}' not found")
                creators.append(creator)
            results = await indexer.embed_creators(creators)
        else:
            results = await indexer.rebuild_from_store(store, limit=request.limit)
    except HTTPException:
        raise
    except Exception as exc:  # pylint: disable=broad-except
        logger.exception("Embedding failed: %s", exc)
        raise HTTPException(status_code=500, detail="Embedding failed") from exc

    return EmbedCreatorsResponse(
        success=results["failed"] == 0,
        successful=results["successful"],
        failed=results["failed"],
        errors=results["errors"],
    )


@router.delete("/index/{creator_id}")
async def delete_creator_embedding(creator_id: str, indexer=Depends(get_indexer)):
    try:
        await indexer.delete_creator(creator_id)
    except Exception as exc:  # pylint: disable=broad-except
        logger.exception("Embedding delete failed: %s", exc)
        raise HTTPException(status_code=500, detail="Embedding delete failed") from exc
    return {"success": True, "creator_id": creator_id}
