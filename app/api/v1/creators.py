"""Creator-related API endpoints"""
import logging

from fastapi import APIRouter, HTTPException, Depends

from app.core.creator_store import CreatorStore
from app.core.errors import CreatorStoreError
from app.dependencies import get_creator_store
from app.models.search import CreatorDetailResponse

router = APIRouter()

logger = logging.getLogger("search_api")


@router.get("/{creator_id}", response_model=CreatorDetailResponse)
async def get_creator_detail(
    creator_id: str,
    store: CreatorStore = Depends(get_creator_store)
):
    """Full creator record with per-platform metrics, audience and pricing."""
    sanitized = creator_id.strip()
    if not sanitized:
        raise HTTPException(status_code=400, detail="Creator id is required")

    try:
        creator = await store.get_by_id(sanitized)
    except CreatorStoreError as exc:
        logger.exception("Creator lookup failed: %s", exc)
        raise HTTPException(status_code=500, detail="Creator lookup failed") from exc

    if not creator:
        raise HTTPException(status_code=404, detail=f"Creator '{sanitized}' not found")
    return {"success": True, "result": creator}
