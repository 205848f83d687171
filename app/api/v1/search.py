"""AI search API endpoints."""
import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.config import settings
from app.core.errors import CreatorNotFoundError, SearchTimeoutError, VectorSearchError
from app.core.orchestrator import SearchOrchestrator
from app.core.types import MergedResult
from app.dependencies import (
    get_optional_orchestrator,
    get_orchestrator,
    get_recommendation_service,
)
from app.models.search import (
    AISearchRequest,
    AISearchResponse,
    AdvancedSearchRequest,
    AdvancedSearchResponse,
    RecommendationRequest,
    RecommendationResponse,
    SimilarCreatorsResponse,
    SuggestionResponse,
)

router = APIRouter()

logger = logging.getLogger("search_api")
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("[SearchAPI] %(asctime)s %(levelname)s: %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)
logger.setLevel(logging.INFO)


def _parse_filters(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Invalid filters JSON: %s", raw)
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _preview(query: str, length: int = 100) -> str:
    return query[:length] + ("..." if len(query) > length else "")


@router.post("/ai", response_model=AISearchResponse)
async def ai_search(request: AISearchRequest, orchestrator: SearchOrchestrator = Depends(get_orchestrator)):
    max_results = min(request.max_results, settings.MAX_RESULTS_CAP)
    logger.info(
        "AI search request | hybrid=%s limit=%s query=%s",
        request.use_hybrid_search,
        max_results,
        _preview(request.query),
    )

    outcome = await orchestrator.search(
        request.query,
        filters=request.filters,
        max_results=max_results,
        use_hybrid_search=request.use_hybrid_search,
        include_metadata=request.include_metadata,
    )

    payload = [result.to_dict() for result in outcome.results]
    return AISearchResponse(
        success=outcome.success,
        results=payload,
        count=len(payload),
        query=request.query,
        metadata=outcome.metadata or None,
        warnings=outcome.warnings,
        suggestions=outcome.suggestions,
        errors=outcome.errors,
        fallback_suggestion=outcome.fallback_suggestion,
    )


@router.get("/suggestions", response_model=SuggestionResponse)
async def search_suggestions(
    q: str = Query(..., min_length=1, description="Partial search query"),
    filters: Optional[str] = Query(default=None, description="JSON-encoded filter map"),
    limit: int = Query(default=8, ge=1, le=20),
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
):
    logger.info("Suggestions request | limit=%s query=%s", limit, q)
    suggestions = await orchestrator.get_search_suggestions(
        q, max_suggestions=limit, filters=_parse_filters(filters)
    )
    return SuggestionResponse(
        success=True,
        query=q,
        suggestions=suggestions["suggestions"],
        sources=suggestions["sources"],
    )


@router.post("/advanced", response_model=AdvancedSearchResponse)
async def advanced_search(
    request: AdvancedSearchRequest, orchestrator: SearchOrchestrator = Depends(get_orchestrator)
):
    criteria = request.model_dump(exclude_none=True)
    criteria["max_results"] = min(request.max_results, settings.MAX_RESULTS_CAP)
    logger.info("Advanced search request | criteria=%s", sorted(criteria))

    outcome = await orchestrator.advanced_search(criteria)
    payload = [result.to_dict() for result in outcome.results]
    return AdvancedSearchResponse(
        success=outcome.success,
        results=payload,
        count=len(payload),
        metadata=outcome.metadata or None,
        errors=outcome.errors,
    )


@router.get("/similar/{creator_id}", response_model=SimilarCreatorsResponse)
async def similar_creators(
    creator_id: str,
    limit: int = Query(default=10, ge=1, le=50),
    filters: Optional[str] = Query(default=None, description="JSON-encoded filter map"),
    include_original: bool = Query(default=False),
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
):
    logger.info("Similar search | creator_id=%s limit=%s", creator_id, limit)
    deadline = orchestrator.new_deadline()

    try:
        response = await orchestrator.vector_search.find_similar_creators(
            creator_id,
            top_k=limit,
            filters=_parse_filters(filters),
            include_original=include_original,
            deadline=deadline,
        )
        merged: List[MergedResult] = [
            MergedResult.from_match(match, rank=index) for index, match in enumerate(response.results, start=1)
        ]
        enrichment = await orchestrator.enrich_results(merged, limit, deadline=deadline)
    except CreatorNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except SearchTimeoutError as exc:
        raise HTTPException(status_code=504, detail=str(exc)) from exc
    except VectorSearchError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except Exception as exc:  # pylint: disable=broad-except
        logger.exception("Similar search failed: %s", exc)
        raise HTTPException(status_code=500, detail="Similar search failed") from exc

    payload = [result.to_dict() for result in enrichment.resolved]
    return SimilarCreatorsResponse(
        success=True,
        reference_creator_id=creator_id,
        results=payload,
        count=len(payload),
        filters_applied=response.filters_applied,
    )


@router.post("/recommendations", response_model=RecommendationResponse)
async def creator_recommendations(
    request: RecommendationRequest, service=Depends(get_recommendation_service)
):
    logger.info(
        "Recommendation request | platform=%s budget=%s brand=%s",
        request.platform,
        request.budget,
        _preview(request.brand_description),
    )

    stages: List[Dict[str, Any]] = []

    def progress(stage: str, data: Dict[str, Any]) -> None:
        stages.append({"stage": stage, "data": data})

    try:
        recommendations = await service.get_creator_recommendations(
            request.brand_description,
            budget=request.budget,
            target_audience=request.target_audience,
            platform=request.platform,
            content_type=request.content_type,
            region=request.region,
            progress_cb=progress,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except SearchTimeoutError as exc:
        raise HTTPException(status_code=504, detail=str(exc)) from exc
    except Exception as exc:  # pylint: disable=broad-except
        logger.exception("Recommendations failed: %s", exc)
        raise HTTPException(status_code=500, detail="Recommendations failed") from exc

    payload = [item.to_dict() for item in recommendations]
    return RecommendationResponse(success=True, results=payload, count=len(payload), stages=stages)


@router.get("/health")
async def search_health(orchestrator=Depends(get_optional_orchestrator)):
    if orchestrator is None:
        return {"status": "unhealthy", "error": "Search orchestrator not initialized"}
    return await orchestrator.health_check()
