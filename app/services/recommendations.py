"""Service that turns a brand brief into a scored shortlist of creators."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from app.core.orchestrator import SearchOrchestrator
from app.core.recommendation import rank
from app.core.types import MergedResult, ScoredRecommendation

ProgressCallback = Optional[Callable[[str, Dict[str, object]], None]]

CANDIDATE_POOL_SIZE = 20
RECOMMENDATION_LIMIT = 10
MIN_ENGAGEMENT_RATE = 1.5
DEFAULT_PLATFORM = "instagram"


def build_enhanced_query(
    brand_description: str,
    target_audience: Optional[str] = None,
    content_type: Optional[str] = None,
) -> str:
    parts = [f"Brand: {brand_description}"]
    if target_audience:
        parts.append(f"Target audience: {target_audience}")
    if content_type:
        parts.append(f"Content type: {content_type}")
    return " | ".join(parts)


class RecommendationService:
    """Search, enrich and score creators for a brand in clearly defined stages."""

    def __init__(self, orchestrator: SearchOrchestrator) -> None:
        self._orchestrator = orchestrator

    async def get_creator_recommendations(
        self,
        brand_description: str,
        *,
        budget: Optional[float] = None,
        target_audience: Optional[str] = None,
        platform: str = DEFAULT_PLATFORM,
        content_type: Optional[str] = None,
        region: Optional[str] = None,
        progress_cb: ProgressCallback = None,
    ) -> List[ScoredRecommendation]:
        """Return the top recommendations for a brand, best first."""

        def emit(stage: str, data: Dict[str, object]) -> None:
            if progress_cb:
                progress_cb(stage, data)

        if not brand_description or not brand_description.strip():
            raise ValueError("brand_description is required")

        query = build_enhanced_query(brand_description.strip(), target_audience, content_type)
        filters: Dict[str, Any] = {
            "min_engagement_rate": MIN_ENGAGEMENT_RATE,
            "platform": platform or DEFAULT_PLATFORM,
        }
        if budget is not None:
            filters["max_budget"] = budget
        if region:
            filters["location_country"] = region

        deadline = self._orchestrator.new_deadline()
        emit("search_started", {"query": query, "filters": filters})

        response = await self._orchestrator.vector_search.semantic_search(
            query, filters=filters, top_k=CANDIDATE_POOL_SIZE, deadline=deadline
        )
        emit("search_completed", {"count": response.total_matches})

        merged = [MergedResult.from_match(match, rank=index) for index, match in enumerate(response.results, start=1)]
        enrichment = await self._orchestrator.enrich_results(merged, CANDIDATE_POOL_SIZE, deadline=deadline)
        emit(
            "enrichment_completed",
            {"count": len(enrichment.resolved), "unresolved_ids": enrichment.unresolved_ids},
        )

        recommendations = rank(enrichment.resolved, limit=RECOMMENDATION_LIMIT)
        emit("scoring_completed", {"count": len(recommendations)})
        return recommendations


__all__ = ["RecommendationService", "build_enhanced_query"]
