"""
Search orchestration: validate, analyze, dispatch a strategy, merge, enrich.

``SearchOrchestrator.search`` never raises; every failure comes back as a
``SearchOutcome`` with ``success=False`` and a suggestion for the caller.
"""
from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from app.config import settings
from app.core.creator_store import CreatorStore, extract_metadata_from_creator
from app.core.deadline import Deadline
from app.core.errors import SearchTimeoutError
from app.core.query_intelligence import QueryIntelligenceService
from app.core.types import (
    EnrichedResult,
    EnrichmentOutcome,
    MergedResult,
    QueryAnalysis,
    SearchIntent,
    SearchOutcome,
    StrategyResult,
    VectorSearchResponse,
)
from app.core.vector_index import clean_filters
from app.core.vector_search import VectorSearchService

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 20
VECTOR_SHARE = 0.7
RELATIONAL_SHARE = 0.3
HYBRID_DEFAULT_RANK = 0.8
TRADITIONAL_DEFAULT_RANK = 0.7
SIMILAR_NAME_LOOKUP_LIMIT = 5
MAX_COMBINED_SUGGESTIONS = 8
FALLBACK_SUGGESTION = "Try simplifying your search query or use basic filters"
ADVANCED_WEIGHTS = {"content": 1.0, "audience": 1.2, "brands": 0.8}
HEALTH_TEST_QUERY = "tech YouTubers with high engagement"


def _from_vector_response(response: VectorSearchResponse) -> StrategyResult:
    results = [MergedResult.from_match(match, rank=index + 1) for index, match in enumerate(response.results)]
    return StrategyResult(results=results, total_matches=response.total_matches, search_type=response.search_type)


def merge_search_results(
    vector_response: Optional[VectorSearchResponse],
    relational_rows: Optional[List[Dict[str, Any]]],
    max_results: int,
    *,
    vector_boost: Optional[float] = None,
) -> StrategyResult:
    """Fuse vector matches and keyword rows into one list keyed by creator id.

    Vector scores are boosted first. A creator present in both sources gets
    the mean of the boosted vector score and its keyword rank (0.8 when the
    row carries none) and is tagged ``hybrid``; keyword-only creators keep
    their rank (0.7 when absent). The result is sorted by combined score and
    truncated to ``max_results``.
    """
    boost = settings.VECTOR_SCORE_BOOST if vector_boost is None else vector_boost
    merged: Dict[str, MergedResult] = {}

    for index, match in enumerate(vector_response.results if vector_response else []):
        if match.creator_id in merged:
            continue
        merged[match.creator_id] = MergedResult(
            creator_id=match.creator_id,
            combined_score=match.similarity_score * boost,
            source="vector",
            similarity_score=match.similarity_score,
            search_rank=index + 1,
            metadata=match.metadata,
        )

    seen_relational = set()
    for index, row in enumerate(relational_rows or []):
        if row.get("id") is None:
            continue
        creator_id = str(row["id"])
        if creator_id in seen_relational:
            continue
        seen_relational.add(creator_id)

        keyword_rank = row.get("search_rank")
        existing = merged.get(creator_id)
        if existing is not None:
            existing.combined_score = (existing.combined_score + (keyword_rank or HYBRID_DEFAULT_RANK)) / 2
            existing.source = "hybrid"
            existing.search_matches += 1
        else:
            merged[creator_id] = MergedResult(
                creator_id=creator_id,
                combined_score=keyword_rank or TRADITIONAL_DEFAULT_RANK,
                source="traditional",
                search_rank=index + 1,
                metadata=extract_metadata_from_creator(row),
            )

    ranked = sorted(merged.values(), key=lambda item: item.combined_score, reverse=True)
    return StrategyResult(results=ranked[:max_results], total_matches=len(merged), search_type="hybrid")


def applied_filters(filters: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [{"filter": key, "value": value} for key, value in filters.items() if value is not None]


class SearchOrchestrator:
    """Run natural-language creator searches end to end."""

    def __init__(
        self,
        query_intelligence: QueryIntelligenceService,
        vector_search: VectorSearchService,
        creator_store: CreatorStore,
        *,
        timeout_seconds: Optional[float] = None,
        niche_confidence_threshold: Optional[float] = None,
        vector_boost: Optional[float] = None,
    ) -> None:
        self.query_intelligence = query_intelligence
        self.vector_search = vector_search
        self.creator_store = creator_store
        self.timeout_seconds = settings.SEARCH_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds
        self.niche_confidence_threshold = (
            settings.NICHE_CONFIDENCE_THRESHOLD if niche_confidence_threshold is None else niche_confidence_threshold
        )
        self.vector_boost = settings.VECTOR_SCORE_BOOST if vector_boost is None else vector_boost
        self._strategies: Dict[SearchIntent, Callable[..., Awaitable[StrategyResult]]] = {
            SearchIntent.FIND_CREATORS: self.execute_general_search,
            SearchIntent.FIND_SIMILAR: self.execute_similarity_search,
            SearchIntent.AUDIENCE_MATCH: self.execute_audience_search,
            SearchIntent.CONTENT_MATCH: self.execute_content_search,
            SearchIntent.BRAND_MATCH: self.execute_brand_search,
        }

    def new_deadline(self) -> Deadline:
        return Deadline(self.timeout_seconds) if self.timeout_seconds else Deadline.unbounded()

    def strategy_filters(self, analysis: QueryAnalysis, overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Analysis filters (niche gated on confidence) overlaid with caller overrides."""
        extracted = dict(analysis.filters)
        if analysis.confidence_score < self.niche_confidence_threshold:
            extracted.pop("niche", None)
        extracted.update(overrides or {})
        return clean_filters(extracted)

    # Entry point

    async def search(
        self,
        query: str,
        *,
        filters: Optional[Dict[str, Any]] = None,
        max_results: Optional[int] = DEFAULT_MAX_RESULTS,
        use_hybrid_search: bool = True,
        include_metadata: bool = True,
    ) -> SearchOutcome:
        started = time.perf_counter()

        if not isinstance(query, str):
            return SearchOutcome(
                success=False,
                errors=["Query is required and must be a non-empty string"],
                suggestions=["Please provide a valid search query"],
            )

        validation = self.query_intelligence.validate_query(query)
        if not validation.is_valid:
            return SearchOutcome(
                success=False,
                errors=validation.errors,
                warnings=validation.warnings,
                suggestions=validation.suggestions,
            )

        if max_results is None:
            max_results = DEFAULT_MAX_RESULTS
        if isinstance(max_results, bool) or not isinstance(max_results, int) or max_results < 1:
            return SearchOutcome(
                success=False,
                errors=["max_results must be a positive integer"],
                warnings=validation.warnings,
                suggestions=validation.suggestions,
            )

        deadline = self.new_deadline()
        try:
            logger.info("Processing search query: %s", query)
            analysis = await self.query_intelligence.analyze(query, deadline=deadline)
            effective_filters = self.strategy_filters(analysis, filters)
            logger.info(
                "Query analysis | intent=%s confidence=%s filters=%s",
                analysis.intent.value,
                analysis.confidence_score,
                sorted(effective_filters),
            )

            strategy = self._strategies.get(analysis.intent, self.execute_general_search)
            strategy_result = await strategy(
                analysis,
                filters=effective_filters,
                max_results=max_results,
                use_hybrid_search=use_hybrid_search,
                deadline=deadline,
            )
            if deadline.expired:
                raise SearchTimeoutError("Search exceeded its time budget")

            enrichment = await self.enrich_results(strategy_result.results, max_results, deadline=deadline)
        except SearchTimeoutError as exc:
            logger.warning("Search timed out: %s", exc)
            return SearchOutcome(
                success=False,
                errors=[str(exc)],
                suggestions=validation.suggestions,
                fallback_suggestion=FALLBACK_SUGGESTION,
            )
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Search failed: %s", exc)
            return SearchOutcome(
                success=False,
                errors=[str(exc)],
                suggestions=validation.suggestions,
                fallback_suggestion=FALLBACK_SUGGESTION,
            )

        execution_ms = int((time.perf_counter() - started) * 1000)
        metadata = {
            "query_analysis": analysis.to_dict(),
            "search_strategy": analysis.intent.value,
            "search_type": strategy_result.search_type,
            "total_results": strategy_result.total_matches,
            "execution_time_ms": execution_ms,
            "hybrid_search_used": use_hybrid_search,
            "confidence_score": analysis.confidence_score,
            "filters_applied": applied_filters(effective_filters),
            "unresolved_ids": enrichment.unresolved_ids,
        }
        logger.info("Search completed in %sms with %s results", execution_ms, len(enrichment.resolved))
        return SearchOutcome(
            success=True,
            results=enrichment.resolved,
            metadata=metadata if include_metadata else {},
            warnings=validation.warnings,
            suggestions=validation.suggestions,
        )

    # Strategies

    async def execute_general_search(
        self,
        analysis: QueryAnalysis,
        *,
        filters: Dict[str, Any],
        max_results: int,
        use_hybrid_search: bool = True,
        deadline: Optional[Deadline] = None,
    ) -> StrategyResult:
        deadline = deadline or Deadline.unbounded()
        query = analysis.original_query

        if not use_hybrid_search:
            response = await self.vector_search.semantic_search(
                query, filters=filters, top_k=max_results, deadline=deadline
            )
            return _from_vector_response(response)

        vector_response, relational_rows = await asyncio.gather(
            self._vector_branch(query, filters, math.ceil(max_results * VECTOR_SHARE), deadline),
            self._relational_branch(query, filters, math.ceil(max_results * RELATIONAL_SHARE), deadline),
        )
        return merge_search_results(vector_response, relational_rows, max_results, vector_boost=self.vector_boost)

    async def _vector_branch(
        self, query: str, filters: Dict[str, Any], top_k: int, deadline: Deadline
    ) -> Optional[VectorSearchResponse]:
        try:
            return await self.vector_search.semantic_search(query, filters=filters, top_k=top_k, deadline=deadline)
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Vector search failed: %s", exc)
            return None

    async def _relational_branch(
        self, query: str, filters: Dict[str, Any], limit: int, deadline: Deadline
    ) -> List[Dict[str, Any]]:
        try:
            return await deadline.run(
                self.creator_store.search_by_text(query, filters, limit=limit), label="keyword search"
            )
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Traditional search failed: %s", exc)
            return []

    async def execute_similarity_search(
        self,
        analysis: QueryAnalysis,
        *,
        filters: Dict[str, Any],
        max_results: int,
        use_hybrid_search: bool = True,
        deadline: Optional[Deadline] = None,
    ) -> StrategyResult:
        deadline = deadline or Deadline.unbounded()
        if analysis.similar_to_creator:
            try:
                candidates = await deadline.run(
                    self.creator_store.search_by_text(
                        analysis.similar_to_creator, {}, limit=SIMILAR_NAME_LOOKUP_LIMIT
                    ),
                    label="creator name lookup",
                )
                if candidates:
                    reference = candidates[0]
                    logger.info(
                        "Finding creators similar to %s (%s)", reference.get("creator_name"), reference.get("id")
                    )
                    response = await self.vector_search.find_similar_creators(
                        str(reference["id"]), top_k=max_results, filters=filters, deadline=deadline
                    )
                    return _from_vector_response(response)
            except SearchTimeoutError:
                raise
            except Exception as exc:  # pylint: disable=broad-except
                logger.error("Similarity search failed, using general search: %s", exc)

        return await self.execute_general_search(
            analysis,
            filters=filters,
            max_results=max_results,
            use_hybrid_search=use_hybrid_search,
            deadline=deadline,
        )

    async def _aspect_search(
        self,
        analysis: QueryAnalysis,
        aspect_text: Optional[str],
        runner: Callable[..., Awaitable[VectorSearchResponse]],
        *,
        filters: Dict[str, Any],
        max_results: int,
        deadline: Optional[Deadline],
    ) -> StrategyResult:
        if aspect_text:
            response = await runner(aspect_text, filters=filters, top_k=max_results, deadline=deadline)
        else:
            response = await self.vector_search.semantic_search(
                analysis.original_query,
                filters=filters,
                top_k=max_results,
                min_score=0.2,
                deadline=deadline,
            )
        return _from_vector_response(response)

    async def execute_audience_search(self, analysis: QueryAnalysis, *, filters, max_results, deadline=None, **_):
        return await self._aspect_search(
            analysis,
            analysis.search_aspects.audience,
            self.vector_search.search_by_audience,
            filters=filters,
            max_results=max_results,
            deadline=deadline,
        )

    async def execute_content_search(self, analysis: QueryAnalysis, *, filters, max_results, deadline=None, **_):
        return await self._aspect_search(
            analysis,
            analysis.search_aspects.content,
            self.vector_search.search_by_content_style,
            filters=filters,
            max_results=max_results,
            deadline=deadline,
        )

    async def execute_brand_search(self, analysis: QueryAnalysis, *, filters, max_results, deadline=None, **_):
        return await self._aspect_search(
            analysis,
            analysis.search_aspects.brands,
            self.vector_search.search_by_brand_history,
            filters=filters,
            max_results=max_results,
            deadline=deadline,
        )

    # Enrichment

    async def _fetch_creator(self, creator_id: str, deadline: Deadline) -> Optional[Dict[str, Any]]:
        try:
            return await deadline.run(self.creator_store.get_by_id(creator_id), label="creator lookup")
        except SearchTimeoutError:
            raise
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Failed to fetch creator %s: %s", creator_id, exc)
            return None

    async def enrich_results(
        self,
        results: List[MergedResult],
        limit: int,
        *,
        deadline: Optional[Deadline] = None,
    ) -> EnrichmentOutcome:
        """Join the top ``limit`` results with their full creator records.

        Lookups run concurrently, one per id. Ids that fail to resolve are
        reported in ``unresolved_ids`` and never appear as rows.
        """
        deadline = deadline or Deadline.unbounded()
        candidates = results[:limit]
        outcome = EnrichmentOutcome()

        lookups = []
        for result in candidates:
            if result.creator_id and result.creator_id != "unknown":
                lookups.append(self._fetch_creator(result.creator_id, deadline))
            else:
                lookups.append(asyncio.sleep(0, result=None))
        creators = await asyncio.gather(*lookups)

        for position, (result, creator) in enumerate(zip(candidates, creators), start=1):
            if not creator:
                logger.warning("Creator not found for id: %s", result.creator_id)
                outcome.unresolved_ids.append(result.creator_id)
                continue
            outcome.resolved.append(
                EnrichedResult(
                    creator_id=str(creator.get("id", result.creator_id)),
                    search_score=result.similarity_score or result.combined_score,
                    search_rank=position,
                    creator_data=creator,
                    source=result.source,
                    similarity_score=result.similarity_score,
                    combined_score=result.combined_score,
                )
            )

        logger.info("Enriched %s of %s creator results", len(outcome.resolved), len(candidates))
        return outcome

    # Suggestions, advanced search and health

    async def get_search_suggestions(
        self,
        partial_query: str,
        *,
        max_suggestions: int = 5,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        deadline = self.new_deadline()
        try:
            ai_suggestions, vector_suggestions = await asyncio.gather(
                self.query_intelligence.generate_search_suggestions(partial_query, deadline=deadline),
                self.vector_search.get_search_suggestions(
                    partial_query,
                    max_suggestions=max_suggestions,
                    filters=clean_filters(filters),
                    deadline=deadline,
                ),
            )
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Error generating search suggestions: %s", exc)
            return {
                "suggestions": [
                    f"{partial_query} creators",
                    f"{partial_query} influencers",
                    f"micro {partial_query}",
                    f"{partial_query} content creators",
                ],
                "sources": {"fallback": True},
            }

        unique: List[str] = []
        for suggestion in list(ai_suggestions) + [item["suggestion"] for item in vector_suggestions]:
            if suggestion not in unique:
                unique.append(suggestion)
        return {
            "suggestions": unique[:MAX_COMBINED_SUGGESTIONS],
            "sources": {"ai_generated": len(ai_suggestions), "vector_based": len(vector_suggestions)},
        }

    async def advanced_search(self, criteria: Dict[str, Any]) -> SearchOutcome:
        """Multi-aspect search over content, audience and brand focus with budget/performance filters."""
        deadline = self.new_deadline()
        max_results = criteria.get("max_results")
        if max_results is None:
            max_results = DEFAULT_MAX_RESULTS
        if isinstance(max_results, bool) or not isinstance(max_results, int) or max_results < 1:
            return SearchOutcome(success=False, errors=["max_results must be a positive integer"])

        aspects: Dict[str, str] = {}
        for aspect, key in (("content", "content_focus"), ("audience", "audience_focus"), ("brands", "brand_focus")):
            if criteria.get(key):
                aspects[aspect] = criteria[key]

        filters = dict(criteria.get("filters") or {})
        budget_range = criteria.get("budget_range") or {}
        if budget_range.get("min") is not None:
            filters["min_budget"] = budget_range["min"]
        if budget_range.get("max") is not None:
            filters["max_budget"] = budget_range["max"]
        performance = criteria.get("performance_metrics") or {}
        for key in ("min_engagement_rate", "min_followers"):
            if performance.get(key) is not None:
                filters[key] = performance[key]
        filters = clean_filters(filters)

        try:
            fused = await self.vector_search.multi_aspect_search(
                aspects,
                weights={aspect: ADVANCED_WEIGHTS[aspect] for aspect in aspects},
                filters=filters,
                top_k=max_results,
                deadline=deadline,
            )
            enrichment = await self.enrich_results(fused["results"], max_results, deadline=deadline)
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Error in advanced search: %s", exc)
            return SearchOutcome(success=False, errors=[str(exc)], fallback_suggestion=FALLBACK_SUGGESTION)

        return SearchOutcome(
            success=True,
            results=enrichment.resolved,
            metadata={
                "search_criteria": criteria,
                "search_type": "advanced_multi_criteria",
                "aspects_searched": list(aspects),
                "total_results": len(fused["results"]),
                "filters_applied": applied_filters(filters),
                "unresolved_ids": enrichment.unresolved_ids,
            },
        )

    async def health_check(self) -> Dict[str, Any]:
        vector_health, query_health = await asyncio.gather(
            self.vector_search.health_check(),
            self._test_query_processing(),
        )
        healthy = vector_health.get("status") == "healthy" and query_health.get("status") == "healthy"
        return {
            "status": "healthy" if healthy else "degraded",
            "components": {
                "vector_search": vector_health,
                "query_processing": query_health,
                "orchestrator": {"status": "healthy", "service": "ai_search_orchestrator"},
            },
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        }

    async def _test_query_processing(self) -> Dict[str, Any]:
        try:
            analysis = await self.query_intelligence.analyze(HEALTH_TEST_QUERY, deadline=self.new_deadline())
            return {
                "status": "healthy",
                "test_query_processed": True,
                "confidence_score": analysis.confidence_score,
                "llm_enabled": self.query_intelligence.llm_enabled,
                "service": "query_intelligence",
            }
        except Exception as exc:  # pylint: disable=broad-except
            return {"status": "unhealthy", "error": str(exc), "service": "query_intelligence"}
