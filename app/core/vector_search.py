"""Semantic creator search on top of the vector index and embedding client."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from app.config import settings
from app.core.deadline import Deadline
from app.core.embeddings import EmbeddingClient
from app.core.errors import CreatorNotFoundError, VectorSearchError
from app.core.taxonomy import humanize_niche
from app.core.types import MergedResult, SearchMatch, VectorSearchResponse
from app.core.vector_index import CreatorVectorIndex, build_index_filter, vector_id_for

logger = logging.getLogger(__name__)

DERIVED_TOP_K = 15
SIMILAR_TOP_K = 10
SUGGESTION_MIN_SCORE = 0.6
CREATOR_SUGGESTION_SCORE = 0.8
ASPECT_TYPES = ("content", "audience", "brands", "general")


def audience_sentence(description: str) -> str:
    return (
        f"Creator with audience that {description}. "
        f"Target audience demographics and interests: {description}"
    )


def content_sentence(description: str) -> str:
    return f"Creator who creates {description}. Content style and type: {description}"


def brand_sentence(description: str) -> str:
    return (
        f"Creator who has worked with brands like {description}. "
        f"Brand collaboration history: {description}"
    )


def _to_match(raw: Dict[str, Any]) -> SearchMatch:
    metadata = raw.get("metadata") or {}
    creator_id = metadata.get("creator_id") or "unknown"
    return SearchMatch(
        creator_id=str(creator_id),
        similarity_score=float(raw.get("score") or 0.0),
        metadata=metadata,
    )


def combine_search_results(
    searches: List[Dict[str, Any]], use_weights: bool = True
) -> List[MergedResult]:
    """Fuse per-aspect responses into one list keyed by creator id.

    Each entry of ``searches`` is ``{"type", "weight", "response"}``. A creator
    seen again has its running score averaged with the new weighted score and
    its ``search_matches`` incremented.
    """
    combined: Dict[str, MergedResult] = {}
    for search in searches:
        response: Optional[VectorSearchResponse] = search.get("response")
        if response is None:
            logger.warning("Invalid search results for aspect: %s", search.get("type"))
            continue
        weight = search.get("weight") or 1.0
        for match in response.results:
            if not match.creator_id:
                continue
            score = match.similarity_score * weight if use_weights else match.similarity_score
            existing = combined.get(match.creator_id)
            if existing is None:
                combined[match.creator_id] = MergedResult(
                    creator_id=match.creator_id,
                    combined_score=score,
                    similarity_score=match.similarity_score,
                    metadata=match.metadata,
                )
            else:
                existing.combined_score = (existing.combined_score + score) / 2
                existing.search_matches += 1
    return sorted(combined.values(), key=lambda item: item.combined_score, reverse=True)


class VectorSearchService:
    """Embed queries and run top-K similarity searches against the creator index."""

    def __init__(self, index: Optional[CreatorVectorIndex], embedder: EmbeddingClient) -> None:
        self.index = index
        self.embedder = embedder

    def _require_index(self) -> CreatorVectorIndex:
        if self.index is None:
            raise VectorSearchError("Vector search service not initialized")
        return self.index

    async def semantic_search(
        self,
        query: str,
        *,
        filters: Optional[Dict[str, Any]] = None,
        top_k: int = 20,
        min_score: Optional[float] = None,
        include_metadata: bool = True,
        deadline: Optional[Deadline] = None,
    ) -> VectorSearchResponse:
        if not query or not query.strip():
            raise ValueError("Query parameter is required for semantic search")
        index = self._require_index()
        deadline = deadline or Deadline.unbounded()
        min_score = settings.DEFAULT_MIN_SCORE if min_score is None else min_score

        logger.info("Semantic search | top_k=%s min_score=%s query=%s", top_k, min_score, query)
        vector = await deadline.run(self.embedder.embed_text(query), label="query embedding")
        predicate = build_index_filter(filters)
        raw_matches = await deadline.run(
            index.query(vector, filter=predicate, top_k=top_k, include_metadata=include_metadata),
            label="vector query",
        )

        results = [_to_match(raw) for raw in raw_matches if (raw.get("score") or 0.0) >= min_score]
        logger.info("Found %s semantic matches", len(results))
        return VectorSearchResponse(
            results=results,
            total_matches=len(results),
            search_type="semantic",
            filters_applied=list(predicate or {}),
        )

    async def find_similar_creators(
        self,
        creator_id: str,
        *,
        top_k: int = SIMILAR_TOP_K,
        filters: Optional[Dict[str, Any]] = None,
        include_original: bool = False,
        deadline: Optional[Deadline] = None,
    ) -> VectorSearchResponse:
        if not creator_id:
            raise ValueError("Creator ID is required")
        index = self._require_index()
        deadline = deadline or Deadline.unbounded()
        creator_id = str(creator_id)

        vector_id = vector_id_for(creator_id)
        fetched = await deadline.run(index.fetch([vector_id]), label="vector fetch")
        record = fetched.get(vector_id)
        if not record or not record.get("values"):
            raise CreatorNotFoundError(creator_id)

        predicate = build_index_filter(filters)
        raw_matches = await deadline.run(
            index.query(
                record["values"],
                filter=predicate,
                top_k=top_k if include_original else top_k + 1,
                include_metadata=True,
            ),
            label="vector query",
        )

        results = [_to_match(raw) for raw in raw_matches]
        if not include_original:
            results = [match for match in results if match.creator_id != creator_id]
        results = results[:top_k]

        logger.info("Found %s creators similar to %s", len(results), creator_id)
        return VectorSearchResponse(
            results=results,
            total_matches=len(results),
            search_type="similarity",
            filters_applied=list(predicate or {}),
            reference_creator_id=creator_id,
        )

    async def search_by_audience(
        self, description: str, *, filters=None, top_k: int = DERIVED_TOP_K, deadline=None
    ) -> VectorSearchResponse:
        if not description:
            raise ValueError("Audience description is required")
        return await self.semantic_search(
            audience_sentence(description), filters=filters, top_k=top_k, min_score=0.2, deadline=deadline
        )

    async def search_by_content_style(
        self, description: str, *, filters=None, top_k: int = DERIVED_TOP_K, deadline=None
    ) -> VectorSearchResponse:
        if not description:
            raise ValueError("Content description is required")
        return await self.semantic_search(
            content_sentence(description), filters=filters, top_k=top_k, min_score=0.2, deadline=deadline
        )

    async def search_by_brand_history(
        self, description: str, *, filters=None, top_k: int = DERIVED_TOP_K, deadline=None
    ) -> VectorSearchResponse:
        if not description:
            raise ValueError("Brand query is required")
        return await self.semantic_search(
            brand_sentence(description), filters=filters, top_k=top_k, min_score=0.2, deadline=deadline
        )

    async def multi_aspect_search(
        self,
        aspects: Dict[str, Any],
        *,
        weights: Optional[Dict[str, float]] = None,
        filters: Optional[Dict[str, Any]] = None,
        top_k: int = 20,
        use_weights: bool = True,
        deadline: Optional[Deadline] = None,
    ) -> Dict[str, Any]:
        """Run one search per present aspect and fuse them by weighted score."""
        if not isinstance(aspects, dict):
            raise ValueError("Search aspects must be provided as a mapping")
        weights = weights or {}
        runners = {
            "content": self.search_by_content_style,
            "audience": self.search_by_audience,
            "brands": self.search_by_brand_history,
        }

        planned = []
        for aspect in ASPECT_TYPES:
            text = aspects.get(aspect)
            if not isinstance(text, str) or not text.strip():
                continue
            if aspect == "general":
                call = self.semantic_search(text, filters=filters, top_k=top_k, deadline=deadline)
            else:
                call = runners[aspect](text, filters=filters, top_k=top_k, deadline=deadline)
            planned.append((aspect, weights.get(aspect) or 1.0, call))

        if not planned:
            raise ValueError("No valid search aspects provided")

        responses = await asyncio.gather(*(call for _, _, call in planned))
        searches = [
            {"type": aspect, "weight": weight, "response": response}
            for (aspect, weight, _), response in zip(planned, responses)
        ]
        combined = combine_search_results(searches, use_weights)
        return {
            "results": combined[:top_k],
            "search_aspects": {aspect: aspects.get(aspect) for aspect, _, _ in planned},
            "total_aspects_searched": len(searches),
            "search_type": "multi_aspect",
        }

    async def get_search_suggestions(
        self,
        partial_query: str,
        *,
        max_suggestions: int = 5,
        filters: Optional[Dict[str, Any]] = None,
        deadline: Optional[Deadline] = None,
    ) -> List[Dict[str, Any]]:
        response = await self.semantic_search(
            partial_query,
            filters=filters,
            top_k=max_suggestions * 2,
            min_score=SUGGESTION_MIN_SCORE,
            deadline=deadline,
        )

        seen = set()
        suggestions: List[Dict[str, Any]] = []
        for match in response.results:
            niche = match.metadata.get("niche")
            if niche and niche not in seen:
                seen.add(niche)
                suggestions.append(
                    {"type": "niche", "suggestion": humanize_niche(niche), "score": match.similarity_score}
                )
            name = match.metadata.get("creator_name")
            if match.similarity_score > CREATOR_SUGGESTION_SCORE and name and name not in seen:
                seen.add(name)
                suggestions.append({"type": "creator", "suggestion": name, "score": match.similarity_score})
        return suggestions[:max_suggestions]

    async def health_check(self) -> Dict[str, Any]:
        try:
            stats = await self._require_index().stats()
            return {"status": "healthy", "index_stats": stats, "service": "vector_search"}
        except Exception as exc:  # pylint: disable=broad-except
            return {"status": "unhealthy", "error": str(exc), "service": "vector_search"}
