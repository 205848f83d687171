"""Dataclasses passed between the query, retrieval and fusion stages."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class SearchIntent(str, Enum):
    """Search intents the orchestrator knows how to dispatch."""

    FIND_CREATORS = "find_creators"
    FIND_SIMILAR = "find_similar"
    AUDIENCE_MATCH = "audience_match"
    CONTENT_MATCH = "content_match"
    BRAND_MATCH = "brand_match"

    @classmethod
    def parse(cls, value: Any) -> "SearchIntent":
        try:
            return cls(value)
        except ValueError:
            return cls.FIND_CREATORS


@dataclass
class SearchAspects:
    """Free-text descriptions of what the query emphasises."""

    content: Optional[str] = None
    audience: Optional[str] = None
    brands: Optional[str] = None
    general: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Optional[Dict[str, Any]]) -> "SearchAspects":
        payload = payload or {}

        def text(key: str) -> Optional[str]:
            value = payload.get(key)
            return value.strip() if isinstance(value, str) and value.strip() else None

        return cls(
            content=text("content"),
            audience=text("audience"),
            brands=text("brands"),
            general=text("general"),
        )

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "content": self.content,
            "audience": self.audience,
            "brands": self.brands,
            "general": self.general,
        }


@dataclass
class QueryAnalysis:
    """Structured reading of a free-text creator search query."""

    intent: SearchIntent
    filters: Dict[str, Any]
    semantic_query: str
    confidence_score: float
    original_query: str
    search_aspects: SearchAspects = field(default_factory=SearchAspects)
    similar_to_creator: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "search_intent": self.intent.value,
            "filters": dict(self.filters),
            "search_aspects": self.search_aspects.to_dict(),
            "similar_to_creator": self.similar_to_creator,
            "semantic_query": self.semantic_query,
            "confidence_score": self.confidence_score,
            "original_query": self.original_query,
        }


@dataclass
class QueryValidation:
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)


@dataclass
class SearchMatch:
    """One hit from a single retrieval strategy, before enrichment."""

    creator_id: str
    similarity_score: float
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class MergedResult:
    """A creator after fusion of one or more retrieval sources."""

    creator_id: str
    combined_score: float
    source: str = "vector"
    similarity_score: Optional[float] = None
    search_rank: int = 0
    search_matches: int = 1
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_match(cls, match: SearchMatch, rank: int = 0) -> "MergedResult":
        return cls(
            creator_id=match.creator_id,
            combined_score=match.similarity_score,
            source="vector",
            similarity_score=match.similarity_score,
            search_rank=rank,
            metadata=match.metadata,
        )


@dataclass
class VectorSearchResponse:
    results: List[SearchMatch]
    total_matches: int
    search_type: str = "semantic"
    filters_applied: List[str] = field(default_factory=list)
    reference_creator_id: Optional[str] = None


@dataclass
class StrategyResult:
    """Ranked, not yet enriched, output of a search strategy."""

    results: List[MergedResult]
    total_matches: int
    search_type: str


@dataclass
class EnrichedResult:
    creator_id: str
    search_score: float
    search_rank: int
    creator_data: Dict[str, Any]
    source: str = "vector"
    similarity_score: Optional[float] = None
    combined_score: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "search_score": self.search_score,
            "search_rank": self.search_rank,
            "creator_data": self.creator_data,
            "search_metadata": {
                "source": self.source,
                "similarity_score": self.similarity_score,
                "combined_score": self.combined_score,
                "creator_uuid": self.creator_id,
                "ai_enhanced": bool(self.creator_data.get("ai_enhanced", False)),
            },
        }


@dataclass
class EnrichmentOutcome:
    resolved: List[EnrichedResult] = field(default_factory=list)
    unresolved_ids: List[str] = field(default_factory=list)


@dataclass
class ScoredRecommendation:
    creator_id: str
    total_score: float
    score_breakdown: Dict[str, float]
    creator_data: Dict[str, Any]
    similarity_score: float = 0.0
    price_per_1k_followers: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "creator_id": self.creator_id,
            "total_score": self.total_score,
            "score_breakdown": dict(self.score_breakdown),
            "similarity_score": self.similarity_score,
            "price_per_1k_followers": self.price_per_1k_followers,
            "creator_data": self.creator_data,
        }


@dataclass
class SearchOutcome:
    """What the orchestrator hands back to its callers."""

    success: bool
    results: List[EnrichedResult] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    fallback_suggestion: Optional[str] = None
