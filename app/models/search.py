"""Search-related Pydantic models for the AI search API."""
from typing import List, Optional, Dict, Any

from pydantic import BaseModel, Field


class AISearchRequest(BaseModel):
    query: str = Field(..., description="Natural-language creator search query")
    filters: Optional[Dict[str, Any]] = Field(
        default=None, description="Explicit filter overrides applied on top of extracted filters"
    )
    max_results: int = Field(default=20, ge=1, description="Maximum results to return (capped at 50)")
    use_hybrid_search: bool = Field(default=True)
    include_metadata: bool = Field(default=True)


class AISearchResponse(BaseModel):
    success: bool
    results: List[Dict[str, Any]] = Field(default_factory=list)
    count: int = 0
    query: str
    metadata: Optional[Dict[str, Any]] = None
    warnings: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    fallback_suggestion: Optional[str] = None


class SuggestionResponse(BaseModel):
    success: bool
    query: str
    suggestions: List[str]
    sources: Dict[str, Any]


class BudgetRange(BaseModel):
    min: Optional[float] = Field(default=None, ge=0.0)
    max: Optional[float] = Field(default=None, ge=0.0)


class PerformanceMetrics(BaseModel):
    min_engagement_rate: Optional[float] = Field(default=None, ge=0.0)
    min_followers: Optional[int] = Field(default=None, ge=0)


class AdvancedSearchRequest(BaseModel):
    content_focus: Optional[str] = Field(default=None)
    audience_focus: Optional[str] = Field(default=None)
    brand_focus: Optional[str] = Field(default=None)
    budget_range: Optional[BudgetRange] = Field(default=None)
    performance_metrics: Optional[PerformanceMetrics] = Field(default=None)
    filters: Optional[Dict[str, Any]] = Field(default=None)
    max_results: int = Field(default=20, ge=1)


class AdvancedSearchResponse(BaseModel):
    success: bool
    results: List[Dict[str, Any]] = Field(default_factory=list)
    count: int = 0
    metadata: Optional[Dict[str, Any]] = None
    errors: List[str] = Field(default_factory=list)


class SimilarCreatorsResponse(BaseModel):
    success: bool
    reference_creator_id: str
    results: List[Dict[str, Any]]
    count: int
    filters_applied: List[str] = Field(default_factory=list)


class RecommendationRequest(BaseModel):
    brand_description: str = Field(..., min_length=1)
    budget: Optional[float] = Field(default=None, ge=0.0)
    target_audience: Optional[str] = Field(default=None)
    platform: str = Field(default="instagram")
    content_type: Optional[str] = Field(default=None)
    region: Optional[str] = Field(default=None)


class RecommendationResponse(BaseModel):
    success: bool
    results: List[Dict[str, Any]]
    count: int
    stages: List[Dict[str, Any]] = Field(default_factory=list)


class CreatorDetailResponse(BaseModel):
    success: bool
    result: Dict[str, Any]


class EmbedCreatorsRequest(BaseModel):
    """Re-embed creators from the relational store into the vector index."""

    creator_ids: Optional[List[str]] = Field(default=None, description="Specific creators; all when omitted")
    limit: Optional[int] = Field(default=None, ge=1)


class EmbedCreatorsResponse(BaseModel):
    success: bool
    successful: int
    failed: int
    errors: List[Dict[str, Any]]
