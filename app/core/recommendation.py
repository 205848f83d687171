"""Fixed weighted rubric used to rank brand recommendations."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from app.core.types import EnrichedResult, ScoredRecommendation

MAX_TOTAL_SCORE = 100.0


@dataclass(frozen=True)
class Bucket:
    """``fraction`` of the component weight awarded when value clears ``threshold``."""

    threshold: float
    fraction: float
    inclusive: bool = False

    def matches(self, value: float) -> bool:
        return value >= self.threshold if self.inclusive else value > self.threshold


@dataclass(frozen=True)
class Component:
    name: str
    weight: float
    buckets: Tuple[Bucket, ...] = ()
    # linear components scale value / scale, clamped to [0, 1]
    scale: Optional[float] = None


# Buckets are ordered from the highest threshold down; the first match wins.
RUBRIC: Tuple[Component, ...] = (
    Component("similarity", 35, scale=1.0),
    Component(
        "engagement",
        25,
        buckets=(
            Bucket(8, 1.0),
            Bucket(5, 0.8),
            Bucket(3, 0.6),
            Bucket(1.5, 0.4, inclusive=True),
        ),
    ),
    Component(
        "followers",
        15,
        buckets=(
            Bucket(1_000_000, 1.0),
            Bucket(500_000, 0.9),
            Bucket(100_000, 0.8),
            Bucket(50_000, 0.7),
            Bucket(10_000, 0.6),
            Bucket(1_000, 0.4, inclusive=True),
        ),
    ),
    Component("satisfaction", 15, scale=5.0),
    Component(
        "experience",
        10,
        buckets=(
            Bucket(50, 1.0),
            Bucket(20, 0.8),
            Bucket(10, 0.6),
            Bucket(5, 0.4),
            Bucket(0, 0.2),
        ),
    ),
)


def bucket_score(component: Component, value: Optional[float]) -> float:
    """Points a single component earns for ``value``."""
    value = float(value or 0)
    if component.scale is not None:
        fraction = max(0.0, min(1.0, value / component.scale))
        return fraction * component.weight
    for bucket in component.buckets:
        if bucket.matches(value):
            return bucket.fraction * component.weight
    return 0.0


def _number(value: Any) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def scoring_inputs(creator: Dict[str, Any], similarity: Optional[float] = None) -> Dict[str, Optional[float]]:
    """Collect rubric inputs from a creator record.

    Flat columns win; otherwise the primary platform's metrics and pricing
    are used.
    """
    platform = creator.get("primary_platform")
    metrics = (creator.get("platform_metrics") or {}).get(platform) or {} if platform else {}
    pricing = (creator.get("pricing") or {}).get(platform) or {} if platform else {}

    def pick(*values: Any) -> Optional[float]:
        for value in values:
            number = _number(value)
            if number is not None:
                return number
        return None

    return {
        "similarity": pick(similarity, creator.get("similarity_score")),
        "engagement": pick(creator.get("engagement_rate"), metrics.get("engagement_rate")),
        "followers": pick(creator.get("follower_count"), metrics.get("follower_count")),
        "satisfaction": pick(creator.get("client_satisfaction_score")),
        "experience": pick(creator.get("total_collaborations")),
        "sponsored_post_rate": pick(creator.get("sponsored_post_rate"), pricing.get("sponsored_post")),
    }


def price_per_1k_followers(rate: Optional[float], followers: Optional[float]) -> Optional[float]:
    if not rate or not followers or followers <= 0:
        return None
    return round(rate / followers * 1000, 2)


def score(result: EnrichedResult) -> ScoredRecommendation:
    inputs = scoring_inputs(result.creator_data, result.similarity_score)
    breakdown = {component.name: bucket_score(component, inputs[component.name]) for component in RUBRIC}
    total = round(sum(breakdown.values()), 2)
    return ScoredRecommendation(
        creator_id=result.creator_id,
        total_score=max(0.0, min(MAX_TOTAL_SCORE, total)),
        score_breakdown=breakdown,
        creator_data=result.creator_data,
        similarity_score=inputs["similarity"] or 0.0,
        price_per_1k_followers=price_per_1k_followers(inputs["sponsored_post_rate"], inputs["followers"]),
    )


def rank(results: Iterable[EnrichedResult], limit: Optional[int] = None) -> List[ScoredRecommendation]:
    """Score and sort by total descending; ties keep their input order."""
    scored = sorted((score(result) for result in results), key=lambda item: item.total_score, reverse=True)
    return scored[:limit] if limit is not None else scored
