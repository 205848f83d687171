"""Build creator documents and embed them into the vector index."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

from app.config import settings
from app.core.creator_store import CreatorStore
from app.core.embeddings import EmbeddingClient
from app.core.taxonomy import AGE_GROUPS, GENDERS, humanize_niche
from app.core.vector_index import CreatorVectorIndex, vector_id_for

logger = logging.getLogger(__name__)


def _as_list(value: Any) -> List[Any]:
    if isinstance(value, list):
        return value
    if value is None or value == "":
        return []
    return [value]


def primary_age_group(demographics: Dict[str, Any]) -> str:
    """Age bucket holding the largest audience share (first wins on ties)."""
    best_label, best_share = AGE_GROUPS[0][0], -1.0
    for label, column in AGE_GROUPS:
        share = float(demographics.get(column) or 0)
        if share > best_share:
            best_label, best_share = label, share
    return best_label


def primary_gender(demographics: Dict[str, Any]) -> str:
    best_label, best_share = GENDERS[0][0], -1.0
    for label, column in GENDERS:
        share = float(demographics.get(column) or 0)
        if share > best_share:
            best_label, best_share = label, share
    return best_label


def build_creator_text(creator: Dict[str, Any]) -> str:
    """Flatten a creator record into the descriptive text that gets embedded."""
    parts: List[str] = []
    parts.append(f"Creator: {creator.get('creator_name')}")
    parts.append(f"Bio: {creator.get('bio') or 'No bio available'}")
    parts.append(f"Niche: {humanize_niche(creator.get('niche') or 'general')}")
    parts.append(f"Tier: {creator.get('tier')} influencer")
    parts.append(f"Primary platform: {creator.get('primary_platform')}")
    parts.append(f"Location: {creator.get('location_city')}, {creator.get('location_country')}")

    for platform, metrics in (creator.get("platform_metrics") or {}).items():
        parts.append(
            f"{platform}: {metrics.get('follower_count')} followers, "
            f"{metrics.get('engagement_rate')}% engagement rate"
        )

    categories = _as_list(creator.get("content_categories"))
    if categories:
        parts.append(f"Content types: {', '.join(str(item) for item in categories)}")

    examples = _as_list(creator.get("content_examples"))
    if examples:
        parts.append(f"Recent content: {'. '.join(str(item) for item in examples[:3])}")

    collaborations = _as_list(creator.get("brand_collaborations"))
    if collaborations:
        brands = [
            collab.get("brand_name") if isinstance(collab, dict) else str(collab) for collab in collaborations
        ][:5]
        parts.append(f"Brand collaborations: {', '.join(brand for brand in brands if brand)}")

    insights = creator.get("audience_insights") or {}
    if insights.get("specific_interests"):
        parts.append(f"Audience interests: {', '.join(_as_list(insights['specific_interests']))}")
    if insights.get("top_countries"):
        parts.append(f"Top audience countries: {', '.join(_as_list(insights['top_countries'])[:3])}")

    personality = creator.get("personality_profile") or {}
    if personality:
        parts.append(f"Content style: {personality.get('content_style')}")
        parts.append(f"Communication tone: {personality.get('communication_tone')}")

    for platform, demo in (creator.get("audience_demographics") or {}).items():
        age_groups = []
        if float(demo.get("age_18_24") or 0) > 30:
            age_groups.append("young adults")
        if float(demo.get("age_25_34") or 0) > 30:
            age_groups.append("millennials")
        if float(demo.get("age_35_44") or 0) > 25:
            age_groups.append("gen-x")
        if age_groups:
            parts.append(f"{platform} audience: primarily {' and '.join(age_groups)}")

        if float(demo.get("gender_female") or 0) > 60:
            parts.append(f"{platform} audience: majority female")
        elif float(demo.get("gender_male") or 0) > 60:
            parts.append(f"{platform} audience: majority male")

    for platform, pricing in (creator.get("pricing") or {}).items():
        if pricing.get("sponsored_post"):
            parts.append(f"{platform} sponsored post rate: ${pricing['sponsored_post']}")

    return ". ".join(parts)


def build_creator_metadata(creator: Dict[str, Any]) -> Dict[str, Any]:
    """Filterable attributes stored next to the vector.

    Every column is always present so the index schema stays stable.
    """
    platform = creator.get("primary_platform") or ""
    metrics = (creator.get("platform_metrics") or {}).get(platform) or {}
    pricing = (creator.get("pricing") or {}).get(platform) or {}
    demographics = (creator.get("audience_demographics") or {}).get(platform)

    return {
        "creator_id": str(creator["id"]),
        "creator_name": creator.get("creator_name") or "",
        "niche": creator.get("niche") or "",
        "tier": creator.get("tier") or "",
        "primary_platform": platform,
        "location_country": creator.get("location_country") or "",
        "location_city": creator.get("location_city") or "",
        "verification_status": creator.get("verification_status") or "unverified",
        "total_collaborations": int(creator.get("total_collaborations") or 0),
        "client_satisfaction_score": float(creator.get("client_satisfaction_score") or 0),
        "follower_count": int(metrics.get("follower_count") or 0),
        "engagement_rate": float(metrics.get("engagement_rate") or 0),
        "sponsored_post_rate": float(pricing.get("sponsored_post") or 0),
        "audience_age_primary": primary_age_group(demographics) if demographics else "",
        "audience_gender_primary": primary_gender(demographics) if demographics else "",
    }


class CreatorIndexer:
    """Embed creator records and keep the vector index in sync with them."""

    def __init__(
        self,
        index: CreatorVectorIndex,
        embedder: EmbeddingClient,
        *,
        batch_size: Optional[int] = None,
        batch_delay_seconds: float = 1.0,
    ) -> None:
        self.index = index
        self.embedder = embedder
        self.batch_size = max(1, batch_size or settings.INDEX_BATCH_SIZE)
        self.batch_delay_seconds = batch_delay_seconds

    async def build_record(self, creator: Dict[str, Any]) -> Dict[str, Any]:
        vector = await self.embedder.embed_text(build_creator_text(creator))
        return {"id": vector_id_for(creator["id"]), "vector": vector, **build_creator_metadata(creator)}

    async def embed_creator(self, creator: Dict[str, Any]) -> str:
        record = await self.build_record(creator)
        await self.index.upsert([record])
        logger.info("Embedded creator: %s", creator.get("creator_name"))
        return record["id"]

    async def embed_creators(self, creators: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
        """Embed creators in concurrent batches and upsert each batch at once."""
        creators = list(creators)
        results: Dict[str, Any] = {"successful": 0, "failed": 0, "errors": []}
        total_batches = (len(creators) + self.batch_size - 1) // self.batch_size
        logger.info("Starting embedding process for %s creators", len(creators))

        for batch_number, start in enumerate(range(0, len(creators), self.batch_size), start=1):
            batch = creators[start : start + self.batch_size]
            outcomes = await asyncio.gather(
                *(self.build_record(creator) for creator in batch), return_exceptions=True
            )

            records = []
            for creator, outcome in zip(batch, outcomes):
                if isinstance(outcome, Exception):
                    results["failed"] += 1
                    results["errors"].append(
                        {
                            "creator_id": str(creator.get("id")),
                            "creator_name": creator.get("creator_name"),
                            "error": str(outcome),
                        }
                    )
                else:
                    records.append(outcome)

            if records:
                await self.index.upsert(records)
                results["successful"] += len(records)

            logger.info("Processed batch %s of %s", batch_number, total_batches)
            if start + self.batch_size < len(creators) and self.batch_delay_seconds > 0:
                await asyncio.sleep(self.batch_delay_seconds)

        logger.info("Embedding completed. Success: %s, Failed: %s", results["successful"], results["failed"])
        return results

    async def rebuild_from_store(self, store: CreatorStore, *, page_size: int = 100, limit: Optional[int] = None):
        """Page through every creator in the relational store and embed it."""
        totals: Dict[str, Any] = {"successful": 0, "failed": 0, "errors": []}
        offset = 0
        while limit is None or offset < limit:
            size = page_size if limit is None else min(page_size, limit - offset)
            page = await store.list_creators(limit=size, offset=offset)
            if not page:
                break
            batch_result = await self.embed_creators(page)
            totals["successful"] += batch_result["successful"]
            totals["failed"] += batch_result["failed"]
            totals["errors"].extend(batch_result["errors"])
            offset += len(page)
            if len(page) < size:
                break
        return totals

    async def delete_creator(self, creator_id: str) -> None:
        await self.index.delete([vector_id_for(creator_id)])
        logger.info("Deleted embedding for creator id: %s", creator_id)

    async def index_stats(self) -> Dict[str, Any]:
        return await self.index.stats()


__all__ = [
    "CreatorIndexer",
    "build_creator_metadata",
    "build_creator_text",
    "primary_age_group",
    "primary_gender",
]
