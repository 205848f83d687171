"""Postgres access for creator records (keyword search and lookups by id)."""
from __future__ import annotations

import asyncio
import json
import logging
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional

import asyncpg

from app.config import settings
from app.core.errors import CreatorStoreError

logger = logging.getLogger(__name__)

_SEARCH_SQL = """
    SELECT
      c.*,
      ts_rank(to_tsvector('english', c.creator_name || ' ' || coalesce(c.bio, '')),
              plainto_tsquery('english', $1)) AS search_rank,
      jsonb_object_agg(cpm.platform,
        jsonb_build_object(
          'follower_count', cpm.follower_count,
          'engagement_rate', cpm.engagement_rate,
          'avg_views', cpm.avg_views
        )
      ) FILTER (WHERE cpm.platform IS NOT NULL) AS platform_metrics
    FROM creators c
    LEFT JOIN creator_platform_metrics cpm ON c.id = cpm.creator_id
    {where}
    GROUP BY c.id
    ORDER BY search_rank DESC, c.created_at DESC
    LIMIT ${limit_param} OFFSET ${offset_param}
"""

_DETAIL_SQL = """
    SELECT
      c.*,
      jsonb_object_agg(
        DISTINCT cpm.platform,
        jsonb_build_object(
          'follower_count', cpm.follower_count,
          'following_count', cpm.following_count,
          'post_count', cpm.post_count,
          'avg_views', cpm.avg_views,
          'avg_likes', cpm.avg_likes,
          'avg_comments', cpm.avg_comments,
          'avg_shares', cpm.avg_shares,
          'engagement_rate', cpm.engagement_rate,
          'followers_gained_30d', cpm.followers_gained_30d
        )
      ) FILTER (WHERE cpm.platform IS NOT NULL) AS platform_metrics,
      jsonb_object_agg(
        DISTINCT cad.platform,
        jsonb_build_object(
          'age_13_17', cad.age_13_17,
          'age_18_24', cad.age_18_24,
          'age_25_34', cad.age_25_34,
          'age_35_44', cad.age_35_44,
          'age_45_plus', cad.age_45_plus,
          'gender_male', cad.gender_male,
          'gender_female', cad.gender_female,
          'gender_other', cad.gender_other,
          'top_countries', cad.top_countries,
          'interests', cad.interests
        )
      ) FILTER (WHERE cad.platform IS NOT NULL) AS audience_demographics,
      jsonb_object_agg(
        DISTINCT cp.platform,
        jsonb_build_object(
          'sponsored_post', cp.sponsored_post_rate,
          'story_mention', cp.story_mention_rate,
          'video_integration', cp.video_integration_rate,
          'brand_ambassadorship_monthly', cp.brand_ambassadorship_monthly_rate,
          'event_coverage', cp.event_coverage_rate,
          'currency', cp.currency
        )
      ) FILTER (WHERE cp.platform IS NOT NULL) AS pricing
    FROM creators c
    LEFT JOIN creator_platform_metrics cpm ON c.id = cpm.creator_id
    LEFT JOIN creator_audience_demographics cad ON c.id = cad.creator_id
    LEFT JOIN creator_pricing cp ON c.id = cp.creator_id
    {where}
    GROUP BY c.id
    {tail}
"""


def _plain(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, Decimal):
        return float(value)
    return value


def record_to_dict(record: Any) -> Dict[str, Any]:
    return {key: _plain(value) for key, value in dict(record).items()}


def primary_platform_metrics(creator: Dict[str, Any]) -> Dict[str, Any]:
    platform = creator.get("primary_platform")
    metrics = creator.get("platform_metrics") or {}
    if platform and isinstance(metrics, dict):
        return metrics.get(platform) or {}
    return {}


def extract_metadata_from_creator(creator: Dict[str, Any]) -> Dict[str, Any]:
    """Shape a relational row like the metadata stored next to a vector."""
    metrics = primary_platform_metrics(creator)
    creator_id = creator.get("id")
    return {
        "creator_id": str(creator_id) if creator_id is not None else "unknown",
        "creator_name": creator.get("creator_name") or "Unknown",
        "niche": creator.get("niche") or "general",
        "tier": creator.get("tier") or "micro",
        "primary_platform": creator.get("primary_platform") or "instagram",
        "location_country": creator.get("location_country") or "Unknown",
        "ai_enhanced": bool(creator.get("ai_enhanced", False)),
        "follower_count": metrics.get("follower_count") or 0,
        "engagement_rate": metrics.get("engagement_rate") or 0,
    }


async def _init_connection(conn) -> None:
    await conn.set_type_codec("jsonb", encoder=json.dumps, decoder=json.loads, schema="pg_catalog")
    await conn.set_type_codec("json", encoder=json.dumps, decoder=json.loads, schema="pg_catalog")


class CreatorStore:
    """Creator records in Postgres, reached through a lazily created asyncpg pool."""

    def __init__(self, dsn: Optional[str] = None, *, min_size: Optional[int] = None, max_size: Optional[int] = None) -> None:
        self.dsn = dsn or settings.DATABASE_URL
        self.min_size = min_size or settings.DB_POOL_MIN_SIZE
        self.max_size = max_size or settings.DB_POOL_MAX_SIZE
        self._pool: Optional[asyncpg.Pool] = None
        self._pool_lock = asyncio.Lock()

    async def _get_pool(self) -> asyncpg.Pool:
        if self._pool is not None:
            return self._pool
        async with self._pool_lock:
            if self._pool is None:
                if not self.dsn:
                    raise CreatorStoreError("DATABASE_URL must be configured to query creators")
                self._pool = await asyncpg.create_pool(
                    self.dsn,
                    min_size=self.min_size,
                    max_size=self.max_size,
                    init=_init_connection,
                )
                logger.info("Creator store pool created (min=%s max=%s)", self.min_size, self.max_size)
        return self._pool

    async def initialize(self) -> None:
        await self._get_pool()

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def _fetch(self, sql: str, *args: Any) -> List[Dict[str, Any]]:
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(sql, *args)
        except (asyncpg.PostgresError, OSError) as exc:
            raise CreatorStoreError(f"Creator query failed: {exc}") from exc
        return [record_to_dict(row) for row in rows]

    async def search_by_text(
        self,
        term: str,
        filters: Optional[Dict[str, Any]] = None,
        *,
        limit: int = 20,
        page: int = 1,
    ) -> List[Dict[str, Any]]:
        """Full-text search over name, username and bio, ranked by ``ts_rank``."""
        filters = filters or {}
        offset = (max(1, page) - 1) * limit

        clauses = [
            """(
              to_tsvector('english', c.creator_name) @@ plainto_tsquery('english', $1) OR
              to_tsvector('english', c.username) @@ plainto_tsquery('english', $1) OR
              to_tsvector('english', coalesce(c.bio, '')) @@ plainto_tsquery('english', $1) OR
              c.niche ILIKE $2
            )"""
        ]
        values: List[Any] = [term, f"%{term}%"]

        for key, column in (("niche", "c.niche"), ("tier", "c.tier")):
            if filters.get(key):
                values.append(filters[key])
                clauses.append(f"{column} = ${len(values)}")

        platform = filters.get("primary_platform") or filters.get("platform")
        if platform:
            values.append(platform)
            clauses.append(f"c.primary_platform = ${len(values)}")

        sql = _SEARCH_SQL.format(
            where="WHERE " + " AND ".join(clauses),
            limit_param=len(values) + 1,
            offset_param=len(values) + 2,
        )
        values.extend([limit, offset])
        return await self._fetch(sql, *values)

    async def get_by_id(self, creator_id: str) -> Optional[Dict[str, Any]]:
        sql = _DETAIL_SQL.format(where="WHERE c.id::text = $1", tail="")
        rows = await self._fetch(sql, str(creator_id))
        return rows[0] if rows else None

    async def list_creators(self, *, limit: int = 100, offset: int = 0) -> List[Dict[str, Any]]:
        """Full creator records in creation order, for rebuilding the vector index."""
        sql = _DETAIL_SQL.format(where="", tail="ORDER BY c.created_at ASC LIMIT $1 OFFSET $2")
        return await self._fetch(sql, limit, offset)
