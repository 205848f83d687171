"""
LanceDB-backed creator vector index.

Search filters arrive as a sparse map of creator attributes (``niche``,
``min_followers`` ...). ``build_index_filter`` turns that map into a
provider-neutral predicate document and ``render_where`` renders the document
into the SQL predicate LanceDB evaluates during the vector scan.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Dict, Iterable, List, Optional

import lancedb
import pandas as pd

from app.config import settings
from app.core.errors import VectorSearchError
from app.core.taxonomy import VALID_NICHES, VALID_PLATFORMS, VALID_TIERS

logger = logging.getLogger(__name__)

VECTOR_ID_PREFIX = "creator_"

# filter key -> (index field, allowed values or None for free text)
EQUALITY_FILTERS: Dict[str, tuple] = {
    "niche": ("niche", VALID_NICHES),
    "tier": ("tier", VALID_TIERS),
    "primary_platform": ("primary_platform", VALID_PLATFORMS),
    "platform": ("primary_platform", VALID_PLATFORMS),
    "location_country": ("location_country", None),
    "verification_status": ("verification_status", None),
    "audience_age_primary": ("audience_age_primary", None),
    "audience_gender_primary": ("audience_gender_primary", None),
}

# filter key -> (index field, operator)
RANGE_FILTERS: Dict[str, tuple] = {
    "min_followers": ("follower_count", "$gte"),
    "max_followers": ("follower_count", "$lte"),
    "min_engagement_rate": ("engagement_rate", "$gte"),
    "max_engagement_rate": ("engagement_rate", "$lte"),
    "min_budget": ("sponsored_post_rate", "$gte"),
    "max_budget": ("sponsored_post_rate", "$lte"),
    "min_satisfaction_score": ("client_satisfaction_score", "$gte"),
}

RECOGNIZED_FILTERS = frozenset(EQUALITY_FILTERS) | frozenset(RANGE_FILTERS)

METADATA_COLUMNS = [
    "creator_id",
    "creator_name",
    "niche",
    "tier",
    "primary_platform",
    "location_country",
    "location_city",
    "verification_status",
    "total_collaborations",
    "client_satisfaction_score",
    "follower_count",
    "engagement_rate",
    "sponsored_post_rate",
    "audience_age_primary",
    "audience_gender_primary",
]


def vector_id_for(creator_id: Any) -> str:
    return f"{VECTOR_ID_PREFIX}{creator_id}"


def _as_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number:  # NaN
        return None
    return int(number) if number.is_integer() else number


def clean_filters(filters: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Keep only recognized, non-null and valid filter values."""
    cleaned: Dict[str, Any] = {}
    for key, value in (filters or {}).items():
        if value is None or key not in RECOGNIZED_FILTERS:
            continue
        if key in EQUALITY_FILTERS:
            _, allowed = EQUALITY_FILTERS[key]
            if not isinstance(value, str) or not value.strip():
                continue
            text = value.strip()
            if allowed is not None:
                text = text.lower()
                if text not in allowed:
                    continue
            cleaned[key] = text
        else:
            number = _as_number(value)
            if number is not None:
                cleaned[key] = number
    return cleaned


def build_index_filter(filters: Optional[Dict[str, Any]]) -> Optional[Dict[str, Dict[str, Any]]]:
    """Translate a sparse filter map into a predicate document.

    Equality filters become ``{"$eq": value}``; min/max filters on the same
    index field are merged into a single ``{"$gte": lo, "$lte": hi}`` range.
    Returns ``None`` when nothing constrains the search.
    """
    predicate: Dict[str, Dict[str, Any]] = {}
    for key, value in clean_filters(filters).items():
        if key in EQUALITY_FILTERS:
            field_name, _ = EQUALITY_FILTERS[key]
            predicate[field_name] = {"$eq": value}
        else:
            field_name, operator = RANGE_FILTERS[key]
            predicate.setdefault(field_name, {})[operator] = value
    return predicate or None


def _sql_literal(value: Any) -> str:
    if isinstance(value, str):
        return "'" + value.replace("'", "''") + "'"
    return repr(value)


def render_where(predicate: Optional[Dict[str, Dict[str, Any]]]) -> Optional[str]:
    """Render a predicate document as a LanceDB ``where`` clause."""
    if not predicate:
        return None

    clauses: List[str] = []
    for field_name, condition in predicate.items():
        if "$eq" in condition:
            clauses.append(f"{field_name} = {_sql_literal(condition['$eq'])}")
            continue
        lower = condition.get("$gte")
        upper = condition.get("$lte")
        if lower is not None and upper is not None:
            clauses.append(f"{field_name} BETWEEN {_sql_literal(lower)} AND {_sql_literal(upper)}")
        elif lower is not None:
            clauses.append(f"{field_name} >= {_sql_literal(lower)}")
        elif upper is not None:
            clauses.append(f"{field_name} <= {_sql_literal(upper)}")
    return " AND ".join(clauses) or None


def _has_table(db, name: str) -> bool:
    token = None
    while True:
        response = db.list_tables(page_token=token)
        if name in response.tables:
            return True
        token = response.page_token
        if not token:
            return False


def _vector_width(table) -> Optional[int]:
    vector_type = table.schema.field("vector").type
    return getattr(vector_type, "list_size", None)


def _row_metadata(row: Dict[str, Any]) -> Dict[str, Any]:
    metadata = {}
    for key, value in row.items():
        if key in ("id", "vector") or key.startswith("_"):
            continue
        metadata[key] = value
    return metadata


class CreatorVectorIndex:
    """Query, fetch and maintain creator vectors stored in a LanceDB table."""

    def __init__(self, db_path: Optional[str] = None, table_name: Optional[str] = None) -> None:
        self.db_path = db_path or settings.LANCEDB_PATH
        self.table_name = table_name or settings.VECTOR_TABLE_NAME
        self._db = None
        self._table = None
        self._lock = threading.Lock()

    def _connect(self):
        if self._db is None:
            self._db = lancedb.connect(self.db_path)
        return self._db

    def _open_table(self, *, required: bool = True):
        with self._lock:
            if self._table is not None:
                return self._table
            db = self._connect()
            if not _has_table(db, self.table_name):
                if required:
                    raise VectorSearchError(
                        f"Vector table '{self.table_name}' not found at {self.db_path}. Run index_creators.py first."
                    )
                return None
            self._table = db.open_table(self.table_name)
            return self._table

    async def initialize(self) -> None:
        await asyncio.to_thread(self._open_table)
        logger.info("Vector index ready | path=%s table=%s", self.db_path, self.table_name)

    # Reads

    def _query_blocking(
        self,
        vector: List[float],
        where: Optional[str],
        top_k: int,
        include_metadata: bool,
    ) -> List[Dict[str, Any]]:
        table = self._open_table()
        builder = table.search(vector).distance_type("cosine")
        if where:
            builder = builder.where(where, prefilter=True)
        rows = builder.limit(top_k).to_list()

        matches = []
        for row in rows:
            distance = float(row.get("_distance", 1.0))
            score = max(0.0, min(1.0, 1.0 - distance))
            matches.append(
                {
                    "id": row.get("id"),
                    "score": score,
                    "metadata": _row_metadata(row) if include_metadata else {},
                }
            )
        return matches

    async def query(
        self,
        vector: List[float],
        *,
        filter: Optional[Dict[str, Dict[str, Any]]] = None,
        top_k: int = 20,
        include_metadata: bool = True,
    ) -> List[Dict[str, Any]]:
        where = render_where(filter)
        return await asyncio.to_thread(self._query_blocking, vector, where, max(1, top_k), include_metadata)

    def _fetch_blocking(self, ids: List[str]) -> Dict[str, Dict[str, Any]]:
        table = self._open_table()
        id_list = ", ".join(_sql_literal(vector_id) for vector_id in ids)
        rows = table.search().where(f"id IN ({id_list})").limit(len(ids)).to_list()
        return {
            row["id"]: {"values": list(row["vector"]), "metadata": _row_metadata(row)}
            for row in rows
        }

    async def fetch(self, ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        id_list = [vector_id for vector_id in ids if vector_id]
        if not id_list:
            return {}
        return await asyncio.to_thread(self._fetch_blocking, id_list)

    def _stats_blocking(self) -> Dict[str, Any]:
        table = self._open_table()
        return {
            "table": self.table_name,
            "total_vector_count": table.count_rows(),
            "dimension": _vector_width(table),
        }

    async def stats(self) -> Dict[str, Any]:
        return await asyncio.to_thread(self._stats_blocking)

    # Writes

    def _upsert_blocking(self, records: List[Dict[str, Any]]) -> int:
        frame = pd.DataFrame.from_records(records)
        with self._lock:
            db = self._connect()
            if self._table is None and _has_table(db, self.table_name):
                self._table = db.open_table(self.table_name)
            if self._table is None:
                self._table = db.create_table(self.table_name, data=frame)
                return len(frame)
            table = self._table
        (
            table.merge_insert("id")
            .when_matched_update_all()
            .when_not_matched_insert_all()
            .execute(frame)
        )
        return len(frame)

    async def upsert(self, records: List[Dict[str, Any]]) -> int:
        """Insert or replace records shaped ``{"id", "vector", **metadata}``."""
        if not records:
            return 0
        return await asyncio.to_thread(self._upsert_blocking, records)

    def _delete_blocking(self, ids: List[str]) -> None:
        table = self._open_table()
        id_list = ", ".join(_sql_literal(vector_id) for vector_id in ids)
        table.delete(f"id IN ({id_list})")

    async def delete(self, ids: Iterable[str]) -> None:
        id_list = [vector_id for vector_id in ids if vector_id]
        if id_list:
            await asyncio.to_thread(self._delete_blocking, id_list)
