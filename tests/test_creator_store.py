import asyncio
import uuid
from decimal import Decimal

import pytest

from app.core.creator_store import (
    CreatorStore,
    extract_metadata_from_creator,
    primary_platform_metrics,
    record_to_dict,
)
from app.core.errors import CreatorStoreError


def test_record_to_dict_converts_driver_types():
    creator_id = uuid.uuid4()

    row = record_to_dict({"id": creator_id, "engagement_rate": Decimal("4.25"), "niche": "food_cooking"})

    assert row == {"id": str(creator_id), "engagement_rate": 4.25, "niche": "food_cooking"}


def test_metadata_from_relational_row_uses_primary_platform():
    creator = {
        "id": 12,
        "creator_name": "Dana",
        "primary_platform": "tiktok",
        "platform_metrics": {
            "tiktok": {"follower_count": 8000, "engagement_rate": 7.5},
            "youtube": {"follower_count": 100, "engagement_rate": 1.0},
        },
    }

    metadata = extract_metadata_from_creator(creator)

    assert primary_platform_metrics(creator) == {"follower_count": 8000, "engagement_rate": 7.5}
    assert metadata["creator_id"] == "12"
    assert metadata["follower_count"] == 8000
    assert metadata["niche"] == "general"
    assert metadata["tier"] == "micro"
    assert metadata["ai_enhanced"] is False


def test_metadata_defaults_for_sparse_rows():
    metadata = extract_metadata_from_creator({})

    assert metadata["creator_id"] == "unknown"
    assert metadata["creator_name"] == "Unknown"
    assert metadata["primary_platform"] == "instagram"
    assert metadata["follower_count"] == 0


def test_store_without_dsn_raises_store_error():
    store = CreatorStore("postgresql://unused")
    store.dsn = None

    with pytest.raises(CreatorStoreError):
        asyncio.run(store.get_by_id("1"))
