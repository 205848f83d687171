import asyncio
import json
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from app.core.embeddings import EmbeddingClient  # noqa: E402
from app.core.orchestrator import SearchOrchestrator  # noqa: E402
from app.core.query_intelligence import QueryIntelligenceService  # noqa: E402
from app.core.vector_search import VectorSearchService  # noqa: E402

DIMENSION = 4


class FakeOpenAI:
    """Just enough of AsyncOpenAI for chat completions and embeddings."""

    def __init__(self, chat_reply: Any = None, embedding: Optional[List[float]] = None) -> None:
        self.chat_reply = chat_reply
        self.embedding = embedding or [0.1] * DIMENSION
        self.chat_calls: List[Dict[str, Any]] = []
        self.embedding_calls: List[Dict[str, Any]] = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create_completion))
        self.embeddings = SimpleNamespace(create=self._create_embedding)

    async def _create_completion(self, **kwargs):
        self.chat_calls.append(kwargs)
        if isinstance(self.chat_reply, Exception):
            raise self.chat_reply
        content = self.chat_reply if isinstance(self.chat_reply, str) else json.dumps(self.chat_reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])

    async def _create_embedding(self, **kwargs):
        self.embedding_calls.append(kwargs)
        return SimpleNamespace(data=[SimpleNamespace(embedding=list(self.embedding))])


class FakeEmbedder:
    def __init__(self, delay: float = 0.0, error: Optional[Exception] = None) -> None:
        self.delay = delay
        self.error = error
        self.texts: List[str] = []

    async def embed_text(self, text: str) -> List[float]:
        self.texts.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return [float(len(text) % 7), 0.5, 0.25, 1.0]


class FakeIndex:
    """In-memory vector index returning scripted matches."""

    def __init__(self, matches: Optional[List[Dict[str, Any]]] = None, vectors=None) -> None:
        self.matches = matches or []
        self.vectors: Dict[str, Dict[str, Any]] = vectors or {}
        self.queries: List[Dict[str, Any]] = []
        self.upserts: List[List[Dict[str, Any]]] = []
        self.deleted: List[str] = []

    async def query(self, vector, *, filter=None, top_k=20, include_metadata=True):
        self.queries.append({"vector": vector, "filter": filter, "top_k": top_k})
        return [dict(match) for match in self.matches[:top_k]]

    async def fetch(self, ids):
        return {vector_id: self.vectors[vector_id] for vector_id in ids if vector_id in self.vectors}

    async def stats(self):
        return {"table": "fake", "total_vector_count": len(self.vectors), "dimension": DIMENSION}

    async def upsert(self, records):
        self.upserts.append(list(records))
        return len(records)

    async def delete(self, ids):
        self.deleted.extend(ids)


class FakeStore:
    def __init__(self, creators: Optional[Dict[str, Dict[str, Any]]] = None, rows=None, search_error=None) -> None:
        self.creators = creators or {}
        self.rows = rows or []
        self.search_error = search_error
        self.search_calls: List[Dict[str, Any]] = []
        self.lookups: List[str] = []

    async def search_by_text(self, term, filters=None, *, limit=20, page=1):
        self.search_calls.append({"term": term, "filters": filters, "limit": limit})
        if self.search_error is not None:
            raise self.search_error
        return [dict(row) for row in self.rows[:limit]]

    async def get_by_id(self, creator_id):
        self.lookups.append(creator_id)
        creator = self.creators.get(str(creator_id))
        return dict(creator) if creator else None

    async def list_creators(self, *, limit=100, offset=0):
        return list(self.creators.values())[offset : offset + limit]

    @property
    def call_count(self) -> int:
        return len(self.search_calls) + len(self.lookups)


def make_match(creator_id: str, score: float, **metadata: Any) -> Dict[str, Any]:
    return {
        "id": f"creator_{creator_id}",
        "score": score,
        "metadata": {"creator_id": creator_id, "creator_name": f"Creator {creator_id}", **metadata},
    }


def make_creator(creator_id: str, **fields: Any) -> Dict[str, Any]:
    creator = {
        "id": creator_id,
        "creator_name": f"Creator {creator_id}",
        "niche": "tech_gaming",
        "tier": "micro",
        "primary_platform": "youtube",
        "ai_enhanced": False,
    }
    creator.update(fields)
    return creator


@pytest.fixture
def fake_index():
    return FakeIndex(
        matches=[
            make_match("1", 0.92, niche="tech_gaming"),
            make_match("2", 0.61, niche="beauty_fashion"),
            make_match("3", 0.15, niche="tech_gaming"),
        ]
    )


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def fake_store():
    return FakeStore(creators={cid: make_creator(cid) for cid in ("1", "2", "3", "4")})


@pytest.fixture
def vector_search(fake_index, fake_embedder):
    return VectorSearchService(fake_index, fake_embedder)


@pytest.fixture
def orchestrator(vector_search, fake_store):
    return SearchOrchestrator(QueryIntelligenceService(None), vector_search, fake_store, timeout_seconds=5.0)


@pytest.fixture
def fake_openai():
    return FakeOpenAI()


@pytest.fixture
def openai_embedder(fake_openai):
    return EmbeddingClient(fake_openai, model="test-embed", dimension=DIMENSION)
