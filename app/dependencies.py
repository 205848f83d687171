"""Shared dependencies for FastAPI endpoints"""
from typing import Optional
from fastapi import HTTPException
from openai import AsyncOpenAI

from app.config import settings
from app.core.creator_store import CreatorStore
from app.core.embeddings import EmbeddingClient
from app.core.orchestrator import SearchOrchestrator
from app.core.query_intelligence import QueryIntelligenceService
from app.core.vector_index import CreatorVectorIndex
from app.core.vector_search import VectorSearchService
from app.services import CreatorIndexer, RecommendationService

# Instances built once at startup
_openai_client: Optional[AsyncOpenAI] = None
_creator_store: Optional[CreatorStore] = None
_vector_index: Optional[CreatorVectorIndex] = None
_query_intelligence: Optional[QueryIntelligenceService] = None
_vector_search: Optional[VectorSearchService] = None
_orchestrator: Optional[SearchOrchestrator] = None
_recommendation_service: Optional[RecommendationService] = None
_indexer: Optional[CreatorIndexer] = None


def init_openai_client() -> bool:
    """Create the shared OpenAI client when an API key is configured"""
    global _openai_client
    if not settings.OPENAI_API_KEY:
        print("⚠️ OPENAI_API_KEY not set; query analysis will use keyword heuristics only")
        return False
    _openai_client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY, base_url=settings.OPENAI_BASE_URL)
    print("✅ OpenAI client initialized")
    return True


def init_creator_store() -> bool:
    """Initialize the relational creator store (the pool opens on first use)"""
    global _creator_store
    if not settings.DATABASE_URL:
        print("⚠️ DATABASE_URL not set; keyword search and enrichment unavailable")
        return False
    _creator_store = CreatorStore(settings.DATABASE_URL)
    print("✅ Creator store configured")
    return True


def init_search_services() -> bool:
    """Initialize the vector index, search services and orchestrator"""
    global _vector_index, _query_intelligence, _vector_search, _orchestrator, _recommendation_service, _indexer
    _query_intelligence = QueryIntelligenceService(_openai_client)

    if _openai_client is None:
        print("⚠️ Vector search disabled: embeddings need OPENAI_API_KEY")
        return False
    if _creator_store is None:
        print("⚠️ Search orchestrator disabled: creator store not configured")
        return False

    try:
        embedder = EmbeddingClient(_openai_client)
        _vector_index = CreatorVectorIndex(settings.LANCEDB_PATH, settings.VECTOR_TABLE_NAME)
        _vector_search = VectorSearchService(_vector_index, embedder)
        _orchestrator = SearchOrchestrator(_query_intelligence, _vector_search, _creator_store)
        _recommendation_service = RecommendationService(_orchestrator)
        _indexer = CreatorIndexer(_vector_index, embedder)
        print("✅ Search services initialized")
        print(f"   • Vector index: {settings.LANCEDB_PATH}/{settings.VECTOR_TABLE_NAME}")
        print(f"   • Chat model: {settings.OPENAI_CHAT_MODEL} | Embed model: {settings.EMBED_MODEL}")
        return True
    except Exception as e:
        print(f"❌ Error initializing search services: {e}")
        _vector_search = _orchestrator = _recommendation_service = _indexer = None
        return False


async def shutdown_services() -> None:
    """Release pooled connections"""
    if _creator_store is not None:
        await _creator_store.close()


def get_orchestrator() -> SearchOrchestrator:
    """Dependency to get the search orchestrator"""
    if _orchestrator is None:
        raise HTTPException(
            status_code=503,
            detail="Search orchestrator not initialized. Check OPENAI_API_KEY and DATABASE_URL."
        )
    return _orchestrator


def get_creator_store() -> CreatorStore:
    """Dependency to get the relational creator store"""
    if _creator_store is None:
        raise HTTPException(status_code=503, detail="Creator store not configured. Set DATABASE_URL.")
    return _creator_store


def get_recommendation_service() -> RecommendationService:
    if _recommendation_service is None:
        raise HTTPException(status_code=503, detail="Recommendation service not initialized.")
    return _recommendation_service


def get_indexer() -> CreatorIndexer:
    if _indexer is None:
        raise HTTPException(status_code=503, detail="Creator indexer not initialized.")
    return _indexer


async def get_optional_orchestrator() -> Optional[SearchOrchestrator]:
    """Get the orchestrator if available, None otherwise"""
    return _orchestrator
