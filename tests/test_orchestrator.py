import asyncio

import pytest

from conftest import DIMENSION, FakeEmbedder, FakeIndex, FakeOpenAI, FakeStore, make_creator, make_match

from app.core.orchestrator import SearchOrchestrator, merge_search_results
from app.core.query_intelligence import QueryIntelligenceService
from app.core.types import SearchMatch, VectorSearchResponse
from app.core.vector_search import VectorSearchService, audience_sentence, brand_sentence, content_sentence


def build(index=None, store=None, embedder=None, client=None, timeout=5.0):
    index = index if index is not None else FakeIndex()
    store = store if store is not None else FakeStore()
    vector_search = VectorSearchService(index, embedder or FakeEmbedder())
    return SearchOrchestrator(QueryIntelligenceService(client), vector_search, store, timeout_seconds=timeout)


@pytest.mark.parametrize("query", ["a", " ", "x" * 501])
def test_invalid_query_makes_no_backend_calls(orchestrator, fake_index, fake_store, fake_embedder, query):
    outcome = asyncio.run(orchestrator.search(query))

    assert outcome.success is False
    assert outcome.errors
    assert fake_index.queries == []
    assert fake_embedder.texts == []
    assert fake_store.call_count == 0


def test_low_confidence_niche_never_reaches_strategies(orchestrator, fake_index, fake_store):
    outcome = asyncio.run(orchestrator.search("gaming YouTubers with high engagement"))

    assert outcome.success is True
    vector_filter = fake_index.queries[0]["filter"]
    assert "niche" not in vector_filter
    assert vector_filter["primary_platform"] == {"$eq": "youtube"}
    assert "niche" not in fake_store.search_calls[0]["filters"]
    applied = {item["filter"] for item in outcome.metadata["filters_applied"]}
    assert "niche" not in applied
    assert outcome.metadata["query_analysis"]["filters"]["niche"] == "tech_gaming"
    assert outcome.metadata["confidence_score"] == 0.5


def test_caller_override_niche_is_kept(orchestrator, fake_index):
    asyncio.run(orchestrator.search("gaming YouTubers", filters={"niche": "beauty_fashion", "unknown": 1}))

    vector_filter = fake_index.queries[0]["filter"]
    assert vector_filter["niche"] == {"$eq": "beauty_fashion"}
    assert "unknown" not in vector_filter


def test_merge_is_independent_of_input_order():
    a = SearchMatch("a", 0.5)
    b = SearchMatch("b", 0.4)
    row_b = {"id": "b", "search_rank": 0.3}
    row_c = {"id": "c", "search_rank": None, "creator_name": "C"}

    forward = merge_search_results(VectorSearchResponse([a, b], 2), [row_b, row_c], 10, vector_boost=1.2)
    backward = merge_search_results(VectorSearchResponse([b, a], 2), [row_c, row_b], 10, vector_boost=1.2)

    scores_forward = {item.creator_id: item.combined_score for item in forward.results}
    scores_backward = {item.creator_id: item.combined_score for item in backward.results}
    assert scores_forward == pytest.approx(scores_backward)
    assert scores_forward == pytest.approx({"a": 0.6, "b": (0.48 + 0.3) / 2, "c": 0.7})

    sources = {item.creator_id: item.source for item in forward.results}
    assert sources == {"a": "vector", "b": "hybrid", "c": "traditional"}
    assert [item.creator_id for item in forward.results] == ["c", "a", "b"]
    assert forward.total_matches == 3


def test_merge_defaults_and_truncation():
    merged = merge_search_results(
        VectorSearchResponse([SearchMatch("a", 0.75)], 1),
        [{"id": "a"}, {"id": "z"}],
        1,
        vector_boost=1.2,
    )

    assert len(merged.results) == 1
    assert merged.results[0].creator_id == "a"
    assert merged.results[0].combined_score == pytest.approx((0.9 + 0.8) / 2)
    assert merged.total_matches == 2


def test_relational_failure_still_returns_vector_results(fake_index):
    store = FakeStore(
        creators={cid: make_creator(cid) for cid in ("1", "2")},
        search_error=RuntimeError("postgres is down"),
    )
    orchestrator = build(index=fake_index, store=store)

    outcome = asyncio.run(orchestrator.search("gaming creators with big followings"))

    assert outcome.success is True
    assert [result.creator_id for result in outcome.results] == ["1", "2"]
    assert {result.source for result in outcome.results} == {"vector"}
    assert outcome.metadata["hybrid_search_used"] is True


def test_results_bounded_and_unresolved_ids_reported():
    index = FakeIndex(matches=[make_match(str(i), 1.0 - i / 10) for i in range(1, 7)])
    store = FakeStore(creators={cid: make_creator(cid) for cid in ("1", "2", "3", "4")})
    orchestrator = build(index=index, store=store)

    outcome = asyncio.run(orchestrator.search("creators for a launch", max_results=5, use_hybrid_search=False))

    assert outcome.success is True
    assert len(outcome.results) <= 5
    assert [result.creator_id for result in outcome.results] == ["1", "2", "3", "4"]
    assert outcome.metadata["unresolved_ids"] == ["5"]
    assert all(result.creator_data["id"] in store.creators for result in outcome.results)
    payload = outcome.results[0].to_dict()
    assert payload["search_metadata"]["creator_uuid"] == "1"
    assert payload["search_rank"] == 1


@pytest.mark.parametrize("hybrid", [True, False])
def test_deadline_expiry_is_a_structured_failure(fake_index, fake_store, hybrid):
    orchestrator = build(index=fake_index, store=fake_store, embedder=FakeEmbedder(delay=0.5), timeout=0.05)

    outcome = asyncio.run(orchestrator.search("gaming creators", use_hybrid_search=hybrid))

    assert outcome.success is False
    assert outcome.errors
    assert outcome.fallback_suggestion


def test_similarity_strategy_uses_first_name_match():
    index = FakeIndex(
        matches=[make_match("42", 1.0), make_match("7", 0.9)],
        vectors={"creator_42": {"values": [0.2] * DIMENSION, "metadata": {}}},
    )
    store = FakeStore(
        creators={"7": make_creator("7")},
        rows=[make_creator("42", creator_name="Casey"), make_creator("43", creator_name="Casey Two")],
    )
    client = FakeOpenAI(
        chat_reply={"search_intent": "find_similar", "similar_to_creator": "Casey", "confidence_score": 0.95}
    )
    orchestrator = build(index=index, store=store, client=client)

    outcome = asyncio.run(orchestrator.search("creators similar to Casey"))

    assert outcome.success is True
    assert outcome.metadata["search_type"] == "similarity"
    assert [result.creator_id for result in outcome.results] == ["7"]
    assert store.search_calls[0] == {"term": "Casey", "filters": {}, "limit": 5}


def test_similarity_strategy_falls_back_to_general_search(fake_index, fake_store):
    client = FakeOpenAI(
        chat_reply={"search_intent": "find_similar", "similar_to_creator": "Nobody", "confidence_score": 0.95}
    )
    orchestrator = build(index=fake_index, store=fake_store, client=client)

    outcome = asyncio.run(orchestrator.search("creators similar to Nobody"))

    assert outcome.success is True
    assert outcome.metadata["search_strategy"] == "find_similar"
    assert outcome.metadata["search_type"] == "hybrid"


def test_aspect_strategy_without_aspect_uses_original_query(fake_index, fake_store, fake_embedder):
    client = FakeOpenAI(chat_reply={"search_intent": "brand_match", "confidence_score": 0.9})
    orchestrator = build(index=fake_index, store=fake_store, embedder=fake_embedder, client=client)

    outcome = asyncio.run(orchestrator.search("creators who worked with sneaker brands"))

    assert outcome.success is True
    assert fake_embedder.texts == ["creators who worked with sneaker brands"]


@pytest.mark.parametrize(
    "intent, aspect, sentence",
    [
        ("audience_match", "audience", audience_sentence),
        ("content_match", "content", content_sentence),
        ("brand_match", "brands", brand_sentence),
    ],
)
def test_aspect_strategy_embeds_descriptive_sentence(fake_index, fake_store, fake_embedder, intent, aspect, sentence):
    client = FakeOpenAI(
        chat_reply={"search_intent": intent, "search_aspects": {aspect: "college students"}, "confidence_score": 0.9}
    )
    orchestrator = build(index=fake_index, store=fake_store, embedder=fake_embedder, client=client)

    outcome = asyncio.run(orchestrator.search("creators for college students", max_results=7))

    assert outcome.success is True
    assert outcome.metadata["search_strategy"] == intent
    assert fake_embedder.texts == [sentence("college students")]
    assert [query["top_k"] for query in fake_index.queries] == [7]


@pytest.mark.parametrize("max_results", [0, -3, "ten", 2.5, True])
def test_invalid_max_results_is_a_structured_failure(orchestrator, fake_index, fake_store, max_results):
    outcome = asyncio.run(orchestrator.search("gaming creators", max_results=max_results, use_hybrid_search=False))

    assert outcome.success is False
    assert outcome.errors == ["max_results must be a positive integer"]
    assert fake_index.queries == []
    assert fake_store.call_count == 0


def test_max_results_of_one_bounds_results(orchestrator):
    outcome = asyncio.run(orchestrator.search("gaming creators", max_results=1, use_hybrid_search=False))

    assert outcome.success is True
    assert len(outcome.results) == 1


def test_advanced_search_rejects_invalid_max_results(orchestrator, fake_index):
    outcome = asyncio.run(orchestrator.advanced_search({"content_focus": "unboxing", "max_results": "many"}))

    assert outcome.success is False
    assert fake_index.queries == []


def test_vector_failure_outside_hybrid_is_reported(fake_store):
    orchestrator = build(store=fake_store, embedder=FakeEmbedder(error=RuntimeError("index offline")))

    outcome = asyncio.run(orchestrator.search("gaming creators", use_hybrid_search=False))

    assert outcome.success is False
    assert outcome.errors == ["index offline"]


def test_combined_suggestions_are_deduplicated_and_capped(orchestrator):
    result = asyncio.run(orchestrator.get_search_suggestions("gaming"))

    assert len(result["suggestions"]) <= 8
    assert len(result["suggestions"]) == len(set(result["suggestions"]))
    assert "tech gaming" in result["suggestions"]
    assert result["sources"] == {"ai_generated": 5, "vector_based": 3}


def test_suggestions_fall_back_when_vector_search_fails(fake_store):
    orchestrator = build(store=fake_store, embedder=FakeEmbedder(error=RuntimeError("boom")))

    result = asyncio.run(orchestrator.get_search_suggestions("travel"))

    assert result["sources"] == {"fallback": True}
    assert result["suggestions"][0] == "travel creators"


def test_advanced_search_weights_aspects_and_builds_filters(fake_index, fake_store):
    orchestrator = build(index=fake_index, store=fake_store)

    outcome = asyncio.run(
        orchestrator.advanced_search(
            {
                "content_focus": "unboxing videos",
                "audience_focus": "college students",
                "budget_range": {"min": 100, "max": 900},
                "performance_metrics": {"min_engagement_rate": 2.0},
                "max_results": 5,
            }
        )
    )

    assert outcome.success is True
    assert outcome.metadata["aspects_searched"] == ["content", "audience"]
    assert fake_index.queries[0]["filter"] == {
        "sponsored_post_rate": {"$gte": 100, "$lte": 900},
        "engagement_rate": {"$gte": 2.0},
    }
    assert len(outcome.results) <= 5


def test_advanced_search_without_focus_fails_cleanly(orchestrator):
    outcome = asyncio.run(orchestrator.advanced_search({"max_results": 5}))

    assert outcome.success is False
    assert outcome.errors


def test_health_check(orchestrator):
    health = asyncio.run(orchestrator.health_check())

    assert health["status"] == "healthy"
    assert health["components"]["query_processing"]["confidence_score"] == 0.5
