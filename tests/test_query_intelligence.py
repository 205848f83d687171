import asyncio

from conftest import FakeOpenAI

from app.core.query_intelligence import QueryIntelligenceService, fallback_suggestions
from app.core.types import SearchIntent


def analyze(service, query):
    return asyncio.run(service.analyze(query))


def test_fallback_detects_niche_and_platform():
    service = QueryIntelligenceService(None)

    analysis = analyze(service, "gaming YouTubers with high engagement")

    assert analysis.filters["niche"] == "tech_gaming"
    assert analysis.filters["platform"] == "youtube"
    assert analysis.confidence_score == 0.5
    assert analysis.intent is SearchIntent.FIND_CREATORS
    assert analysis.search_aspects.general == "gaming YouTubers with high engagement"
    assert analysis.semantic_query == analysis.original_query


def test_fallback_first_niche_keyword_wins():
    service = QueryIntelligenceService(None)

    analysis = service.fallback_analysis("fitness and food creators")

    assert analysis.filters["niche"] == "food_cooking"


def test_fallback_budget_bounds():
    service = QueryIntelligenceService(None)

    under = service.fallback_analysis("beauty creators under $500 or $1,200")
    over = service.fallback_analysis("travel creators above $300 and $2,000")

    assert under.filters["max_budget"] == 500
    assert "min_budget" not in under.filters
    assert over.filters["min_budget"] == 2000
    assert "max_budget" not in over.filters


def test_fallback_tier_and_similarity_intent():
    service = QueryIntelligenceService(None)

    analysis = service.fallback_analysis("micro creators similar to MrBeast")

    assert analysis.filters["tier"] == "micro"
    assert analysis.intent is SearchIntent.FIND_SIMILAR


def test_llm_analysis_keeps_niche_when_confident():
    client = FakeOpenAI(
        chat_reply='```json\n{"search_intent": "find_creators", "filters": {"niche": "tech_gaming", '
        '"platform": "youtube"}, "confidence_score": 0.95}\n```'
    )
    service = QueryIntelligenceService(client, model="gpt-test")

    analysis = analyze(service, "gaming YouTubers")

    assert analysis.filters == {"niche": "tech_gaming", "platform": "youtube"}
    assert analysis.confidence_score == 0.95
    call = client.chat_calls[0]
    assert call["model"] == "gpt-test"
    assert call["temperature"] == 0.1
    assert call["max_tokens"] == 1000


def test_llm_analysis_drops_niche_below_threshold():
    client = FakeOpenAI(
        chat_reply={
            "search_intent": "audience_match",
            "filters": {"niche": "beauty_fashion", "max_budget": 800, "platform": "myspace"},
            "search_aspects": {"audience": "young women"},
            "confidence_score": 0.7,
        }
    )
    service = QueryIntelligenceService(client)

    analysis = analyze(service, "beauty creators for young women under $800")

    assert "niche" not in analysis.filters
    assert "platform" not in analysis.filters
    assert analysis.filters["max_budget"] == 800
    assert analysis.intent is SearchIntent.AUDIENCE_MATCH
    assert analysis.search_aspects.audience == "young women"


def test_llm_analysis_defaults_missing_fields():
    service = QueryIntelligenceService(FakeOpenAI(chat_reply={"search_intent": "dance_off"}))

    analysis = analyze(service, "dance creators")

    assert analysis.intent is SearchIntent.FIND_CREATORS
    assert analysis.semantic_query == "dance creators"
    assert analysis.confidence_score == 0.8
    assert analysis.filters == {}


def test_tier_expands_only_without_follower_bounds():
    service = QueryIntelligenceService(None)

    expanded = service.validate_and_enhance({"filters": {"tier": "macro"}, "confidence_score": 0.9}, "q")
    explicit = service.validate_and_enhance(
        {"filters": {"tier": "mega", "min_followers": 5000}, "confidence_score": 0.9}, "q"
    )
    mega = service.validate_and_enhance({"filters": {"tier": "mega"}, "confidence_score": 0.9}, "q")

    assert expanded.filters["min_followers"] == 100000
    assert expanded.filters["max_followers"] == 999999
    assert explicit.filters["min_followers"] == 5000
    assert "max_followers" not in explicit.filters
    assert mega.filters["min_followers"] == 1000000
    assert "max_followers" not in mega.filters


def test_malformed_llm_response_falls_back():
    service = QueryIntelligenceService(FakeOpenAI(chat_reply="not json at all"))

    analysis = analyze(service, "cooking creators on tiktok")

    assert analysis.confidence_score == 0.5
    assert analysis.filters["niche"] == "food_cooking"
    assert analysis.filters["platform"] == "tiktok"


def test_provider_error_falls_back():
    service = QueryIntelligenceService(FakeOpenAI(chat_reply=RuntimeError("rate limited")))

    analysis = analyze(service, "fitness instagram creators")

    assert analysis.confidence_score == 0.5
    assert analysis.filters["niche"] == "fitness_health"


def test_validate_query_bounds_and_advice():
    service = QueryIntelligenceService(None)

    too_short = service.validate_query(" a ")
    too_long = service.validate_query("x" * 501)
    numeric = service.validate_query("12345")
    single = service.validate_query("gaming")
    fine = service.validate_query("gaming creators on youtube")

    assert not too_short.is_valid
    assert too_short.errors == ["Query too short. Please provide at least 2 characters."]
    assert not too_long.is_valid
    assert too_long.errors == ["Query too long. Please limit to 500 characters."]
    assert numeric.is_valid
    assert numeric.warnings == ["Query might be too generic. Consider adding more descriptive terms."]
    assert single.suggestions == ["Try adding more details like platform, budget, or audience type."]
    assert fine.is_valid and not fine.warnings and not fine.suggestions


def test_suggestions_from_llm_and_fallback():
    ok = QueryIntelligenceService(FakeOpenAI(chat_reply='["gaming on youtube", "gaming under $1000"]'))
    broken = QueryIntelligenceService(FakeOpenAI(chat_reply=RuntimeError("down")))

    assert asyncio.run(ok.generate_search_suggestions("gaming")) == ["gaming on youtube", "gaming under $1000"]
    assert asyncio.run(broken.generate_search_suggestions("gaming")) == fallback_suggestions("gaming")
    assert fallback_suggestions("tech")[1] == "tech influencers under $500"


def test_detect_intent_and_entities():
    detect = QueryIntelligenceService.detect_search_intent

    assert detect("creators like Emma") is SearchIntent.FIND_SIMILAR
    assert detect("audience of parents") is SearchIntent.AUDIENCE_MATCH
    assert detect("video content about tech") is SearchIntent.CONTENT_MATCH
    assert detect("sponsor ready creators") is SearchIntent.BRAND_MATCH
    assert detect("creators") is SearchIntent.FIND_CREATORS

    entities = QueryIntelligenceService.extract_entities("Creators like Casey Neistat on YouTube in New York under $1,500")
    assert "Casey Neistat" in entities["creators"]
    assert "YouTube" not in entities["creators"]
    assert entities["amounts"] == [1500.0]
    assert entities["locations"] == ["New York"]
