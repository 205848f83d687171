"""LLM-backed query analysis with a deterministic keyword fallback."""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from app.config import settings
from app.core.deadline import Deadline
from app.core.taxonomy import (
    NICHE_KEYWORDS,
    PLATFORM_NAMES,
    VALID_NICHES,
    VALID_PLATFORMS,
    VALID_TIERS,
    tier_to_follower_filters,
)
from app.core.types import QueryAnalysis, QueryValidation, SearchAspects, SearchIntent

logger = logging.getLogger(__name__)

DOLLAR_AMOUNT = re.compile(r"\$(\d+(?:,\d{3})*(?:\.\d{2})?)")
CAPITALIZED_PHRASE = re.compile(r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\b")
LOCATION_PATTERNS = [
    re.compile(r"\bin\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)"),
    re.compile(r"\bfrom\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)"),
]
GENERIC_PATTERNS = [re.compile(r"^\d+$"), re.compile(r"^[^a-zA-Z]*$")]

MIN_QUERY_LENGTH = 2
MAX_QUERY_LENGTH = 500
FALLBACK_CONFIDENCE = 0.5
DEFAULT_CONFIDENCE = 0.8

# filter key -> allowed values
ENUM_FILTERS = {
    "niche": VALID_NICHES,
    "tier": VALID_TIERS,
    "platform": VALID_PLATFORMS,
}

_FENCE_OPEN = re.compile(r"```(?:json)?\s*")
_FENCE_CLOSE = re.compile(r"```\s*$")


def _strip_code_fence(text: str) -> str:
    text = _FENCE_OPEN.sub("", text.strip(), count=1)
    return _FENCE_CLOSE.sub("", text).strip()


def _dollar_amounts(text: str) -> List[float]:
    return [float(match.replace(",", "")) for match in DOLLAR_AMOUNT.findall(text)]


def _build_analysis_prompt(query: str) -> str:
    lines: List[str] = []
    lines.append("Analyze this influencer search query and extract structured search parameters.")
    lines.append("Return a JSON object with the extracted information.")
    lines.append("")
    lines.append(f'Query: "{query}"')
    lines.append("")
    lines.append("Extract these parameters if mentioned:")
    lines.append(f"1. niche ({', '.join(VALID_NICHES)})")
    lines.append(f"2. tier ({', '.join(VALID_TIERS)}) or follower count ranges")
    lines.append(f"3. platform ({', '.join(VALID_PLATFORMS)})")
    lines.append("4. location (country/city)")
    lines.append("5. budget constraints (min/max amounts)")
    lines.append("6. audience demographics (age groups, gender)")
    lines.append("7. content style/type")
    lines.append("8. engagement requirements")
    lines.append("9. brand collaboration history")
    lines.append("10. specific creator names or similar creators")
    lines.append(f"11. search intent ({', '.join(intent.value for intent in SearchIntent)})")
    lines.append("")
    lines.append("Return JSON in this format:")
    lines.append(
        json.dumps(
            {
                "search_intent": "|".join(intent.value for intent in SearchIntent),
                "filters": {
                    "niche": "string or null",
                    "tier": "string or null",
                    "platform": "string or null",
                    "location_country": "string or null",
                    "location_city": "string or null",
                    "min_followers": "number or null",
                    "max_followers": "number or null",
                    "min_engagement_rate": "number or null",
                    "max_engagement_rate": "number or null",
                    "min_budget": "number or null",
                    "max_budget": "number or null",
                    "audience_age_primary": "string or null",
                    "audience_gender_primary": "string or null",
                    "verification_status": "string or null",
                },
                "search_aspects": {
                    "content": "string description or null",
                    "audience": "string description or null",
                    "brands": "string description or null",
                    "general": "string description or null",
                },
                "similar_to_creator": "string or null",
                "semantic_query": "enhanced search query string",
                "confidence_score": "0.0-1.0",
            },
            indent=2,
        )
    )
    lines.append("")
    lines.append("For budget ranges:")
    lines.append('- "under $500" = max_budget: 500')
    lines.append('- "$500-$2000" = min_budget: 500, max_budget: 2000')
    lines.append('- "over $5000" = min_budget: 5000')
    lines.append("")
    lines.append("For follower counts:")
    lines.append("- micro = 1K-100K")
    lines.append("- macro = 100K-1M")
    lines.append("- mega = 1M+")
    lines.append('- "under 50K" = max_followers: 50000')
    lines.append('- "over 1 million" = min_followers: 1000000')
    lines.append("")
    lines.append("Examples:")
    lines.append(
        '- "Gaming YouTubers with high engagement" -> niche: tech_gaming, platform: youtube, '
        "search_intent: find_creators"
    )
    lines.append(
        '- "Beauty creators similar to James Charles" -> niche: beauty_fashion, '
        'similar_to_creator: "James Charles", search_intent: find_similar'
    )
    lines.append(
        '- "Tech reviewers under $1000 with young male audience" -> niche: tech_gaming, max_budget: 1000, '
        'audience_age_primary: "18-24", audience_gender_primary: "male"'
    )
    return "\n".join(lines)


def _build_suggestion_prompt(partial_query: str) -> str:
    lines = [
        f'Generate 5 relevant search suggestions for this partial influencer search query: "{partial_query}"',
        "",
        "Make suggestions that:",
        "1. Complete the user's thought",
        "2. Add relevant filters or criteria",
        "3. Suggest popular search patterns",
        "4. Include different search approaches",
        "",
        "Format as JSON array of strings:",
        '["suggestion 1", "suggestion 2", "suggestion 3", "suggestion 4", "suggestion 5"]',
        "",
        'Examples for "gaming":',
        '["gaming YouTubers with high engagement", "gaming creators under $1000", '
        '"gaming influencers similar to PewDiePie", "micro gaming creators", "gaming content creators in US"]',
    ]
    return "\n".join(lines)


def fallback_suggestions(partial_query: str) -> List[str]:
    return [
        f"{partial_query} creators with high engagement",
        f"{partial_query} influencers under $500",
        f"micro {partial_query} creators",
        f"{partial_query} content creators",
        f"verified {partial_query} influencers",
    ]


class QueryIntelligenceService:
    """Turn free-text creator searches into a structured ``QueryAnalysis``.

    When no OpenAI client is configured every analysis goes through the
    keyword fallback, which never raises.
    """

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        *,
        model: Optional[str] = None,
        confidence_threshold: Optional[float] = None,
    ) -> None:
        self._client = client
        self.model = model or settings.OPENAI_CHAT_MODEL
        self.confidence_threshold = (
            settings.NICHE_CONFIDENCE_THRESHOLD if confidence_threshold is None else confidence_threshold
        )

    @property
    def llm_enabled(self) -> bool:
        return self._client is not None

    async def _complete(self, prompt: str, *, temperature: float, max_tokens: int, deadline: Deadline) -> str:
        response = await deadline.run(
            self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=max_tokens,
                temperature=temperature,
            ),
            label="query analysis",
        )
        content = response.choices[0].message.content or ""
        return _strip_code_fence(content)

    async def analyze(self, query: str, deadline: Optional[Deadline] = None) -> QueryAnalysis:
        deadline = deadline or Deadline.unbounded()
        if not self.llm_enabled:
            return self.fallback_analysis(query)

        try:
            raw = await self._complete(
                _build_analysis_prompt(query), temperature=0.1, max_tokens=1000, deadline=deadline
            )
            parsed = json.loads(raw)
            if not isinstance(parsed, dict):
                raise ValueError("analysis response is not a JSON object")
            return self.validate_and_enhance(parsed, query)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Query analysis failed, using keyword fallback: %s", exc)
            return self.fallback_analysis(query)

    def validate_and_enhance(self, parsed: Dict[str, Any], original_query: str) -> QueryAnalysis:
        """Default missing fields and constrain extracted filters to the taxonomy."""
        raw_filters = parsed.get("filters")
        filters: Dict[str, Any] = {}
        if isinstance(raw_filters, dict):
            filters = {key: value for key, value in raw_filters.items() if value is not None}

        for key, allowed in ENUM_FILTERS.items():
            value = filters.get(key)
            if value is None:
                continue
            normalized = value.strip().lower() if isinstance(value, str) else None
            if normalized in allowed:
                filters[key] = normalized
            else:
                filters.pop(key)

        confidence = parsed.get("confidence_score")
        try:
            confidence = float(confidence)
        except (TypeError, ValueError):
            confidence = DEFAULT_CONFIDENCE
        confidence = max(0.0, min(1.0, confidence))

        if "niche" in filters and confidence < self.confidence_threshold:
            logger.info("Dropping auto-detected niche filter due to low confidence: %s", confidence)
            filters.pop("niche")

        if "tier" in filters and filters.get("min_followers") is None and filters.get("max_followers") is None:
            filters.update(tier_to_follower_filters(filters["tier"]))

        semantic_query = parsed.get("semantic_query")
        if not isinstance(semantic_query, str) or not semantic_query.strip():
            semantic_query = original_query

        similar_to = parsed.get("similar_to_creator")
        if not isinstance(similar_to, str) or not similar_to.strip():
            similar_to = None

        return QueryAnalysis(
            intent=SearchIntent.parse(parsed.get("search_intent")),
            filters=filters,
            semantic_query=semantic_query,
            confidence_score=confidence,
            original_query=original_query,
            search_aspects=SearchAspects.from_dict(parsed.get("search_aspects")),
            similar_to_creator=similar_to,
        )

    def fallback_analysis(self, query: str) -> QueryAnalysis:
        lowered = query.lower()
        filters: Dict[str, Any] = {}

        for keyword, niche in NICHE_KEYWORDS:
            if keyword in lowered:
                filters["niche"] = niche
                break

        for platform in VALID_PLATFORMS:
            if platform in lowered:
                filters["platform"] = platform
                break

        amounts = _dollar_amounts(lowered)
        if amounts:
            if "under" in lowered or "below" in lowered:
                filters["max_budget"] = min(amounts)
            elif "over" in lowered or "above" in lowered:
                filters["min_budget"] = max(amounts)

        # last keyword wins
        for tier in VALID_TIERS:
            if tier in lowered:
                filters["tier"] = tier

        intent = SearchIntent.FIND_CREATORS
        if "similar to" in lowered or "like " in lowered:
            intent = SearchIntent.FIND_SIMILAR

        return QueryAnalysis(
            intent=intent,
            filters=filters,
            semantic_query=query,
            confidence_score=FALLBACK_CONFIDENCE,
            original_query=query,
            search_aspects=SearchAspects(general=query),
        )

    def validate_query(self, query: str) -> QueryValidation:
        validation = QueryValidation()
        query = query or ""

        if len(query.strip()) < MIN_QUERY_LENGTH:
            validation.is_valid = False
            validation.errors.append("Query too short. Please provide at least 2 characters.")

        if len(query) > MAX_QUERY_LENGTH:
            validation.is_valid = False
            validation.errors.append("Query too long. Please limit to 500 characters.")

        for pattern in GENERIC_PATTERNS:
            if pattern.search(query.strip()):
                validation.warnings.append(
                    "Query might be too generic. Consider adding more descriptive terms."
                )
                break

        if len(query.split(" ")) == 1:
            validation.suggestions.append(
                "Try adding more details like platform, budget, or audience type."
            )

        return validation

    async def generate_search_suggestions(
        self, partial_query: str, deadline: Optional[Deadline] = None
    ) -> List[str]:
        deadline = deadline or Deadline.unbounded()
        if not self.llm_enabled:
            return fallback_suggestions(partial_query)

        try:
            raw = await self._complete(
                _build_suggestion_prompt(partial_query), temperature=0.7, max_tokens=300, deadline=deadline
            )
            suggestions = json.loads(raw)
            if not isinstance(suggestions, list):
                raise ValueError("suggestion response is not a JSON array")
            return [str(item).strip() for item in suggestions if str(item).strip()]
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Suggestion generation failed: %s", exc)
            return fallback_suggestions(partial_query)

    @staticmethod
    def detect_search_intent(query: str) -> SearchIntent:
        lowered = query.lower()
        if "similar to" in lowered or "like " in lowered:
            return SearchIntent.FIND_SIMILAR
        if "audience" in lowered or "demographic" in lowered:
            return SearchIntent.AUDIENCE_MATCH
        if any(word in lowered for word in ("content", "style", "type")):
            return SearchIntent.CONTENT_MATCH
        if any(word in lowered for word in ("brand", "sponsor", "collaboration")):
            return SearchIntent.BRAND_MATCH
        return SearchIntent.FIND_CREATORS

    @staticmethod
    def extract_entities(query: str) -> Dict[str, List[Any]]:
        """Pull capitalized names, dollar amounts and "in X"/"from X" places out of a query."""
        entities: Dict[str, List[Any]] = {"creators": [], "brands": [], "locations": [], "amounts": []}

        entities["creators"] = [
            match for match in CAPITALIZED_PHRASE.findall(query) if match not in PLATFORM_NAMES
        ]
        entities["amounts"] = _dollar_amounts(query)
        for pattern in LOCATION_PATTERNS:
            entities["locations"].extend(pattern.findall(query))
        return entities
