"""Fixed creator taxonomy shared by query analysis, filtering and scoring."""
from typing import Dict, List, Optional, Tuple

VALID_NICHES: List[str] = [
    "tech_gaming",
    "beauty_fashion",
    "lifestyle_travel",
    "food_cooking",
    "fitness_health",
]

VALID_TIERS: List[str] = ["micro", "macro", "mega"]

VALID_PLATFORMS: List[str] = ["youtube", "instagram", "tiktok", "twitter"]

# (min_followers, max_followers); None means unbounded
TIER_FOLLOWER_RANGES: Dict[str, Tuple[int, Optional[int]]] = {
    "micro": (1000, 99999),
    "macro": (100000, 999999),
    "mega": (1000000, None),
}

# Ordered: the first keyword found in the query wins
NICHE_KEYWORDS: List[Tuple[str, str]] = [
    ("gaming", "tech_gaming"),
    ("tech", "tech_gaming"),
    ("technology", "tech_gaming"),
    ("beauty", "beauty_fashion"),
    ("makeup", "beauty_fashion"),
    ("fashion", "beauty_fashion"),
    ("travel", "lifestyle_travel"),
    ("lifestyle", "lifestyle_travel"),
    ("food", "food_cooking"),
    ("cooking", "food_cooking"),
    ("recipe", "food_cooking"),
    ("fitness", "fitness_health"),
    ("health", "fitness_health"),
    ("workout", "fitness_health"),
]

PLATFORM_NAMES = {"YouTube", "Instagram", "TikTok", "Twitter"}

AGE_GROUPS: List[Tuple[str, str]] = [
    ("13-17", "age_13_17"),
    ("18-24", "age_18_24"),
    ("25-34", "age_25_34"),
    ("35-44", "age_35_44"),
    ("45+", "age_45_plus"),
]

GENDERS: List[Tuple[str, str]] = [
    ("male", "gender_male"),
    ("female", "gender_female"),
    ("other", "gender_other"),
]


def tier_to_follower_filters(tier: str) -> Dict[str, int]:
    """Expand a tier name into explicit min/max follower filters."""
    bounds = TIER_FOLLOWER_RANGES.get(tier)
    if bounds is None:
        return {}
    lower, upper = bounds
    expanded = {"min_followers": lower}
    if upper is not None:
        expanded["max_followers"] = upper
    return expanded


def humanize_niche(niche: str) -> str:
    return niche.replace("_", " ", 1)
