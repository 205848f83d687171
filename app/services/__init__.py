"""Public service interfaces."""

from .indexing import CreatorIndexer
from .recommendations import RecommendationService

__all__ = ["CreatorIndexer", "RecommendationService"]
