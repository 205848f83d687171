"""Exceptions raised by the search services."""


class SearchServiceError(RuntimeError):
    """Base class for failures inside the search pipeline."""


class VectorSearchError(SearchServiceError):
    """Raised when the vector index is unavailable or misconfigured."""


class CreatorNotFoundError(SearchServiceError):
    """Raised when a reference creator has no vector in the index."""

    def __init__(self, creator_id: str) -> None:
        super().__init__(f"Creator {creator_id} not found in vector index")
        self.creator_id = creator_id


class CreatorStoreError(SearchServiceError):
    """Raised when the relational creator store cannot be queried."""


class SearchTimeoutError(SearchServiceError):
    """Raised when a request runs past its deadline."""
