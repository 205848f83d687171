"""OpenAI embedding client used for query and creator vectors."""
from __future__ import annotations

from typing import List, Optional

from openai import AsyncOpenAI

from app.config import settings


class EmbeddingClient:
    """Turn a piece of text into a fixed-dimension dense vector."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        *,
        model: Optional[str] = None,
        dimension: Optional[int] = None,
    ) -> None:
        if client is None:
            if not settings.OPENAI_API_KEY:
                raise RuntimeError("OPENAI_API_KEY must be set to generate embeddings")
            client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY, base_url=settings.OPENAI_BASE_URL)
        self._client = client
        self.model = model or settings.EMBED_MODEL
        self.dimension = dimension or settings.EMBED_DIMENSION

    async def embed_text(self, text: str) -> List[float]:
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")

        response = await self._client.embeddings.create(
            model=self.model,
            input=text,
            encoding_format="float",
        )
        vector = list(response.data[0].embedding)
        if self.dimension and len(vector) != self.dimension:
            raise ValueError(
                f"Embedding model {self.model} returned {len(vector)} dimensions, expected {self.dimension}"
            )
        return vector
