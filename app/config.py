from typing import Optional, List, Union
from pydantic_settings import BaseSettings
from pydantic import field_validator


class Settings(BaseSettings):
    """Application settings"""

    # App settings
    APP_NAME: str = "Creator AI Search API"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    PORT: int = 7001

    # API settings
    API_PREFIX: str = "/api"

    # Relational store (Postgres)
    DATABASE_URL: Optional[str] = None
    DB_POOL_MIN_SIZE: int = 1
    DB_POOL_MAX_SIZE: int = 10

    # Vector index (LanceDB)
    LANCEDB_PATH: str = "data/lancedb"
    VECTOR_TABLE_NAME: str = "creator_vectors"

    # OpenAI / LLM settings
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: Optional[str] = None
    OPENAI_CHAT_MODEL: str = "gpt-4o"

    # Embeddings
    EMBED_MODEL: str = "text-embedding-3-large"
    EMBED_DIMENSION: int = 3072

    # Search tuning
    SEARCH_TIMEOUT_SECONDS: float = 30.0
    MAX_RESULTS_CAP: int = 50
    NICHE_CONFIDENCE_THRESHOLD: float = 0.9
    VECTOR_SCORE_BOOST: float = 1.2
    DEFAULT_MIN_SCORE: float = 0.2
    INDEX_BATCH_SIZE: int = 10

    # CORS settings
    ALLOWED_ORIGINS: Union[str, List[str]] = ["*"]

    @field_validator('ALLOWED_ORIGINS', mode='before')
    @classmethod
    def parse_origins(cls, v):
        """Parse ALLOWED_ORIGINS from string or list"""
        if isinstance(v, str):
            if v == "*":
                return ["*"]
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator('NICHE_CONFIDENCE_THRESHOLD')
    @classmethod
    def check_threshold(cls, v):
        if not 0.0 <= v <= 1.0:
            raise ValueError("NICHE_CONFIDENCE_THRESHOLD must be between 0 and 1")
        return v

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
