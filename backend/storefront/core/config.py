from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    PROJECT_NAME: str = "Storefront Chat Backend"
    API_V1_STR: str = "/api/v1"

    DATABASE_URL: str
    DATABASE_ECHO: bool = False

    # CORS
    ALLOWED_ORIGINS: str = "*"
    ENVIRONMENT: str = "development"

    # OpenAI
    OPENAI_API_KEY: str
    OPENAI_MODEL: str = "gpt-4o-mini"
    QUERY_BUILDER_MODEL: str = "gpt-4o-mini"
    EMBEDDING_MODEL: str = "text-embedding-3-small"
    EMBEDDING_CACHE_MAX_ITEMS: int = 512
    EMBEDDING_CACHE_TTL_SECONDS: int = 3600

    # Timeouts (seconds)
    LLM_TIMEOUT_SECONDS: float = 30.0
    QUERY_BUILDER_TIMEOUT_SECONDS: float = 8.0
    EMBEDDING_TIMEOUT_SECONDS: float = 10.0
    TOOL_TIMEOUT_SECONDS: float = 25.0

    # Vector DB
    VECTOR_DIMENSIONS: int = 1536  # for text-embedding-3-small

    # Product search pipeline
    MAX_PRODUCT_ITEMS: int = 7
    MAX_KNOWLEDGE_BASE_SEARCH_ITEMS: int = 5
    PRODUCT_QUERY_DEFAULT_LIMIT: int = 20
    PRODUCT_QUERY_MAX_LIMIT: int = 100
    PRODUCT_OVERFETCH_FACTOR: int = 2
    RERANK_EMBED_CONCURRENCY: int = 8

    # Chat loop
    CHAT_MAX_TOOL_ROUNDS: int = 3
    CHAT_HISTORY_MAX_MESSAGES: int = 10
    CHAT_MAX_TOKENS: int = 800

    # Redis product cache
    REDIS_URL: Optional[str] = None
    PRODUCT_CACHE_ENABLED: bool = True
    PRODUCT_CACHE_TTL_SECONDS: int = 300  # 5 minutes
    PRODUCT_CACHE_SOCKET_TIMEOUT_SECONDS: float = 0.5

    # Ingest
    PRODUCT_IMPORT_BATCH_SIZE: int = 200

    # Logging
    LOG_LEVEL: str = "INFO"

    # Load backend-local .env regardless of current working directory.
    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        case_sensitive=True,
        extra="ignore",
    )

settings = Settings()
