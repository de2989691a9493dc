"""Application settings and logging setup"""

import logging
import os
from typing import List, Optional

from pydantic import BaseModel, Field


DEFAULT_ALLOWED_PROVIDERS = [
    "openai/",
    "anthropic/",
    "deepseek/",
    "minimax/",
    "x-ai/",
    "zhipuai/",  # GLM models
]


class Settings(BaseModel):
    """
    memchat configuration

    Built once by the process entry point with `Settings.from_env()` and
    handed to every component that needs it.
    """
    # Storage
    redis_url: str = "redis://localhost:6379/0"

    # Model provider (OpenRouter through LiteLLM)
    openrouter_api_key: Optional[str] = None
    openrouter_api_base: str = "https://openrouter.ai/api/v1"
    default_model: str = "openai/gpt-4o-mini"
    fact_extraction_model: str = "openai/gpt-4o-mini"

    # Embeddings
    embedding_backend: str = "litellm"  # "litellm" or "local"
    embedding_model: str = "openai/text-embedding-3-small"
    local_embedding_model: str = "all-MiniLM-L6-v2"

    # Memory retrieval
    memory_top_k: int = 3
    memory_min_similarity: float = 0.2
    memory_min_query_chars: int = 5

    # Conversations
    title_max_chars: int = 50
    conversation_list_limit: int = 50

    # Model catalog
    model_catalog_url: str = "https://openrouter.ai/api/v1/models"
    model_catalog_ttl: int = 3600
    allowed_providers: List[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_PROVIDERS))
    http_timeout_seconds: float = 30.0

    # Admin
    admin_api_key: Optional[str] = None

    # Observability
    langfuse_public_key: Optional[str] = None
    langfuse_secret_key: Optional[str] = None
    langfuse_host: str = "http://localhost:3000"
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables"""
        return cls(
            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
            openrouter_api_key=os.getenv("OPENROUTER_API_KEY"),
            openrouter_api_base=os.getenv("OPENROUTER_API_BASE", "https://openrouter.ai/api/v1"),
            default_model=os.getenv("DEFAULT_MODEL", "openai/gpt-4o-mini"),
            fact_extraction_model=os.getenv("FACT_EXTRACTION_MODEL", "openai/gpt-4o-mini"),
            embedding_backend=os.getenv("EMBEDDING_BACKEND", "litellm"),
            embedding_model=os.getenv("EMBEDDING_MODEL", "openai/text-embedding-3-small"),
            local_embedding_model=os.getenv("LOCAL_EMBEDDING_MODEL", "all-MiniLM-L6-v2"),
            memory_top_k=int(os.getenv("MEMORY_TOP_K", "3")),
            memory_min_similarity=float(os.getenv("MEMORY_MIN_SIMILARITY", "0.2")),
            memory_min_query_chars=int(os.getenv("MEMORY_MIN_QUERY_CHARS", "5")),
            title_max_chars=int(os.getenv("TITLE_MAX_CHARS", "50")),
            conversation_list_limit=int(os.getenv("CONVERSATION_LIST_LIMIT", "50")),
            model_catalog_url=os.getenv("MODEL_CATALOG_URL", "https://openrouter.ai/api/v1/models"),
            model_catalog_ttl=int(os.getenv("MODEL_CATALOG_TTL", "3600")),
            http_timeout_seconds=float(os.getenv("HTTP_TIMEOUT_SECONDS", "30")),
            admin_api_key=os.getenv("ADMIN_API_KEY"),
            langfuse_public_key=os.getenv("LANGFUSE_PUBLIC_KEY"),
            langfuse_secret_key=os.getenv("LANGFUSE_SECRET_KEY"),
            langfuse_host=os.getenv("LANGFUSE_HOST", "http://localhost:3000"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            host=os.getenv("GATEWAY_HOST", "0.0.0.0"),
            port=int(os.getenv("GATEWAY_PORT", "8000")),
        )


def configure_logging(level: str = "INFO"):
    """Configure root logging for the service"""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
