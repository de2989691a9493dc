"""Text embedders for long-term memory"""

import asyncio
import logging
from typing import List, Optional

from memchat.config import Settings
from memchat.llm.gateway import ModelGateway

logger = logging.getLogger(__name__)


class GatewayEmbedder:
    """Embeds through the model provider (text-embedding-3-small, 1536 dims)"""

    def __init__(self, gateway: ModelGateway):
        self.gateway = gateway

    async def embed(self, text: str) -> List[float]:
        return await self.gateway.embed(text)


class LocalEmbedder:
    """Embeds in-process with sentence-transformers (all-MiniLM-L6-v2, 384 dims)"""

    def __init__(self, model_name: str = "all-MiniLM-L6-v2"):
        self.model_name = model_name
        self._model = None

    def _load(self):
        if self._model is None:
            from sentence_transformers import SentenceTransformer

            logger.info("Loading local embedding model %s", self.model_name)
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def _encode(self, text: str) -> List[float]:
        return self._load().encode([text])[0].tolist()

    async def embed(self, text: str) -> List[float]:
        # Encoding is CPU bound, keep it off the event loop
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._encode, text)


def build_embedder(settings: Settings, gateway: Optional[ModelGateway] = None):
    """Create the embedder selected by EMBEDDING_BACKEND"""
    if settings.embedding_backend == "local":
        return LocalEmbedder(settings.local_embedding_model)
    if settings.embedding_backend != "litellm":
        raise ValueError(f"Unknown embedding backend: {settings.embedding_backend}")
    if gateway is None:
        raise ValueError("The litellm embedding backend needs a model gateway")
    return GatewayEmbedder(gateway)
