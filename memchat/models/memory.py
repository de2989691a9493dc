"""Long-term memory models"""

from datetime import datetime, timezone
from typing import List
from pydantic import BaseModel, Field


class MemoryChunk(BaseModel):
    """Embedding-indexed fragment of past conversation content"""
    id: str
    account_id: str
    content: str
    embedding: List[float]
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ScoredChunk(BaseModel):
    """Memory chunk content with its cosine similarity to a query"""
    id: str
    content: str
    similarity: float
