"""Long-term memory store using embeddings"""

import json
import logging
import uuid
from collections import OrderedDict
from typing import List, Tuple

import faiss
import numpy as np
import redis.asyncio as redis

from memchat.models.memory import MemoryChunk, ScoredChunk

logger = logging.getLogger(__name__)


def _normalize(vector: np.ndarray) -> np.ndarray:
    norm = np.linalg.norm(vector)
    if norm == 0:
        return vector
    return vector / norm


class AccountIndex:
    """
    In-process FAISS index over one account's chunks

    `loaded` counts the Redis list entries already consumed (including
    skipped ones), so syncing only reads entries appended since.
    """

    def __init__(self, dimension: int):
        self.dimension = dimension
        self.index = faiss.IndexFlatIP(dimension)  # Inner product on unit vectors
        self.entries: List[Tuple[str, str]] = []  # (chunk id, content) by index row
        self.loaded = 0

    def add(self, chunks: List[MemoryChunk]) -> int:
        """Add chunks in list order; returns how many had the wrong dimension"""
        usable = [chunk for chunk in chunks if len(chunk.embedding) == self.dimension]
        self.loaded += len(chunks)
        if usable:
            matrix = np.vstack([
                _normalize(np.asarray(chunk.embedding, dtype="float32"))
                for chunk in usable
            ])
            self.index.add(np.ascontiguousarray(matrix, dtype="float32"))
            self.entries.extend((chunk.id, chunk.content) for chunk in usable)
        return len(chunks) - len(usable)


class MemoryStore:
    """
    Per-account memory chunks with cosine-similarity retrieval

    Chunks are appended to a Redis list per account, which stays the source
    of truth. Each account gets a long-lived FAISS inner-product index over
    L2-normalised embeddings (scores are cosine similarities in [-1, 1]);
    it is kept current by adding new chunks as they are stored and by
    reading only list entries appended by other processes. The least
    recently used indexes are evicted beyond `max_cached_accounts`.
    """

    def __init__(self, redis_client: redis.Redis, embedder, max_cached_accounts: int = 1000):
        self.redis_client = redis_client
        self.embedder = embedder
        self.max_cached_accounts = max_cached_accounts
        self.indexes: "OrderedDict[str, AccountIndex]" = OrderedDict()

    def _key(self, account_id: str) -> str:
        return f"memory:{account_id}"

    async def embed_and_store(self, account_id: str, text: str) -> MemoryChunk:
        """Embed text and append it as a new memory chunk"""
        embedding = await self.embedder.embed(text)
        chunk = MemoryChunk(
            id=str(uuid.uuid4()),
            account_id=account_id,
            content=text,
            embedding=embedding,
        )

        length = await self.redis_client.rpush(
            self._key(account_id),
            chunk.model_dump_json(),
        )

        # Extend a cached index in place when nothing else was appended first
        cached = self.indexes.get(account_id)
        if cached is not None and cached.loaded == length - 1:
            cached.add([chunk])
        return chunk

    async def list_chunks(self, account_id: str) -> List[MemoryChunk]:
        """All chunks of an account, oldest first"""
        raw_chunks = await self.redis_client.lrange(self._key(account_id), 0, -1)
        return [MemoryChunk(**json.loads(raw)) for raw in raw_chunks]

    async def _sync_index(self, account_id: str, dimension: int, total: int) -> AccountIndex:
        """Cached index of an account, caught up to `total` list entries"""
        cached = self.indexes.get(account_id)
        if cached is None or cached.dimension != dimension or cached.loaded > total:
            cached = AccountIndex(dimension)
            self.indexes[account_id] = cached
        self.indexes.move_to_end(account_id)
        while len(self.indexes) > self.max_cached_accounts:
            self.indexes.popitem(last=False)

        start = cached.loaded
        if start < total:
            raw_chunks = await self.redis_client.lrange(self._key(account_id), start, total - 1)
            # A concurrent sync may have consumed the same entries meanwhile
            if cached.loaded == start:
                skipped = cached.add([MemoryChunk(**json.loads(raw)) for raw in raw_chunks])
                if skipped:
                    logger.warning(
                        "Skipping %d memory chunks with mismatched dimension for account %s",
                        skipped,
                        account_id,
                    )
        return cached

    async def retrieve_top_k(
        self,
        account_id: str,
        query_text: str,
        k: int = 3,
    ) -> List[ScoredChunk]:
        """
        Find the account's chunks most similar to query_text

        Returns up to k chunks by descending similarity. No threshold is
        applied here; callers decide what is relevant.
        """
        total = await self.count(account_id)
        if not total or k <= 0:
            return []

        query = _normalize(np.asarray(await self.embedder.embed(query_text), dtype="float32"))
        cached = await self._sync_index(account_id, query.shape[0], total)
        if cached.index.ntotal == 0:
            return []

        top = min(k, cached.index.ntotal)
        similarities, indices = cached.index.search(query.reshape(1, -1), top)

        results = []
        for similarity, idx in zip(similarities[0], indices[0]):
            if idx < 0:
                continue
            chunk_id, content = cached.entries[idx]
            results.append(ScoredChunk(
                id=chunk_id,
                content=content,
                similarity=float(similarity),
            ))
        return results

    async def count(self, account_id: str) -> int:
        return await self.redis_client.llen(self._key(account_id))
