"""Tests for the long-term memory store"""

import pytest

from memchat.memory.memory_store import MemoryStore
from tests.conftest import KeywordEmbedder


@pytest.mark.asyncio
async def test_embed_and_store_appends_chunk(memory, embedder):
    """Test chunk storage"""
    chunk = await memory.embed_and_store("acct-1", "User loves python and coffee")

    assert chunk.account_id == "acct-1"
    assert chunk.embedding == [1.0, 0.0, 1.0, 0.0, 0.0]
    assert await memory.count("acct-1") == 1
    assert embedder.calls == ["User loves python and coffee"]


@pytest.mark.asyncio
async def test_retrieve_top_k_ranks_by_similarity(memory):
    """Chunks come back by descending cosine similarity, capped at k"""
    await memory.embed_and_store("acct-1", "Travel plans for the summer")
    await memory.embed_and_store("acct-1", "Prefers python for scripting")
    await memory.embed_and_store("acct-1", "Has two cats")
    await memory.embed_and_store("acct-1", "Drinks coffee, writes python")

    results = await memory.retrieve_top_k("acct-1", "python question", k=3)

    assert len(results) == 3
    assert results[0].content == "Prefers python for scripting"
    assert results[0].similarity == pytest.approx(1.0)
    assert results[1].content == "Drinks coffee, writes python"
    assert results[1].similarity == pytest.approx(2 ** -0.5, rel=1e-4)
    similarities = [r.similarity for r in results]
    assert similarities == sorted(similarities, reverse=True)


@pytest.mark.asyncio
async def test_retrieve_does_not_filter_low_scores(memory):
    """Thresholding is the caller's job"""
    await memory.embed_and_store("acct-1", "Has two cats")

    results = await memory.retrieve_top_k("acct-1", "music tonight", k=3)

    assert len(results) == 1
    assert results[0].similarity == pytest.approx(0.0)


@pytest.mark.asyncio
async def test_retrieve_is_scoped_to_account(memory):
    """Test account isolation"""
    await memory.embed_and_store("acct-1", "Loves cats")
    await memory.embed_and_store("acct-2", "Loves cats too")

    results = await memory.retrieve_top_k("acct-2", "cats", k=3)

    assert [r.content for r in results] == ["Loves cats too"]


@pytest.mark.asyncio
async def test_retrieve_without_chunks_skips_embedding(redis_client):
    """Test retrieval for an account without chunks"""
    embedder = KeywordEmbedder()
    store = MemoryStore(redis_client, embedder)

    assert await store.retrieve_top_k("acct-1", "anything at all", k=3) == []
    assert embedder.calls == []


@pytest.mark.asyncio
async def test_retrieve_propagates_embedding_failure(redis_client):
    """The adapter raises; callers decide how to degrade"""
    store = MemoryStore(redis_client, KeywordEmbedder())
    await store.embed_and_store("acct-1", "Loves cats")
    store.embedder = KeywordEmbedder(fail=True)

    with pytest.raises(RuntimeError):
        await store.retrieve_top_k("acct-1", "cats", k=3)


@pytest.mark.asyncio
async def test_index_is_reused_across_retrievals(redis_client):
    """Later retrievals read only chunks appended since the last one"""
    store = MemoryStore(redis_client, KeywordEmbedder())
    ranges = []
    lrange = redis_client.lrange

    async def recording_lrange(key, start, end):
        ranges.append((start, end))
        return await lrange(key, start, end)

    redis_client.lrange = recording_lrange
    await store.embed_and_store("acct-1", "Loves cats")
    await store.embed_and_store("acct-1", "Writes python")

    await store.retrieve_top_k("acct-1", "cats", k=3)
    await store.embed_and_store("acct-1", "Drinks coffee")
    await store.retrieve_top_k("acct-1", "coffee", k=3)

    # Another process appends behind this store's back
    other = MemoryStore(redis_client, KeywordEmbedder())
    await other.embed_and_store("acct-1", "Plans travel to Japan")
    results = await store.retrieve_top_k("acct-1", "travel", k=1)

    assert ranges == [(0, 1), (3, 3)]
    assert results[0].content == "Plans travel to Japan"
    assert store.indexes["acct-1"].index.ntotal == 4


@pytest.mark.asyncio
async def test_retrieve_skips_chunks_of_other_dimension(redis_client):
    """Chunks from a previous embedder cannot be compared and are skipped"""
    store = MemoryStore(redis_client, KeywordEmbedder())
    await store.embed_and_store("acct-1", "Loves cats")

    class ShortEmbedder:
        async def embed(self, text):
            return [1.0, 0.0, 0.0]

    store.embedder = ShortEmbedder()
    assert await store.retrieve_top_k("acct-1", "cats", k=3) == []

    await store.embed_and_store("acct-1", "New chunk")
    [result] = await store.retrieve_top_k("acct-1", "anything", k=3)
    assert result.content == "New chunk"
    assert result.similarity == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_index_cache_is_bounded(redis_client):
    """Least recently used account indexes are evicted"""
    store = MemoryStore(redis_client, KeywordEmbedder(), max_cached_accounts=2)
    for account_id in ("a", "b", "c"):
        await store.embed_and_store(account_id, "Loves cats")
        await store.retrieve_top_k(account_id, "cats", k=1)

    assert list(store.indexes) == ["b", "c"]
