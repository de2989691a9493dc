"""Tests for service wiring and SSE framing"""

import pytest

from memchat.async_processing.queue_manager import MEMORY_WRITE_QUEUE
from memchat.config import Settings
from memchat.gateway.services import Services
from memchat.memory.embedders import GatewayEmbedder, LocalEmbedder, build_embedder
from memchat.streaming.stream_handler import StreamHandler


@pytest.mark.asyncio
async def test_build_wires_memory_writer(redis_client):
    """Test service wiring"""
    settings = Settings(openrouter_api_key="sk-test")
    services = Services.build(settings, redis_client)

    assert MEMORY_WRITE_QUEUE in services.queue.workers
    assert isinstance(services.memory.embedder, GatewayEmbedder)
    assert services.orchestrator.tiers.catalog is services.catalog
    assert services.catalog.client.headers["Authorization"] == "Bearer sk-test"
    assert services.tracer.enabled is False

    await services.pool.close_all()


def test_build_embedder_backends():
    """Test embedder backend selection"""
    assert isinstance(build_embedder(Settings(embedding_backend="local")), LocalEmbedder)
    with pytest.raises(ValueError):
        build_embedder(Settings(embedding_backend="word2vec"))
    with pytest.raises(ValueError):
        build_embedder(Settings())


@pytest.mark.asyncio
async def test_stream_events_frames_and_terminates():
    """Test SSE framing"""
    async def events():
        yield {"type": "start", "conversationId": "c1"}
        raise RuntimeError("boom")

    frames = [frame async for frame in StreamHandler.stream_events(events())]

    assert frames == [
        'data: {"type": "start", "conversationId": "c1"}\n\n',
        'data: {"type": "error", "errorText": "boom"}\n\n',
        "data: [DONE]\n\n",
    ]
