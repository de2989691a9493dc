"""Shared test fixtures"""

from types import SimpleNamespace
from typing import List, Optional

import fakeredis
import pytest
import pytest_asyncio

from memchat.accounts.account_store import AccountStore
from memchat.async_processing.queue_manager import QueueManager
from memchat.chat.orchestrator import ChatOrchestrator
from memchat.config import Settings
from memchat.conversations.conversation_store import ConversationStore
from memchat.llm.gateway import ModelStream
from memchat.memory.memory_store import MemoryStore
from memchat.usage.ledger import UsageLedger
from memchat.usage.tiers import TierClassifier

VOCABULARY = ["python", "cats", "coffee", "travel", "music"]


def make_chunk(
    content: Optional[str] = None,
    reasoning: Optional[str] = None,
    annotations: Optional[list] = None,
    usage: Optional[dict] = None,
):
    """Streamed completion chunk shaped like LiteLLM's"""
    delta = SimpleNamespace(
        content=content,
        reasoning_content=reasoning,
        annotations=annotations,
    )
    return SimpleNamespace(
        choices=[SimpleNamespace(delta=delta)],
        usage=SimpleNamespace(**usage) if usage else None,
    )


class FakeProviderStream:
    """Async iterator over prepared chunks, optionally failing midway"""

    def __init__(self, chunks: list, fail_after: Optional[int] = None):
        self.chunks = chunks
        self.fail_after = fail_after
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for index, chunk in enumerate(self.chunks):
            if self.fail_after is not None and index >= self.fail_after:
                raise RuntimeError("provider connection reset")
            yield chunk

    async def aclose(self):
        self.closed = True


class KeywordEmbedder:
    """Deterministic embedder counting vocabulary words"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.fail:
            raise RuntimeError("embedding service unavailable")
        lowered = text.lower()
        return [float(lowered.count(word)) for word in VOCABULARY]


class FakeGateway:
    """In-memory stand-in for the model provider"""

    def __init__(self, chunks: Optional[list] = None, completion: str = "EMPTY"):
        self.chunks = chunks if chunks is not None else [
            make_chunk(content="Hello"),
            make_chunk(content=" there!"),
            make_chunk(usage={"prompt_tokens": 12, "completion_tokens": 3, "total_tokens": 15}),
        ]
        self.completion = completion
        self.fail_stream_open = False
        self.fail_after: Optional[int] = None
        self.stream_calls: list = []
        self.complete_calls: list = []
        self.last_stream: Optional[FakeProviderStream] = None

    async def stream_chat(self, model_id, messages, provider_settings=None):
        self.stream_calls.append({
            "model_id": model_id,
            "messages": messages,
            "provider_settings": provider_settings,
        })
        if self.fail_stream_open:
            raise RuntimeError("provider unavailable")
        self.last_stream = FakeProviderStream(self.chunks, fail_after=self.fail_after)
        return ModelStream(self.last_stream, model_id=model_id)

    async def complete(self, model_id, messages):
        self.complete_calls.append({"model_id": model_id, "messages": messages})
        return self.completion

    async def embed(self, text):
        return await KeywordEmbedder().embed(text)


@pytest.fixture
def settings():
    return Settings(admin_api_key="admin-secret")


@pytest_asyncio.fixture
async def redis_client():
    client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def embedder():
    return KeywordEmbedder()


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def accounts(redis_client):
    return AccountStore(redis_client)


@pytest.fixture
def conversations(redis_client):
    return ConversationStore(redis_client)


@pytest.fixture
def memory(redis_client, embedder):
    return MemoryStore(redis_client, embedder)


@pytest.fixture
def ledger(redis_client):
    return UsageLedger(redis_client)


@pytest.fixture
def queue(redis_client):
    return QueueManager(redis_client, poll_interval=0.01)


@pytest.fixture
def orchestrator(settings, conversations, memory, fake_gateway, ledger, queue):
    return ChatOrchestrator(
        settings=settings,
        conversations=conversations,
        memory=memory,
        gateway=fake_gateway,
        ledger=ledger,
        tiers=TierClassifier(),
        queue=queue,
    )


@pytest_asyncio.fixture
async def account(accounts):
    return await accounts.create_account("ada@example.com")
