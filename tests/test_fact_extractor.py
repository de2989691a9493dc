"""Tests for fact extraction and the memory-write job"""

import pytest

from memchat.extraction.fact_extractor import (
    EXTRACTION_INSTRUCTION,
    FactExtractor,
    MemoryWriter,
    is_empty_fact,
)
from tests.conftest import FakeGateway


@pytest.mark.parametrize("result,expected", [
    ("EMPTY", True),
    ("  EMPTY\n", True),
    ("", True),
    ("   ", True),
    ("empty", False),
    ("The user is vegetarian.", False),
])
def test_is_empty_fact(result, expected):
    """Test empty fact detection"""
    assert is_empty_fact(result) is expected


@pytest.mark.asyncio
async def test_extract_sends_exchange_to_model():
    """Test extraction prompt"""
    gateway = FakeGateway(completion="The user lives in Lisbon.")
    extractor = FactExtractor(gateway, "openai/gpt-4o-mini")

    result = await extractor.extract("I just moved to Lisbon", "Welcome to Lisbon!")

    assert result == "The user lives in Lisbon."
    [call] = gateway.complete_calls
    assert call["model_id"] == "openai/gpt-4o-mini"
    assert call["messages"][0] == {"role": "system", "content": EXTRACTION_INSTRUCTION}
    assert call["messages"][1]["content"] == "User: I just moved to Lisbon\n\nAssistant: Welcome to Lisbon!"


@pytest.mark.asyncio
async def test_empty_extraction_stores_nothing(memory):
    """Test empty extraction"""
    writer = MemoryWriter(FactExtractor(FakeGateway(completion=" EMPTY "), "m"), memory)

    stored = await writer.handle({
        "account_id": "acct-1",
        "user_text": "hi",
        "assistant_text": "Hello!",
    })

    assert stored is False
    assert await memory.count("acct-1") == 0


@pytest.mark.asyncio
async def test_extracted_fact_is_stored_once(memory):
    """Test fact storage"""
    writer = MemoryWriter(
        FactExtractor(FakeGateway(completion="  The user drinks coffee daily.\n"), "m"),
        memory,
    )

    stored = await writer.handle({
        "account_id": "acct-1",
        "user_text": "I need my coffee every morning",
        "assistant_text": "Noted!",
    })

    assert stored is True
    [chunk] = await memory.list_chunks("acct-1")
    assert chunk.content == "The user drinks coffee daily."
