"""Tests for the conversation store"""

import asyncio

import pytest

from memchat.errors import ConversationAccessDenied
from memchat.models.conversation import MessageDetails, MessageRole, Source


@pytest.mark.asyncio
async def test_create_assigns_id(conversations):
    """New conversations get a generated id and are listed"""
    conversation = await conversations.create("acct-1", "Hello...")

    assert conversation.id
    assert conversation.account_id == "acct-1"
    listed = await conversations.list_conversations("acct-1")
    assert [c.id for c in listed] == [conversation.id]


@pytest.mark.asyncio
async def test_find_or_create_with_id_is_idempotent(conversations):
    """An unknown client id is adopted once, then reused"""
    first, created = await conversations.find_or_create_with_id("acct-1", "client-id", "First...")
    second, created_again = await conversations.find_or_create_with_id("acct-1", "client-id", "Other...")

    assert created is True
    assert created_again is False
    assert first.id == second.id == "client-id"
    # First write wins, the title is not replaced
    assert second.title == "First..."
    assert len(await conversations.list_conversations("acct-1")) == 1


@pytest.mark.asyncio
async def test_find_or_create_rejects_foreign_conversation(conversations):
    """A conversation id owned by another account cannot be adopted"""
    await conversations.find_or_create_with_id("owner", "shared-id", "Mine...")

    with pytest.raises(ConversationAccessDenied):
        await conversations.find_or_create_with_id("intruder", "shared-id", "Theirs...")


@pytest.mark.asyncio
async def test_messages_keep_order_and_increasing_timestamps(conversations):
    """Messages come back oldest first with strictly increasing timestamps"""
    conversation = await conversations.create("acct-1", "Chat...")
    for index in range(5):
        role = MessageRole.USER if index % 2 == 0 else MessageRole.ASSISTANT
        await conversations.append_message(conversation.id, role, f"message {index}")

    messages = await conversations.get_messages("acct-1", conversation.id)

    assert [m.content for m in messages] == [f"message {i}" for i in range(5)]
    timestamps = [m.created_at for m in messages]
    assert all(earlier < later for earlier, later in zip(timestamps, timestamps[1:]))


@pytest.mark.asyncio
async def test_assistant_message_round_trips_details(conversations):
    """Reasoning, sources and details are persisted with the message"""
    conversation = await conversations.create("acct-1", "Chat...")
    await conversations.append_message(
        conversation.id,
        MessageRole.ASSISTANT,
        "Answer",
        reasoning="Thinking",
        sources=[Source(title="Docs", url="https://example.com", source_id="s1")],
        details=MessageDetails(model="openai/gpt-4o-mini", provider="openrouter", total_tokens=10),
    )

    [message] = await conversations.get_messages("acct-1", conversation.id)

    assert message.role == MessageRole.ASSISTANT
    assert message.reasoning == "Thinking"
    assert message.sources[0].url == "https://example.com"
    assert message.details.total_tokens == 10
    assert message.details.cost == 0.0


@pytest.mark.asyncio
async def test_get_messages_of_other_account_is_empty(conversations):
    """Reading someone else's conversation yields nothing"""
    conversation = await conversations.create("owner", "Private...")
    await conversations.append_message(conversation.id, MessageRole.USER, "secret")

    assert await conversations.get_messages("intruder", conversation.id) == []
    assert await conversations.get_messages("owner", "missing-id") == []


@pytest.mark.asyncio
async def test_list_conversations_most_recent_first_and_capped(conversations):
    """Listing orders by last update and honours the limit"""
    older = await conversations.create("acct-1", "Older...")
    newer = await conversations.create("acct-1", "Newer...")
    await conversations.create("acct-2", "Elsewhere...")

    # Activity moves the older conversation to the top
    await conversations.append_message(older.id, MessageRole.USER, "bump")

    listed = await conversations.list_conversations("acct-1")
    assert [c.id for c in listed] == [older.id, newer.id]

    capped = await conversations.list_conversations("acct-1", limit=1)
    assert [c.id for c in capped] == [older.id]


@pytest.mark.asyncio
async def test_append_to_unknown_conversation_fails(conversations):
    """Test append to a missing conversation"""
    with pytest.raises(LookupError):
        await conversations.append_message("nope", MessageRole.USER, "hi")


@pytest.mark.asyncio
async def test_concurrent_appends_keep_timestamps_in_list_order(conversations):
    """Racing appends still store strictly increasing timestamps in list order"""
    conversation = await conversations.create("acct-1", "Busy...")

    await asyncio.gather(*(
        conversations.append_message(conversation.id, MessageRole.USER, f"message {index}")
        for index in range(10)
    ))

    messages = await conversations.get_messages("acct-1", conversation.id)
    assert sorted(m.content for m in messages) == sorted(f"message {i}" for i in range(10))
    timestamps = [m.created_at for m in messages]
    assert all(earlier < later for earlier, later in zip(timestamps, timestamps[1:]))

    [summary] = await conversations.list_conversations("acct-1")
    assert summary.updated_at == timestamps[-1]
