"""Conversation and message persistence"""

import json
import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional, List, Tuple

import redis.asyncio as redis
from redis.exceptions import WatchError

from memchat.errors import ConversationAccessDenied
from memchat.models.conversation import (
    Conversation,
    ConversationSummary,
    Message,
    MessageDetails,
    MessageRole,
    Source,
    utcnow,
)

logger = logging.getLogger(__name__)


class ConversationStore:
    """
    Store conversations and their append-only message lists

    Keys:
    - conversation:{id} -> conversation JSON, written with SET NX
    - conversation:{id}:messages -> list of message JSON, oldest first
    - account:{account_id}:conversations -> sorted set of ids by updated_at
    """

    def __init__(self, redis_client: redis.Redis):
        self.redis_client = redis_client

    def _key(self, conversation_id: str) -> str:
        return f"conversation:{conversation_id}"

    def _messages_key(self, conversation_id: str) -> str:
        return f"conversation:{conversation_id}:messages"

    def _index_key(self, account_id: str) -> str:
        return f"account:{account_id}:conversations"

    async def _insert(self, conversation: Conversation) -> bool:
        """Write a new conversation; False if the id is already taken"""
        created = await self.redis_client.set(
            self._key(conversation.id),
            conversation.model_dump_json(),
            nx=True,
        )
        if not created:
            return False

        await self.redis_client.zadd(
            self._index_key(conversation.account_id),
            {conversation.id: conversation.updated_at.timestamp()},
        )
        return True

    async def create(
        self,
        account_id: str,
        title: str,
        conversation_id: Optional[str] = None,
    ) -> Conversation:
        """Create a new conversation"""
        conversation = Conversation(
            id=conversation_id or str(uuid.uuid4()),
            account_id=account_id,
            title=title,
        )
        if not await self._insert(conversation):
            raise ValueError(f"Conversation {conversation.id} already exists")

        logger.info("Created conversation %s for account %s", conversation.id, account_id)
        return conversation

    async def find_or_create_with_id(
        self,
        account_id: str,
        conversation_id: str,
        title: str,
    ) -> Tuple[Conversation, bool]:
        """
        Adopt a client-supplied conversation id

        The first write wins: an unknown id is created with exactly that id,
        later calls return the stored conversation. Returns the conversation
        and whether it was created by this call.

        Raises:
            ConversationAccessDenied: the id belongs to another account
        """
        conversation = Conversation(
            id=conversation_id,
            account_id=account_id,
            title=title,
        )
        if await self._insert(conversation):
            logger.info("Adopted client conversation id %s for account %s", conversation_id, account_id)
            return conversation, True

        existing = await self.get(conversation_id)
        if existing is None:
            # Lost a race with a delete; nothing in this service deletes
            raise LookupError(f"Conversation {conversation_id} vanished")
        if existing.account_id != account_id:
            raise ConversationAccessDenied(conversation_id)
        return existing, False

    async def get(self, conversation_id: str) -> Optional[Conversation]:
        """Get conversation by ID"""
        data = await self.redis_client.get(self._key(conversation_id))
        if not data:
            return None
        return Conversation(**json.loads(data))

    async def get_owned(
        self,
        account_id: str,
        conversation_id: str,
    ) -> Optional[Conversation]:
        """Get conversation if it belongs to account_id"""
        conversation = await self.get(conversation_id)
        if not conversation or conversation.account_id != account_id:
            return None
        return conversation

    @staticmethod
    def _next_timestamp(last: Optional[str]) -> datetime:
        """Server timestamp, strictly after the last message (raw JSON)"""
        now = utcnow()
        if last:
            last_created = Message(**json.loads(last)).created_at
            if now <= last_created:
                now = last_created + timedelta(microseconds=1)
        return now

    async def append_message(
        self,
        conversation_id: str,
        role: MessageRole,
        content: str,
        reasoning: Optional[str] = None,
        sources: Optional[List[Source]] = None,
        details: Optional[MessageDetails] = None,
    ) -> Message:
        """
        Append a message to a conversation

        Timestamp and append happen in one optimistic transaction (WATCH on
        the message list), retried when a concurrent append wins the race.
        """
        conversation_key = self._key(conversation_id)
        messages_key = self._messages_key(conversation_id)

        async with self.redis_client.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(messages_key, conversation_key)
                    data = await pipe.get(conversation_key)
                    if not data:
                        raise LookupError(f"Conversation {conversation_id} not found")
                    conversation = Conversation(**json.loads(data))

                    message = Message(
                        id=str(uuid.uuid4()),
                        conversation_id=conversation_id,
                        role=role,
                        content=content,
                        reasoning=reasoning,
                        sources=sources,
                        details=details,
                        created_at=self._next_timestamp(await pipe.lindex(messages_key, -1)),
                    )
                    conversation.updated_at = message.created_at

                    pipe.multi()
                    pipe.rpush(messages_key, message.model_dump_json())
                    pipe.set(conversation_key, conversation.model_dump_json())
                    pipe.zadd(
                        self._index_key(conversation.account_id),
                        {conversation_id: conversation.updated_at.timestamp()},
                    )
                    await pipe.execute()
                    return message
                except WatchError:
                    logger.debug("Concurrent append to conversation %s, retrying", conversation_id)

    async def list_conversations(
        self,
        account_id: str,
        limit: int = 50,
    ) -> List[ConversationSummary]:
        """Account's conversations, most recently updated first"""
        if limit <= 0:
            return []

        ids = await self.redis_client.zrevrange(self._index_key(account_id), 0, limit - 1)
        if not ids:
            return []

        raw = await self.redis_client.mget([self._key(conversation_id) for conversation_id in ids])
        summaries = []
        for data in raw:
            if not data:
                continue
            conversation = Conversation(**json.loads(data))
            summaries.append(ConversationSummary(
                id=conversation.id,
                title=conversation.title,
                updated_at=conversation.updated_at,
            ))
        return summaries

    async def get_messages(
        self,
        account_id: str,
        conversation_id: str,
    ) -> List[Message]:
        """
        Messages of a conversation, oldest first

        Returns an empty list when the conversation does not exist or is
        owned by another account.
        """
        conversation = await self.get_owned(account_id, conversation_id)
        if conversation is None:
            return []

        raw_messages = await self.redis_client.lrange(self._messages_key(conversation_id), 0, -1)
        return [Message(**json.loads(raw)) for raw in raw_messages]
