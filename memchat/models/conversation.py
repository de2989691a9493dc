"""Conversation and message models"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MessageRole(str, Enum):
    """Roles a persisted message can have"""
    USER = "user"
    ASSISTANT = "assistant"


class Source(BaseModel):
    """Citation returned by a web-search augmented response"""
    title: str = ""
    url: str
    source_id: Optional[str] = None


class MessageDetails(BaseModel):
    """Model and usage details of an assistant message"""
    model: str
    provider: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    reasoning_tokens: int = 0
    total_tokens: int = 0
    cost: float = 0.0


class Message(BaseModel):
    """Single immutable message in a conversation"""
    id: str
    conversation_id: str
    role: MessageRole
    content: str
    reasoning: Optional[str] = None
    sources: Optional[List[Source]] = None
    details: Optional[MessageDetails] = None
    created_at: datetime = Field(default_factory=utcnow)


class Conversation(BaseModel):
    """Conversation owned by one account"""
    id: str
    account_id: str
    title: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ConversationSummary(BaseModel):
    """Conversation entry for sidebar listings"""
    id: str
    title: str
    updated_at: datetime
