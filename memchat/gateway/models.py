"""Pydantic models for API requests and responses"""

from typing import Optional, List, Union
from pydantic import BaseModel, ConfigDict, Field

from memchat.llm.provider_settings import ReasoningLevel
from memchat.streaming.parts import StreamUsage


class MessagePart(BaseModel):
    """Sub-part of a client message; only text parts carry prompt text"""
    type: str
    text: Optional[str] = None


class ChatMessage(BaseModel):
    """Chat message as sent by the client"""
    role: str = Field(..., description="Role: system, user, or assistant")
    content: Optional[Union[str, List[MessagePart]]] = Field(None, description="Message content")
    parts: Optional[List[MessagePart]] = Field(None, description="Structured message parts")

    def text(self) -> str:
        """Plain content, else all text parts concatenated in order"""
        if isinstance(self.content, str) and self.content:
            return self.content

        parts = self.parts or []
        if isinstance(self.content, list):
            parts = self.content + parts
        return "".join(part.text or "" for part in parts if part.type == "text")


class ChatTurnRequest(BaseModel):
    """Chat turn request model"""
    model_config = ConfigDict(populate_by_name=True)

    messages: List[ChatMessage] = Field(..., min_length=1)
    model_id: Optional[str] = Field(None, alias="modelId")
    conversation_id: Optional[str] = Field(None, alias="conversationId")
    search_enabled: bool = Field(False, alias="searchEnabled")
    search_result_count: int = Field(3, alias="searchResultCount", ge=1)
    think_enabled: bool = Field(False, alias="thinkEnabled")
    reasoning_level: ReasoningLevel = Field(ReasoningLevel.MEDIUM, alias="reasoningLevel")
    memory_enabled: Optional[bool] = Field(None, alias="memoryEnabled")

    def latest_text(self) -> str:
        return self.messages[-1].text()


class FinishEvent(BaseModel):
    """Final stream event of a turn"""
    type: str = "finish"
    conversation_id: str = Field(..., serialization_alias="conversationId")
    message_id: Optional[str] = Field(None, serialization_alias="messageId")
    usage: StreamUsage
