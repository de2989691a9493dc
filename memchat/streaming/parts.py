"""
Stream parts - the closed set of provider response pieces the chat pipeline consumes

A model stream is a sequence of parts:
- StepStart: a new generation step begins
- TextPart: a slice of the answer text
- ReasoningPart: a slice of the model's reasoning trace
- SourceUrlPart: a web-search citation
"""

from typing import Iterable, List, Optional, Union, Literal, Dict, Any
from pydantic import BaseModel, Field

from memchat.models.conversation import Source, MessageDetails


class StepStart(BaseModel):
    type: Literal["step-start"] = "step-start"


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ReasoningPart(BaseModel):
    type: Literal["reasoning"] = "reasoning"
    text: str


class SourceUrlPart(BaseModel):
    type: Literal["source-url"] = "source-url"
    url: str
    title: str = ""
    source_id: Optional[str] = None


StreamPart = Union[StepStart, TextPart, ReasoningPart, SourceUrlPart]


class StreamUsage(BaseModel):
    """Provider-reported usage for one completion"""
    prompt_tokens: int = Field(0, serialization_alias="promptTokens")
    completion_tokens: int = Field(0, serialization_alias="completionTokens")
    reasoning_tokens: int = Field(0, serialization_alias="reasoningTokens")
    total_tokens: int = Field(0, serialization_alias="totalTokens")
    cost: float = 0.0


class CompletedResponse(BaseModel):
    """A finished model response split into text, reasoning and sources"""
    text: str = ""
    reasoning: Optional[str] = None
    sources: List[Source] = Field(default_factory=list)
    usage: StreamUsage = Field(default_factory=StreamUsage)
    model: str
    provider: str

    def to_details(self) -> MessageDetails:
        return MessageDetails(
            model=self.model,
            provider=self.provider,
            prompt_tokens=self.usage.prompt_tokens,
            completion_tokens=self.usage.completion_tokens,
            reasoning_tokens=self.usage.reasoning_tokens,
            total_tokens=self.usage.total_tokens,
            cost=self.usage.cost,
        )


def decompose(
    parts: Iterable[StreamPart],
    usage: Optional[StreamUsage],
    model: str,
    provider: str,
) -> CompletedResponse:
    """Fold a finished part sequence into a CompletedResponse"""
    text_chunks: List[str] = []
    reasoning_chunks: List[str] = []
    sources: List[Source] = []

    for part in parts:
        if isinstance(part, TextPart):
            text_chunks.append(part.text)
        elif isinstance(part, ReasoningPart):
            reasoning_chunks.append(part.text)
        elif isinstance(part, SourceUrlPart):
            sources.append(Source(title=part.title, url=part.url, source_id=part.source_id))
        elif isinstance(part, StepStart):
            continue
        else:
            raise TypeError(f"Unknown stream part: {part!r}")

    reasoning = "".join(reasoning_chunks)
    return CompletedResponse(
        text="".join(text_chunks),
        reasoning=reasoning or None,
        sources=sources,
        usage=usage or StreamUsage(),
        model=model,
        provider=provider,
    )


def part_to_event(part: StreamPart) -> Dict[str, Any]:
    """Client-facing event payload for a part"""
    if isinstance(part, TextPart):
        return {"type": "text-delta", "delta": part.text}
    if isinstance(part, ReasoningPart):
        return {"type": "reasoning-delta", "delta": part.text}
    if isinstance(part, SourceUrlPart):
        return {
            "type": "source-url",
            "url": part.url,
            "title": part.title,
            "sourceId": part.source_id,
        }
    if isinstance(part, StepStart):
        return {"type": "step-start"}
    raise TypeError(f"Unknown stream part: {part!r}")
