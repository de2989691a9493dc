"""
Model Gateway - LiteLLM access to the model provider

This module wraps the three provider capabilities the chat pipeline needs:
- Streamed chat completions, decomposed into stream parts
- Plain (non-streamed) completions
- Text embeddings

Requests go to OpenRouter through LiteLLM. Provider-specific directives
(web search plugin, reasoning effort) are passed through untouched.
"""

import logging
from typing import Any, AsyncGenerator, Dict, List, Optional, Set

import litellm

from memchat.llm.provider_settings import ProviderSettings
from memchat.streaming.parts import (
    CompletedResponse,
    ReasoningPart,
    SourceUrlPart,
    StepStart,
    StreamPart,
    StreamUsage,
    TextPart,
    decompose,
)

logger = logging.getLogger(__name__)

PROVIDER = "openrouter"


def _get(obj: Any, key: str) -> Any:
    """Read a field from a LiteLLM object or a plain dict"""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def parse_chunk(chunk: Any, seen_urls: Optional[Set[str]] = None) -> List[StreamPart]:
    """Convert one streamed completion chunk into stream parts"""
    parts: List[StreamPart] = []
    choices = _get(chunk, "choices") or []
    if not choices:
        return parts

    delta = _get(choices[0], "delta")
    if delta is None:
        return parts

    reasoning = _get(delta, "reasoning_content")
    if reasoning:
        parts.append(ReasoningPart(text=reasoning))

    content = _get(delta, "content")
    if content:
        parts.append(TextPart(text=content))

    for annotation in _get(delta, "annotations") or []:
        if _get(annotation, "type") != "url_citation":
            continue
        citation = _get(annotation, "url_citation") or annotation
        url = _get(citation, "url")
        if not url:
            continue
        # Providers may repeat citations across chunks
        if seen_urls is not None:
            if url in seen_urls:
                continue
            seen_urls.add(url)
        parts.append(SourceUrlPart(
            url=url,
            title=_get(citation, "title") or "",
            source_id=_get(citation, "id"),
        ))

    return parts


def parse_usage(chunk: Any) -> Optional[StreamUsage]:
    """Extract usage from a chunk, if it carries any"""
    usage = _get(chunk, "usage")
    if not usage:
        return None

    details = _get(usage, "completion_tokens_details")
    cost = _get(usage, "cost")
    return StreamUsage(
        prompt_tokens=_get(usage, "prompt_tokens") or 0,
        completion_tokens=_get(usage, "completion_tokens") or 0,
        reasoning_tokens=_get(details, "reasoning_tokens") or 0,
        total_tokens=_get(usage, "total_tokens") or 0,
        cost=float(cost) if cost is not None else 0.0,
    )


class ModelStream:
    """
    Async iterator over the parts of one streamed completion

    Parts are recorded as they pass through; once the stream is exhausted
    `completed()` returns the decomposed response.
    """

    def __init__(self, response: Any, model_id: str, provider: str = PROVIDER):
        self._response = response
        self.model_id = model_id
        self.provider = provider
        self._parts: List[StreamPart] = []
        self._usage: Optional[StreamUsage] = None
        self._finished = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self) -> AsyncGenerator[StreamPart, None]:
        start = StepStart()
        self._parts.append(start)
        yield start

        seen_urls: Set[str] = set()
        async for chunk in self._response:
            for part in parse_chunk(chunk, seen_urls):
                self._parts.append(part)
                yield part
            usage = parse_usage(chunk)
            if usage:
                self._usage = usage

        self._finished = True

    @property
    def finished(self) -> bool:
        return self._finished

    def completed(self) -> CompletedResponse:
        """Decomposed response; only valid after the stream is exhausted"""
        if not self._finished:
            raise RuntimeError("Model stream has not finished")
        return decompose(self._parts, self._usage, self.model_id, self.provider)

    async def aclose(self):
        """Close the underlying provider stream"""
        close = getattr(self._response, "aclose", None)
        if close is None:
            return
        try:
            await close()
        except Exception:
            logger.warning("Failed to close provider stream", exc_info=True)


class ModelGateway:
    """LiteLLM-backed access to chat and embedding models"""

    def __init__(
        self,
        api_key: Optional[str],
        api_base: str = "https://openrouter.ai/api/v1",
        embedding_model: str = "openai/text-embedding-3-small",
    ):
        self.api_key = api_key
        self.api_base = api_base
        self.embedding_model = embedding_model

    def _chat_model(self, model_id: str) -> str:
        """LiteLLM model name for an OpenRouter model id"""
        if model_id.startswith(f"{PROVIDER}/"):
            return model_id
        return f"{PROVIDER}/{model_id}"

    async def stream_chat(
        self,
        model_id: str,
        messages: List[Dict[str, Any]],
        provider_settings: Optional[ProviderSettings] = None,
    ) -> ModelStream:
        """
        Open a streamed chat completion

        Awaits the provider's response headers, so request errors raise here
        rather than mid-stream.
        """
        extra_body = provider_settings.to_request_fields() if provider_settings else {}
        extra_body["usage"] = {"include": True}

        response = await litellm.acompletion(
            model=self._chat_model(model_id),
            messages=messages,
            stream=True,
            stream_options={"include_usage": True},
            api_key=self.api_key,
            api_base=self.api_base,
            extra_body=extra_body,
        )
        return ModelStream(response, model_id=model_id)

    async def complete(
        self,
        model_id: str,
        messages: List[Dict[str, Any]],
    ) -> str:
        """Run a non-streamed completion and return its text"""
        response = await litellm.acompletion(
            model=self._chat_model(model_id),
            messages=messages,
            api_key=self.api_key,
            api_base=self.api_base,
        )
        return response.choices[0].message.content or ""

    async def embed(self, text: str) -> List[float]:
        """Embed text with the configured embedding model"""
        # OpenRouter speaks the OpenAI embeddings API; the "openai/" prefix
        # selects that client and is stripped before the id is sent.
        response = await litellm.aembedding(
            model=f"openai/{self.embedding_model}",
            input=[text],
            api_key=self.api_key,
            api_base=self.api_base,
        )
        item = response.data[0]
        embedding = item["embedding"] if isinstance(item, dict) else item.embedding
        return [float(value) for value in embedding]
