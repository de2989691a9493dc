"""
LangFuse Tracer - Observability for chat turns

This module integrates LangFuse for observability:
- One generation per completed chat turn (input, output, usage, cost)
- Error events for turns that fail
"""

import logging
from typing import Optional, Dict, Any

from langfuse import Langfuse

from memchat.streaming.parts import CompletedResponse

logger = logging.getLogger(__name__)


class LangfuseTracer:
    """
    LangFuse tracer for observability

    Disabled when keys are not configured. Tracing never fails a request:
    every call logs and swallows its own errors.
    """

    def __init__(
        self,
        public_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        host: str = "http://localhost:3000",
    ):
        self.public_key = public_key
        self.secret_key = secret_key
        self.host = host
        self.client: Optional[Langfuse] = None
        self.enabled = bool(secret_key and public_key)

    def initialize(self):
        """Initialize LangFuse client"""
        if not self.enabled:
            logger.info("LangFuse not configured. Observability disabled.")
            return

        try:
            self.client = Langfuse(
                public_key=self.public_key,
                secret_key=self.secret_key,
                host=self.host,
            )
        except Exception:
            logger.exception("LangFuse initialization failed")
            self.enabled = False

    def trace_turn(
        self,
        account_id: str,
        conversation_id: str,
        message_count: int,
        response: CompletedResponse,
    ):
        """Record a completed chat turn as a generation"""
        if not self.enabled or not self.client:
            return

        try:
            generation = self.client.start_generation(
                name="chat_turn",
                model=response.model,
                input={"message_count": message_count},
                metadata={
                    "conversation_id": conversation_id,
                    "provider": response.provider,
                    "source_count": len(response.sources),
                },
            )
            generation.update_trace(user_id=account_id, session_id=conversation_id)
            generation.update(
                output=response.text,
                usage_details={
                    "input": response.usage.prompt_tokens,
                    "output": response.usage.completion_tokens,
                    "reasoning": response.usage.reasoning_tokens,
                    "total": response.usage.total_tokens,
                },
                cost_details={"total": response.usage.cost},
            )
            generation.end()
        except Exception:
            logger.warning("Failed to trace chat turn", exc_info=True)

    def trace_error(
        self,
        error: str,
        model: str,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        """Record a failed chat turn"""
        if not self.enabled or not self.client:
            return

        try:
            self.client.create_event(
                name="chat_turn_error",
                level="ERROR",
                status_message=error,
                metadata={"model": model, **(metadata or {})},
            )
        except Exception:
            logger.warning("Failed to trace error", exc_info=True)

    def flush(self):
        if self.client:
            try:
                self.client.flush()
            except Exception:
                logger.warning("Failed to flush LangFuse", exc_info=True)
