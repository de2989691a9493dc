"""Streaming response handler"""

import json
import logging
from typing import AsyncGenerator, AsyncIterator, Dict, Any

logger = logging.getLogger(__name__)


class StreamHandler:
    """Handle streaming responses"""

    @staticmethod
    def format_event(data: Dict[str, Any]) -> str:
        """Format one event as an SSE frame"""
        return f"data: {json.dumps(data)}\n\n"

    @staticmethod
    async def stream_events(
        events: AsyncIterator[Dict[str, Any]],
    ) -> AsyncGenerator[str, None]:
        """
        Stream chat turn events

        Yields SSE-formatted chunks, terminated by [DONE]
        """
        try:
            async for event in events:
                yield StreamHandler.format_event(event)
        except Exception as e:
            logger.exception("Chat stream aborted")
            yield StreamHandler.format_event({
                "type": "error",
                "errorText": str(e),
            })

        yield "data: [DONE]\n\n"
