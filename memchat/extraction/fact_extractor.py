"""
Fact Extractor - distills a chat exchange into durable memory

The extractor asks a model to keep only lasting facts about the user
(preferences, circumstances, decisions) from the latest exchange. When the
exchange holds nothing worth remembering the model answers with the EMPTY
sentinel and nothing is stored.
"""

import logging
from typing import Any, Dict

from memchat.llm.gateway import ModelGateway
from memchat.memory.memory_store import MemoryStore

logger = logging.getLogger(__name__)

EMPTY_SENTINEL = "EMPTY"

EXTRACTION_INSTRUCTION = (
    "You maintain long-term memory for a chat assistant. Read the exchange "
    "between the user and the assistant and write down only durable facts "
    "worth remembering in future conversations: who the user is, their "
    "preferences, goals, circumstances and decisions. Ignore greetings, "
    "pleasantries, small talk and anything only relevant to this moment. "
    "Answer with the facts as short plain sentences and nothing else. If "
    f"nothing qualifies, answer with exactly {EMPTY_SENTINEL}."
)


def is_empty_fact(result: str) -> bool:
    """True for blank output or the (case-sensitive) EMPTY sentinel"""
    trimmed = (result or "").strip()
    return not trimmed or trimmed == EMPTY_SENTINEL


class FactExtractor:
    """Extract durable facts with a single model call"""

    def __init__(self, gateway: ModelGateway, model_id: str):
        self.gateway = gateway
        self.model_id = model_id

    async def extract(self, user_text: str, assistant_text: str) -> str:
        """Condensed facts, or EMPTY when nothing is worth retaining"""
        return await self.gateway.complete(
            self.model_id,
            [
                {"role": "system", "content": EXTRACTION_INSTRUCTION},
                {
                    "role": "user",
                    "content": f"User: {user_text}\n\nAssistant: {assistant_text}",
                },
            ],
        )


class MemoryWriter:
    """Background job that turns a finished exchange into a memory chunk"""

    def __init__(self, extractor: FactExtractor, memory: MemoryStore):
        self.extractor = extractor
        self.memory = memory

    async def handle(self, job: Dict[str, Any]) -> bool:
        """
        Process one memory-write job

        Job data: account_id, user_text, assistant_text.
        Returns True if a chunk was stored.
        """
        result = await self.extractor.extract(job["user_text"], job["assistant_text"])
        if is_empty_fact(result):
            logger.debug("No durable facts in exchange for account %s", job["account_id"])
            return False

        chunk = await self.memory.embed_and_store(job["account_id"], result.strip())
        logger.info("Stored memory chunk %s for account %s", chunk.id, job["account_id"])
        return True
