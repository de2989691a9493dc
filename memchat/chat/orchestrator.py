"""
Chat Orchestrator - the end-to-end chat turn

One turn runs in two phases:

1. start_turn (before any byte is streamed): resolve or adopt the
   conversation, persist the user message, build the system prompt with
   optional long-term memory, and open the model stream. Failures here
   reach the caller as Unauthenticated / ConversationAccessDenied /
   InternalError.
2. ChatTurn.events (while streaming): forward stream parts as they arrive,
   then run the completion callback once: persist the assistant message,
   count usage, and queue the memory write. From here on failures are only
   logged; the client is already receiving tokens.
"""

import asyncio
import logging
from typing import Any, AsyncGenerator, Awaitable, Dict, List, Optional, Set

from memchat.async_processing.queue_manager import QueueManager, MEMORY_WRITE_QUEUE
from memchat.config import Settings
from memchat.conversations.conversation_store import ConversationStore
from memchat.errors import ConversationAccessDenied, InternalError, Unauthenticated
from memchat.gateway.models import ChatTurnRequest, FinishEvent
from memchat.llm.gateway import ModelGateway, ModelStream
from memchat.llm.provider_settings import ProviderSettings
from memchat.memory.memory_store import MemoryStore
from memchat.models.account import Account
from memchat.models.conversation import Conversation, MessageRole
from memchat.observability.tracer import LangfuseTracer
from memchat.streaming.parts import CompletedResponse, part_to_event
from memchat.usage.ledger import UsageLedger
from memchat.usage.tiers import TierClassifier

logger = logging.getLogger(__name__)

BASE_SYSTEM_PROMPT = "You are a helpful, premium AI assistant. Format your responses with markdown."
MEMORY_CONTEXT_HEADING = "Relevant past context:"


def build_title(text: str, max_chars: int = 50) -> str:
    """Conversation title from the first user message"""
    return text[:max_chars] + "..."


def build_provider_settings(request: ChatTurnRequest) -> ProviderSettings:
    """Web search and reasoning directives requested by the client"""
    settings = ProviderSettings()
    if request.search_enabled:
        settings.search_max_results = request.search_result_count
    if request.think_enabled:
        settings.reasoning_effort = request.reasoning_level
    return settings


class ChatTurn:
    """A started chat turn whose response is being streamed"""

    def __init__(
        self,
        orchestrator: "ChatOrchestrator",
        account: Account,
        conversation: Conversation,
        model_id: str,
        latest_text: str,
        memory_enabled: bool,
        model_messages: List[Dict[str, Any]],
        stream: ModelStream,
    ):
        self.orchestrator = orchestrator
        self.account = account
        self.conversation = conversation
        self.model_id = model_id
        self.latest_text = latest_text
        self.memory_enabled = memory_enabled
        self.model_messages = model_messages
        self.stream = stream
        self.completion_task: Optional[asyncio.Task] = None

    @property
    def conversation_id(self) -> str:
        return self.conversation.id

    async def events(self) -> AsyncGenerator[Dict[str, Any], None]:
        """
        Client events of the turn

        start, one event per stream part, then finish after the completion
        callback. A provider failure mid-stream ends with an error event and
        skips the callback.
        """
        yield {"type": "start", "conversationId": self.conversation_id}

        try:
            async for part in self.stream:
                yield part_to_event(part)
        except Exception as e:
            logger.exception("Model stream failed in conversation %s", self.conversation_id)
            self.orchestrator.trace_error(self, str(e))
            yield {"type": "error", "errorText": "Model stream failed"}
            return
        finally:
            if not self.stream.finished:
                await self.stream.aclose()

        response = self.stream.completed()
        # Survives client disconnect
        message_id = await asyncio.shield(self.complete(response))

        yield FinishEvent(
            conversation_id=self.conversation_id,
            message_id=message_id,
            usage=response.usage,
        ).model_dump(by_alias=True)

    def complete(self, response: CompletedResponse) -> asyncio.Task:
        """Schedule the completion callback; later calls return the same task"""
        if self.completion_task is None:
            self.completion_task = self.orchestrator.run_detached(
                self.orchestrator.finish_turn(self, response)
            )
        return self.completion_task


class ChatOrchestrator:
    """Compose stores, model gateway and memory into chat turns"""

    def __init__(
        self,
        settings: Settings,
        conversations: ConversationStore,
        memory: MemoryStore,
        gateway: ModelGateway,
        ledger: UsageLedger,
        tiers: TierClassifier,
        queue: QueueManager,
        tracer: Optional[LangfuseTracer] = None,
    ):
        self.settings = settings
        self.conversations = conversations
        self.memory = memory
        self.gateway = gateway
        self.ledger = ledger
        self.tiers = tiers
        self.queue = queue
        self.tracer = tracer
        self.background_tasks: Set[asyncio.Task] = set()

    def run_detached(self, coro: Awaitable[Any]) -> asyncio.Task:
        """Run work that must outlive the request that started it"""
        task = asyncio.ensure_future(coro)
        self.background_tasks.add(task)
        task.add_done_callback(self.background_tasks.discard)
        return task

    async def drain(self):
        """Wait for detached work, called on shutdown"""
        if self.background_tasks:
            await asyncio.gather(*self.background_tasks, return_exceptions=True)

    async def resolve_conversation(
        self,
        account_id: str,
        conversation_id: Optional[str],
        latest_text: str,
    ) -> Conversation:
        """Create a new conversation or adopt the client-supplied id"""
        title = build_title(latest_text, self.settings.title_max_chars)
        if not conversation_id:
            return await self.conversations.create(account_id, title)

        conversation, _ = await self.conversations.find_or_create_with_id(
            account_id,
            conversation_id,
            title,
        )
        return conversation

    async def build_system_prompt(
        self,
        account_id: str,
        latest_text: str,
        memory_enabled: bool,
    ) -> str:
        """
        Base instruction plus relevant long-term memory

        Memory is best effort: any retrieval failure leaves the base prompt.
        """
        system_prompt = BASE_SYSTEM_PROMPT
        if not memory_enabled or len(latest_text) <= self.settings.memory_min_query_chars:
            logger.debug(
                "Memory retrieval skipped (enabled=%s, length=%d)",
                memory_enabled,
                len(latest_text),
            )
            return system_prompt

        try:
            chunks = await self.memory.retrieve_top_k(
                account_id,
                latest_text,
                k=self.settings.memory_top_k,
            )
        except Exception:
            logger.exception("Memory retrieval failed, proceeding without memory")
            return system_prompt

        relevant = [
            chunk for chunk in chunks
            if chunk.similarity > self.settings.memory_min_similarity
        ]
        logger.info(
            "Memory retrieval for account %s: %d chunks, %d relevant",
            account_id,
            len(chunks),
            len(relevant),
        )
        if relevant:
            context = "\n\n".join(chunk.content for chunk in relevant)
            system_prompt += f"\n\n{MEMORY_CONTEXT_HEADING}\n{context}"
        return system_prompt

    async def start_turn(
        self,
        account: Optional[Account],
        request: ChatTurnRequest,
    ) -> ChatTurn:
        """
        Run a chat turn up to the start of streaming

        Raises:
            Unauthenticated: no account, nothing is written
            ConversationAccessDenied: conversation id owned by another account
            InternalError: persistence or model failure before streaming
        """
        if account is None:
            raise Unauthenticated()

        latest_text = request.latest_text()
        model_id = request.model_id or self.settings.default_model
        memory_enabled = (
            account.memory_enabled if request.memory_enabled is None else request.memory_enabled
        )
        logger.info(
            "Chat turn: account=%s model=%s memory=%s conversation=%s",
            account.id,
            model_id,
            memory_enabled,
            request.conversation_id,
        )

        try:
            conversation = await self.resolve_conversation(
                account.id,
                request.conversation_id,
                latest_text,
            )
            await self.conversations.append_message(
                conversation.id,
                MessageRole.USER,
                latest_text,
            )
        except ConversationAccessDenied:
            logger.warning(
                "Account %s tried to write to conversation %s it does not own",
                account.id,
                request.conversation_id,
            )
            raise
        except Exception as e:
            logger.exception("Failed to save user turn")
            raise InternalError(str(e)) from e

        system_prompt = await self.build_system_prompt(account.id, latest_text, memory_enabled)
        model_messages = [{"role": "system", "content": system_prompt}] + [
            {"role": message.role, "content": message.text()}
            for message in request.messages
        ]

        try:
            stream = await self.gateway.stream_chat(
                model_id,
                model_messages,
                build_provider_settings(request),
            )
        except Exception as e:
            logger.exception("Failed to start model stream for %s", model_id)
            if self.tracer:
                self.tracer.trace_error(str(e), model_id, {"conversation_id": conversation.id})
            raise InternalError(str(e)) from e

        return ChatTurn(
            orchestrator=self,
            account=account,
            conversation=conversation,
            model_id=model_id,
            latest_text=latest_text,
            memory_enabled=memory_enabled,
            model_messages=model_messages,
            stream=stream,
        )

    async def finish_turn(self, turn: ChatTurn, response: CompletedResponse) -> Optional[str]:
        """
        Completion callback of a streamed turn

        Persists the assistant message, counts usage and queues the memory
        write. Each step fails independently and only logs. Returns the
        assistant message id if it was saved.
        """
        message_id = None
        try:
            message = await self.conversations.append_message(
                turn.conversation_id,
                MessageRole.ASSISTANT,
                response.text,
                reasoning=response.reasoning,
                sources=response.sources,
                details=response.to_details(),
            )
            message_id = message.id
        except Exception:
            logger.exception("Failed to save assistant message in conversation %s", turn.conversation_id)

        try:
            tier = self.tiers.classify(turn.model_id)
            await self.ledger.increment_tier(turn.account.id, tier)
        except Exception:
            logger.exception("Failed to increment usage counts for account %s", turn.account.id)

        if turn.memory_enabled:
            try:
                await self.queue.enqueue(MEMORY_WRITE_QUEUE, {
                    "account_id": turn.account.id,
                    "user_text": turn.latest_text,
                    "assistant_text": response.text,
                })
            except Exception:
                logger.exception("Failed to queue memory write for account %s", turn.account.id)

        if self.tracer:
            self.tracer.trace_turn(
                turn.account.id,
                turn.conversation_id,
                len(turn.model_messages),
                response,
            )
        return message_id

    def trace_error(self, turn: ChatTurn, error: str):
        if self.tracer:
            self.tracer.trace_error(error, turn.model_id, {"conversation_id": turn.conversation_id})
