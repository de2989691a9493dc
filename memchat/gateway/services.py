"""Service container wired up by the application entry point"""

import logging
from dataclasses import dataclass
from typing import Optional

import redis.asyncio as redis

from memchat.accounts.account_store import AccountStore
from memchat.async_processing.queue_manager import QueueManager, MEMORY_WRITE_QUEUE
from memchat.catalog.model_catalog import ModelCatalog
from memchat.chat.orchestrator import ChatOrchestrator
from memchat.config import Settings
from memchat.connection_pool.pool_manager import ConnectionPoolManager
from memchat.conversations.conversation_store import ConversationStore
from memchat.extraction.fact_extractor import FactExtractor, MemoryWriter
from memchat.llm.gateway import ModelGateway
from memchat.memory.embedders import build_embedder
from memchat.memory.memory_store import MemoryStore
from memchat.observability.tracer import LangfuseTracer
from memchat.usage.ledger import UsageLedger
from memchat.usage.tiers import TierClassifier

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Every long-lived component of the service, explicitly constructed"""
    settings: Settings
    redis_client: redis.Redis
    accounts: AccountStore
    conversations: ConversationStore
    memory: MemoryStore
    ledger: UsageLedger
    gateway: ModelGateway
    queue: QueueManager
    catalog: ModelCatalog
    pool: ConnectionPoolManager
    tracer: LangfuseTracer
    orchestrator: ChatOrchestrator

    @classmethod
    def build(cls, settings: Settings, redis_client: Optional[redis.Redis] = None) -> "Services":
        """Construct and wire all components"""
        if redis_client is None:
            redis_client = redis.from_url(settings.redis_url, decode_responses=True)

        pool = ConnectionPoolManager(timeout_seconds=settings.http_timeout_seconds)
        catalog_headers = {}
        if settings.openrouter_api_key:
            catalog_headers["Authorization"] = f"Bearer {settings.openrouter_api_key}"
        catalog = ModelCatalog(
            pool.get_client("catalog", headers=catalog_headers),
            settings.model_catalog_url,
            settings.allowed_providers,
            ttl_seconds=settings.model_catalog_ttl,
        )
        gateway = ModelGateway(
            api_key=settings.openrouter_api_key,
            api_base=settings.openrouter_api_base,
            embedding_model=settings.embedding_model,
        )
        memory = MemoryStore(redis_client, build_embedder(settings, gateway))
        conversations = ConversationStore(redis_client)
        ledger = UsageLedger(redis_client)
        queue = QueueManager(redis_client)
        tracer = LangfuseTracer(
            public_key=settings.langfuse_public_key,
            secret_key=settings.langfuse_secret_key,
            host=settings.langfuse_host,
        )

        writer = MemoryWriter(FactExtractor(gateway, settings.fact_extraction_model), memory)
        queue.register_worker(MEMORY_WRITE_QUEUE, writer.handle)

        orchestrator = ChatOrchestrator(
            settings=settings,
            conversations=conversations,
            memory=memory,
            gateway=gateway,
            ledger=ledger,
            tiers=TierClassifier(catalog),
            queue=queue,
            tracer=tracer,
        )

        return cls(
            settings=settings,
            redis_client=redis_client,
            accounts=AccountStore(redis_client),
            conversations=conversations,
            memory=memory,
            ledger=ledger,
            gateway=gateway,
            queue=queue,
            catalog=catalog,
            pool=pool,
            tracer=tracer,
            orchestrator=orchestrator,
        )

    async def start(self):
        """Open external connections"""
        self.tracer.initialize()
        try:
            await self.redis_client.ping()
        except Exception:
            logger.exception("Redis is not reachable at startup")
        # Warm the catalog so usage tiers can use live pricing
        await self.catalog.list_models()

    async def close(self):
        """Release external connections"""
        self.tracer.flush()
        await self.pool.close_all()
        await self.redis_client.aclose()
