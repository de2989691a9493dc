"""
memchat - Main FastAPI Application

This module exposes the chat service: streamed chat turns with optional
long-term memory, web search and reasoning, conversation history, the live
model catalog and per-account usage.
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import Optional, List

import litellm
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from memchat.accounts.auth import optional_account, require_account
from memchat.async_processing.queue_manager import MEMORY_WRITE_QUEUE
from memchat.config import Settings, configure_logging
from memchat.dashboard.routes import router as dashboard_router
from memchat.errors import MemchatError
from memchat.gateway.models import ChatTurnRequest
from memchat.gateway.services import Services
from memchat.models.account import Account, AccountSettingsUpdate, UsageSnapshot
from memchat.models.catalog import CatalogModel
from memchat.models.conversation import ConversationSummary, Message
from memchat.streaming.stream_handler import StreamHandler

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def get_services(request: Request) -> Services:
    return request.app.state.services


def create_app(
    settings: Optional[Settings] = None,
    services: Optional[Services] = None,
) -> FastAPI:
    """
    Build the FastAPI application

    When `services` is given it is used as-is and its lifecycle belongs to
    the caller; otherwise the lifespan builds, starts and closes them.
    """
    settings = settings or (services.settings if services else Settings.from_env())
    litellm.set_verbose = settings.log_level.upper() == "DEBUG"

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events"""
        owned = app.state.services is None
        if owned:
            configure_logging(settings.log_level)
            app.state.services = Services.build(settings)
            await app.state.services.start()

        worker = asyncio.create_task(
            app.state.services.queue.process_queue(MEMORY_WRITE_QUEUE)
        )
        yield
        worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await worker
        await app.state.services.orchestrator.drain()
        if owned:
            await app.state.services.close()

    app = FastAPI(
        title="memchat",
        description="Multi-tenant AI chat with long-term memory",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.services = services

    app.include_router(dashboard_router)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Conversation-Id"],
    )

    @app.exception_handler(MemchatError)
    async def memchat_error_handler(request: Request, exc: MemchatError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.public_message})

    @app.get("/health")
    async def health_check(services: Services = Depends(get_services)):
        """Health check endpoint"""
        try:
            redis_ok = await services.redis_client.ping()
        except Exception:
            redis_ok = False
        return {
            "status": "healthy",
            "redis": "connected" if redis_ok else "disconnected",
            "version": VERSION,
        }

    @app.post("/v1/chat")
    async def chat(
        body: ChatTurnRequest,
        account: Account = Depends(require_account),
        services: Services = Depends(get_services),
    ):
        """
        Run one chat turn

        Streams Server-Sent Events. The X-Conversation-Id header carries the
        resolved conversation id so a client that started without one can
        adopt it.
        """
        turn = await services.orchestrator.start_turn(account, body)
        return StreamingResponse(
            StreamHandler.stream_events(turn.events()),
            media_type="text/event-stream",
            headers={"X-Conversation-Id": turn.conversation_id},
        )

    @app.get("/v1/conversations", response_model=List[ConversationSummary])
    async def list_conversations(
        account: Optional[Account] = Depends(optional_account),
        services: Services = Depends(get_services),
    ):
        """Account's conversations, most recently updated first"""
        if account is None:
            return []
        try:
            return await services.conversations.list_conversations(
                account.id,
                services.settings.conversation_list_limit,
            )
        except Exception:
            logger.exception("Error fetching conversations")
            return []

    @app.get("/v1/conversations/{conversation_id}/messages", response_model=List[Message])
    async def get_messages(
        conversation_id: str,
        account: Optional[Account] = Depends(optional_account),
        services: Services = Depends(get_services),
    ):
        """Messages of an owned conversation, oldest first"""
        if account is None:
            return []
        try:
            return await services.conversations.get_messages(account.id, conversation_id)
        except Exception:
            logger.exception("Error fetching messages")
            return []

    @app.get("/v1/models", response_model=List[CatalogModel])
    async def list_models(services: Services = Depends(get_services)):
        """Available models, free before premium"""
        return await services.catalog.list_models()

    @app.get("/v1/account/usage", response_model=UsageSnapshot)
    async def account_usage(
        account: Account = Depends(require_account),
        services: Services = Depends(get_services),
    ):
        """Message counters of the calling account"""
        usage = await services.ledger.get_usage(account.id)
        if usage is None:
            raise HTTPException(status_code=404, detail="Account not found")
        return usage

    @app.patch("/v1/account/settings")
    async def update_account_settings(
        update: AccountSettingsUpdate,
        account: Account = Depends(require_account),
        services: Services = Depends(get_services),
    ):
        """Change account preferences"""
        if update.memory_enabled is not None:
            account = await services.accounts.set_memory_enabled(account.id, update.memory_enabled)
        return {"id": account.id, "memory_enabled": account.memory_enabled}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = Settings.from_env()
    configure_logging(settings.log_level)
    uvicorn.run(
        "memchat.gateway.main:app",
        host=settings.host,
        port=settings.port,
    )
