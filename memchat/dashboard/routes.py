"""Dashboard API routes"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from memchat.async_processing.queue_manager import MEMORY_WRITE_QUEUE
from memchat.models.account import AccountCreate

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


def verify_admin_key(
    request: Request,
    admin_key: Optional[str] = Header(None, alias="X-Admin-Key"),
) -> str:
    """Verify admin API key"""
    expected_key = request.app.state.services.settings.admin_api_key
    if not expected_key:
        raise HTTPException(status_code=500, detail="Admin key not configured")
    if admin_key != expected_key:
        raise HTTPException(status_code=401, detail="Invalid admin key")
    return admin_key


@router.post("/accounts", status_code=201, dependencies=[Depends(verify_admin_key)])
async def create_account(payload: AccountCreate, request: Request):
    """Register an account and issue its API key"""
    services = request.app.state.services
    account = await services.accounts.create_account(
        payload.email,
        is_premium=payload.is_premium,
        memory_enabled=payload.memory_enabled,
    )
    return {
        "id": account.id,
        "email": account.email,
        "api_key": account.api_key,
    }


@router.get("/accounts/{account_id}/usage", dependencies=[Depends(verify_admin_key)])
async def get_account_usage(account_id: str, request: Request):
    """Get account usage counters"""
    usage = await request.app.state.services.ledger.get_usage(account_id)
    if usage is None:
        raise HTTPException(status_code=404, detail="Account not found")

    return {
        "account_id": account_id,
        "usage": usage.model_dump(),
    }


@router.get("/health/detailed", dependencies=[Depends(verify_admin_key)])
async def detailed_health(request: Request):
    """Detailed health check"""
    services = request.app.state.services
    try:
        redis_ok = await services.redis_client.ping()
    except Exception:
        redis_ok = False

    return {
        "status": "healthy",
        "redis": "connected" if redis_ok else "disconnected",
        "accounts": await services.accounts.count_accounts() if redis_ok else None,
        "memory_write_backlog": await services.queue.pending(MEMORY_WRITE_QUEUE) if redis_ok else None,
        "tracing": "enabled" if services.tracer.enabled else "disabled",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
