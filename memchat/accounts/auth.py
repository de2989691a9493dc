"""API key authentication dependencies"""

from typing import Optional

from fastapi import Header, Request

from memchat.errors import Unauthenticated
from memchat.models.account import Account


async def get_account_from_api_key(request: Request, api_key: Optional[str]) -> Optional[Account]:
    """Get account from API key"""
    if not api_key:
        return None

    services = request.app.state.services
    return await services.accounts.get_account_by_api_key(api_key)


async def optional_account(
    request: Request,
    api_key: Optional[str] = Header(None, alias="X-API-Key"),
) -> Optional[Account]:
    """Resolve the caller, or None for read paths that fail open"""
    return await get_account_from_api_key(request, api_key)


async def require_account(
    request: Request,
    api_key: Optional[str] = Header(None, alias="X-API-Key"),
) -> Account:
    """Resolve the caller or fail with Unauthenticated"""
    account = await get_account_from_api_key(request, api_key)
    if account is None:
        raise Unauthenticated()
    return account
