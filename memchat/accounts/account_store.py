"""Account management and storage"""

import logging
import secrets
import uuid
from datetime import datetime
from typing import Optional, Dict

import redis.asyncio as redis

from memchat.errors import DuplicateAccount
from memchat.models.account import Account

logger = logging.getLogger(__name__)


class AccountStore:
    """
    Manages accounts

    Accounts are Redis hashes so usage counters can be incremented
    atomically in place (see UsageLedger).
    """

    def __init__(self, redis_client: redis.Redis):
        self.redis_client = redis_client
        self.api_key_cache: Dict[str, str] = {}

    def _key(self, account_id: str) -> str:
        return f"account:{account_id}"

    def _api_key_key(self, api_key: str) -> str:
        return f"account:api_key:{api_key}"

    def _email_key(self, email: str) -> str:
        return f"account:email:{email.lower()}"

    @staticmethod
    def _to_hash(account: Account) -> Dict[str, str]:
        return {
            "id": account.id,
            "email": account.email,
            "api_key": account.api_key,
            "created_at": account.created_at.isoformat(),
            "is_premium": "1" if account.is_premium else "0",
            "memory_enabled": "1" if account.memory_enabled else "0",
            "normal_message_count": str(account.normal_message_count),
            "premium_message_count": str(account.premium_message_count),
        }

    @staticmethod
    def _from_hash(data: Dict[str, str]) -> Account:
        return Account(
            id=data["id"],
            email=data["email"],
            api_key=data["api_key"],
            created_at=datetime.fromisoformat(data["created_at"]),
            is_premium=data.get("is_premium") == "1",
            memory_enabled=data.get("memory_enabled") == "1",
            normal_message_count=int(data.get("normal_message_count", 0)),
            premium_message_count=int(data.get("premium_message_count", 0)),
        )

    async def create_account(
        self,
        email: str,
        is_premium: bool = False,
        memory_enabled: bool = False,
    ) -> Account:
        """Create a new account and issue its API key"""
        account = Account(
            id=str(uuid.uuid4()),
            email=email,
            api_key=secrets.token_urlsafe(32),
            is_premium=is_premium,
            memory_enabled=memory_enabled,
        )

        claimed = await self.redis_client.set(self._email_key(email), account.id, nx=True)
        if not claimed:
            raise DuplicateAccount(email)

        async with self.redis_client.pipeline(transaction=True) as pipe:
            pipe.hset(self._key(account.id), mapping=self._to_hash(account))
            pipe.set(self._api_key_key(account.api_key), account.id)
            pipe.sadd("accounts", account.id)
            await pipe.execute()

        logger.info("Created account %s", account.id)
        return account

    async def get_account(self, account_id: str) -> Optional[Account]:
        """Get account by ID"""
        data = await self.redis_client.hgetall(self._key(account_id))
        if not data:
            return None
        return self._from_hash(data)

    async def get_account_by_api_key(self, api_key: str) -> Optional[Account]:
        """Get account by API key"""
        account_id = self.api_key_cache.get(api_key)
        if account_id is None:
            account_id = await self.redis_client.get(self._api_key_key(api_key))
            if not account_id:
                return None
            self.api_key_cache[api_key] = account_id

        return await self.get_account(account_id)

    async def set_memory_enabled(self, account_id: str, enabled: bool) -> Optional[Account]:
        """Toggle the account's default memory preference"""
        if not await self.redis_client.exists(self._key(account_id)):
            return None
        await self.redis_client.hset(self._key(account_id), "memory_enabled", "1" if enabled else "0")
        return await self.get_account(account_id)

    async def count_accounts(self) -> int:
        return await self.redis_client.scard("accounts")
