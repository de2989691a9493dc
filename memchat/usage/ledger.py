"""Per-account message counters split by pricing tier"""

from typing import Optional

import redis.asyncio as redis

from memchat.models.account import UsageSnapshot
from memchat.usage.tiers import Tier

COUNTER_FIELDS = {
    Tier.NORMAL: "normal_message_count",
    Tier.PREMIUM: "premium_message_count",
}


class UsageLedger:
    """Track completed model turns per account"""

    def __init__(self, redis_client: redis.Redis):
        self.redis_client = redis_client

    def _key(self, account_id: str) -> str:
        return f"account:{account_id}"

    async def increment_tier(self, account_id: str, tier: Tier) -> int:
        """
        Count one completed turn against a tier

        HINCRBY is atomic in Redis, so concurrent turns of one account
        never lose an update. Returns the new counter value.
        """
        return await self.redis_client.hincrby(self._key(account_id), COUNTER_FIELDS[tier], 1)

    async def get_usage(self, account_id: str) -> Optional[UsageSnapshot]:
        """Get counters and plan of an account"""
        data = await self.redis_client.hgetall(self._key(account_id))
        if not data:
            return None

        return UsageSnapshot(
            normal_message_count=int(data.get("normal_message_count", 0)),
            premium_message_count=int(data.get("premium_message_count", 0)),
            is_premium=data.get("is_premium") == "1",
        )
