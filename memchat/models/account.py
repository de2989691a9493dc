"""Account model for multi-tenancy support"""

from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, Field


class Account(BaseModel):
    """Account model"""
    id: str
    email: str
    api_key: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    is_premium: bool = False
    memory_enabled: bool = False

    # Usage counters, mutated only by the usage ledger
    normal_message_count: int = 0
    premium_message_count: int = 0


class UsageSnapshot(BaseModel):
    """Account usage counters"""
    normal_message_count: int = 0
    premium_message_count: int = 0
    is_premium: bool = False


class AccountCreate(BaseModel):
    """Account registration payload"""
    email: str = Field(..., min_length=3)
    is_premium: bool = False
    memory_enabled: bool = False


class AccountSettingsUpdate(BaseModel):
    """Per-account preference changes"""
    memory_enabled: Optional[bool] = None
