"""Tests for account storage"""

import pytest

from memchat.errors import DuplicateAccount


@pytest.mark.asyncio
async def test_create_account_issues_api_key(accounts):
    """Test account creation with an API key"""
    account = await accounts.create_account("grace@example.com", is_premium=True)

    assert account.api_key
    assert account.is_premium is True
    assert account.memory_enabled is False
    assert account.normal_message_count == 0
    assert await accounts.count_accounts() == 1

    stored = await accounts.get_account(account.id)
    assert stored == account


@pytest.mark.asyncio
async def test_duplicate_email_is_rejected(accounts):
    """Test duplicate email rejection"""
    await accounts.create_account("grace@example.com")

    with pytest.raises(DuplicateAccount):
        await accounts.create_account("Grace@Example.com")
    assert await accounts.count_accounts() == 1


@pytest.mark.asyncio
async def test_lookup_by_api_key(accounts, account):
    """Test account lookup by API key"""
    found = await accounts.get_account_by_api_key(account.api_key)

    assert found.id == account.id
    assert await accounts.get_account_by_api_key("not-a-key") is None


@pytest.mark.asyncio
async def test_set_memory_enabled(accounts, account):
    """Test toggling the memory preference"""
    updated = await accounts.set_memory_enabled(account.id, True)

    assert updated.memory_enabled is True
    assert (await accounts.get_account(account.id)).memory_enabled is True
    assert await accounts.set_memory_enabled("missing", True) is None
