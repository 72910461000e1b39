"""Tests for RoleRegistry: grant, revoke, listing and the admin bootstrap."""

import pytest

from authbot.auth.rbac import ADMIN_ROLE, NO_ROLE, RoleRegistry
from authbot.store import ConcurrentUpdate


async def _relation(redis_client):
    """Snapshot of the four stored views of "user has role"."""
    users = await redis_client.smembers("authbot:user")
    roles = await redis_client.smembers("authbot:role")
    user_roles = {u: await redis_client.get(f"authbot:user:{u}") for u in users}
    members = {r: await redis_client.smembers(f"authbot:role:{r}") for r in roles}
    return users, roles, user_roles, members


def _assert_symmetric(users, roles, user_roles, members):
    for username, role in user_roles.items():
        assert role in roles
        assert username in members[role]
    for role, names in members.items():
        assert names, f"role {role} listed with no members"
        for username in names:
            assert username in users
            assert user_roles[username] == role


class TestIsAdmin:
    @pytest.mark.asyncio
    async def test_bootstrap_admin_without_record(self, registry):
        assert await registry.get_role("root_admin") is None
        assert await registry.is_admin("root_admin") is True

    @pytest.mark.asyncio
    async def test_granted_admin(self, registry):
        assert await registry.is_admin("carol") is False
        await registry.grant("carol", ADMIN_ROLE)
        assert await registry.is_admin("carol") is True

    @pytest.mark.asyncio
    async def test_other_role_is_not_admin(self, registry):
        await registry.grant("dave", "editor")
        assert await registry.is_admin("dave") is False

    @pytest.mark.asyncio
    async def test_empty_username(self, registry):
        assert await registry.is_admin("") is False


class TestGrant:
    @pytest.mark.asyncio
    async def test_grant_writes_all_views(self, registry, redis_client):
        previous = await registry.grant("bob", "editor")

        assert previous is None
        assert await redis_client.get("authbot:user:bob") == "editor"
        assert await redis_client.smembers("authbot:user") == {"bob"}
        assert await redis_client.smembers("authbot:role") == {"editor"}
        assert await redis_client.smembers("authbot:role:editor") == {"bob"}

    @pytest.mark.asyncio
    async def test_grant_is_idempotent(self, registry, redis_client):
        await registry.grant("bob", "editor")
        before = await _relation(redis_client)

        previous = await registry.grant("bob", "editor")
        assert previous == "editor"
        assert await _relation(redis_client) == before

    @pytest.mark.asyncio
    async def test_switching_role_leaves_old_role(self, registry, redis_client):
        await registry.grant("bob", "editor")
        previous = await registry.grant("bob", "viewer")

        assert previous == "editor"
        assert await redis_client.smembers("authbot:role:editor") == set()
        assert await redis_client.smembers("authbot:role") == {"viewer"}
        _assert_symmetric(*await _relation(redis_client))

    @pytest.mark.asyncio
    async def test_switching_keeps_shared_role(self, registry, redis_client):
        await registry.grant("bob", "editor")
        await registry.grant("eve", "editor")
        await registry.grant("bob", "viewer")

        assert await redis_client.smembers("authbot:role:editor") == {"eve"}
        assert await redis_client.smembers("authbot:role") == {"editor", "viewer"}
        _assert_symmetric(*await _relation(redis_client))

    @pytest.mark.asyncio
    async def test_empty_arguments_rejected(self, registry):
        with pytest.raises(ValueError):
            await registry.grant("", "editor")
        with pytest.raises(ValueError):
            await registry.grant("bob", "")


class TestRevoke:
    @pytest.mark.asyncio
    async def test_revoke_last_member_drops_role(self, registry, redis_client):
        await registry.grant("bob", "editor")
        result = await registry.revoke("bob")

        assert result.previous_role == "editor"
        assert result.remaining == 0
        assert await redis_client.exists("authbot:user:bob") == 0
        assert await redis_client.smembers("authbot:user") == set()
        assert await redis_client.smembers("authbot:role") == set()

    @pytest.mark.asyncio
    async def test_revoke_keeps_role_with_members(self, registry, redis_client):
        await registry.grant("bob", "editor")
        await registry.grant("eve", "editor")
        result = await registry.revoke("bob")

        assert result.remaining == 1
        assert await redis_client.smembers("authbot:role") == {"editor"}
        _assert_symmetric(*await _relation(redis_client))

    @pytest.mark.asyncio
    async def test_revoke_without_role_changes_nothing(self, registry, redis_client):
        await registry.grant("eve", "editor")
        before = await _relation(redis_client)

        result = await registry.revoke("bob")
        assert result.previous_role is None
        assert await _relation(redis_client) == before

    @pytest.mark.asyncio
    async def test_revoke_retries_then_gives_up(self, store, config, monkeypatch):
        registry = RoleRegistry(store, config)
        calls = []

        async def _always_conflict(watch, read, plan):
            calls.append(watch)
            raise ConcurrentUpdate("changed")

        monkeypatch.setattr(store, "execute_guarded", _always_conflict)
        with pytest.raises(ConcurrentUpdate):
            await registry.revoke("bob")
        assert len(calls) == 3


class TestListing:
    @pytest.mark.asyncio
    async def test_list_users_and_roles(self, registry):
        await registry.grant("bob", "editor")
        await registry.grant("alice", "admin")
        await registry.grant("eve", "editor")

        assert await registry.list_users() == {"alice": "admin", "bob": "editor", "eve": "editor"}
        assert await registry.list_users("editor") == {"bob": "editor", "eve": "editor"}
        assert await registry.list_roles() == {"admin": 1, "editor": 2}
        assert await registry.list_roles("editor") == {"editor": 2}
        assert await registry.list_roles("missing") == {}

    @pytest.mark.asyncio
    async def test_user_without_role_record_lists_as_none(self, registry, redis_client):
        await redis_client.sadd("authbot:user", "ghost")
        assert await registry.list_users() == {"ghost": NO_ROLE}


class TestBobScenario:
    @pytest.mark.asyncio
    async def test_grant_then_revoke(self, registry, redis_client):
        await registry.grant("bob", "admin")
        assert await registry.is_admin("bob") is True
        assert await registry.list_roles() == {"admin": 1}

        result = await registry.revoke("bob")
        assert result.previous_role == "admin"
        assert await registry.is_admin("bob") is False
        assert await registry.list_users() == {}
        assert await registry.list_roles() == {}
        _assert_symmetric(*await _relation(redis_client))
