"""Role-Based Access Control registry.

One logical relation, "user has role", is stored four ways so each lookup
direction is a single Redis read:

    ns:user:<username>  string  role name
    ns:user             set     all usernames with a role
    ns:role             set     all roles with at least one member
    ns:role:<role>      set     usernames holding the role

Grant and revoke update all four inside one WATCH/MULTI/EXEC transaction.
"""

from dataclasses import dataclass
from typing import Optional

from ..config import AuthbotConfig
from ..store import ConcurrentUpdate, KeyValueStore
from ..utils.logging import get_logger

logger = get_logger("auth.rbac")

ADMIN_ROLE = "admin"
NO_ROLE = "none"

# Re-plans of a guarded transaction after a concurrent write
_MAX_ATTEMPTS = 3


@dataclass
class RevokeResult:
    """previous_role is None when the user held no role (nothing changed)."""

    previous_role: Optional[str]
    remaining: int = 0


@dataclass
class _Membership:
    role: Optional[str]
    members: int = 0
    is_member: bool = False

    @property
    def remaining_without_user(self) -> int:
        return self.members - 1 if self.is_member else self.members


class RoleRegistry:
    """Grants, revokes and lists roles.

    The bootstrap admin from config is always an admin even though no
    UserRole record exists for it.
    """

    def __init__(self, store: KeyValueStore, config: AuthbotConfig) -> None:
        self._store = store
        self._bootstrap_admin = config.admin

    @property
    def bootstrap_admin(self) -> str:
        return self._bootstrap_admin

    def user_key(self, username: str) -> str:
        return self._store.key("user", username)

    def role_key(self, role: str) -> str:
        return self._store.key("role", role)

    @property
    def users_key(self) -> str:
        return self._store.key("user")

    @property
    def roles_key(self) -> str:
        return self._store.key("role")

    async def get_role(self, username: str) -> Optional[str]:
        key = self.user_key(username)
        (role,) = await self._store.execute_atomic(lambda pipe: pipe.get(key))
        return role

    async def is_admin(self, username: str) -> bool:
        if not username:
            return False
        if username == self._bootstrap_admin:
            return True
        return await self.get_role(username) == ADMIN_ROLE

    async def grant(self, username: str, role: str) -> Optional[str]:
        """Give ``username`` the single role ``role``. Returns the previous role.

        Granting the role the user already holds rewrites the same values.
        """
        if not username or not role:
            raise ValueError("username and role are required")

        user_key = self.user_key(username)

        async def read(pipe) -> _Membership:
            previous = await pipe.get(user_key)
            if not previous or previous == role:
                return _Membership(role=previous)
            previous_key = self.role_key(previous)
            await pipe.watch(previous_key)
            return _Membership(
                role=previous,
                members=await pipe.scard(previous_key),
                is_member=bool(await pipe.sismember(previous_key, username)),
            )

        def plan(current: _Membership):
            def batch(pipe):
                pipe.set(user_key, role)
                pipe.sadd(self.users_key, username)
                pipe.sadd(self.roles_key, role)
                pipe.sadd(self.role_key(role), username)
                if current.role and current.role != role:
                    pipe.srem(self.role_key(current.role), username)
                    if current.remaining_without_user <= 0:
                        pipe.srem(self.roles_key, current.role)

            return batch

        current, _ = await self._guarded([user_key], read, plan)
        logger.info("role_granted", username=username, role=role, previous_role=current.role)
        return current.role

    async def revoke(self, username: str) -> RevokeResult:
        """Remove the user's role, dropping the role itself once it has no members."""
        user_key = self.user_key(username)

        async def read(pipe) -> _Membership:
            role = await pipe.get(user_key)
            if not role:
                return _Membership(role=None)
            await pipe.watch(self.role_key(role))
            return _Membership(
                role=role,
                members=await pipe.scard(self.role_key(role)),
                is_member=bool(await pipe.sismember(self.role_key(role), username)),
            )

        def plan(current: _Membership):
            if current.role is None:
                return None
            role_key = self.role_key(current.role)

            def batch(pipe):
                pipe.delete(user_key)
                pipe.srem(self.users_key, username)
                pipe.srem(role_key, username)
                pipe.scard(role_key)
                if current.remaining_without_user <= 0:
                    pipe.srem(self.roles_key, current.role)

            return batch

        current, results = await self._guarded([user_key], read, plan)
        if current.role is None:
            logger.info("role_revoke_noop", username=username)
            return RevokeResult(previous_role=None)

        remaining = int(results[3])
        logger.info("role_revoked", username=username, role=current.role, remaining=remaining)
        return RevokeResult(previous_role=current.role, remaining=remaining)

    async def list_users(self, role_filter: Optional[str] = None) -> dict[str, str]:
        """Map each known username to its role, optionally for one role only."""
        if role_filter:
            key = self.role_key(role_filter)
            (members,) = await self._store.execute_atomic(lambda pipe: pipe.smembers(key))
            return {username: role_filter for username in sorted(members)}

        (usernames,) = await self._store.execute_atomic(lambda pipe: pipe.smembers(self.users_key))
        usernames = sorted(usernames)
        if not usernames:
            return {}

        def batch(pipe):
            for username in usernames:
                pipe.get(self.user_key(username))

        roles = await self._store.execute_atomic(batch)
        return {username: role or NO_ROLE for username, role in zip(usernames, roles)}

    async def list_roles(self, role_filter: Optional[str] = None) -> dict[str, int]:
        """Map each role with at least one member to its member count."""
        if role_filter:
            roles = [role_filter]
        else:
            (members,) = await self._store.execute_atomic(lambda pipe: pipe.smembers(self.roles_key))
            roles = sorted(members)
        if not roles:
            return {}

        def batch(pipe):
            for role in roles:
                pipe.scard(self.role_key(role))

        counts = await self._store.execute_atomic(batch)
        return {role: int(count) for role, count in zip(roles, counts) if count}

    async def _guarded(self, watch, read, plan):
        for attempt in range(1, _MAX_ATTEMPTS + 1):
            try:
                return await self._store.execute_guarded(watch, read, plan)
            except ConcurrentUpdate:
                if attempt == _MAX_ATTEMPTS:
                    raise
                logger.info("rbac_retry_after_conflict", attempt=attempt, keys=list(watch))
