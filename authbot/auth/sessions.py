"""Login token issue and exchange, web sessions, and the recent-session list.

A login token bridges a Telegram identity to a web session: the bot issues
it in chat, the user opens the link, and the exchange consumes the token in
the same transaction that creates the session. All lifetimes are Redis TTLs.
"""

import re
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from ..config import AuthbotConfig
from ..models.session import LoginToken, Session
from ..store import ConcurrentUpdate, KeyValueStore
from ..utils.logging import get_logger

logger = get_logger("auth.sessions")

TOKEN_LENGTH = 16
TOKEN_ALPHABET = string.digits + string.ascii_uppercase + string.ascii_lowercase

# SessionList keeps the newest ids only
MAX_RECENT_SESSIONS = 4
DEFAULT_LIST_LIMIT = 6

# <login token>_<random suffix>; anything else cannot name a session hash
SESSION_ID_RE = re.compile(rf"[0-9A-Za-z]{{{TOKEN_LENGTH}}}_[0-9A-Za-z]{{{TOKEN_LENGTH}}}")


def generate_token(length: int = TOKEN_LENGTH) -> str:
    """Random alphanumeric token from the OS CSPRNG."""
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


def is_session_id(value: str) -> bool:
    return bool(value) and SESSION_ID_RE.fullmatch(value) is not None


@dataclass
class SessionSweep:
    """Outcome of terminating a user's recent sessions."""

    count: int
    newest: Optional[timedelta] = None
    oldest: Optional[timedelta] = None


class SessionEngine:
    """Token/session state machine over the transactional store.

    Example:
        engine = SessionEngine(store, config)
        login = await engine.issue_login_token("alice", "Alice", "1234")
        session = await engine.exchange_token("alice", login.token)
    """

    def __init__(self, store: KeyValueStore, config: AuthbotConfig) -> None:
        self._store = store
        self._login_expire = config.login_expire
        self._session_expire = config.session_expire

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    def login_key(self, username: str) -> str:
        return self._store.key("login", username)

    def session_key(self, session_id: str) -> str:
        return self._store.key("session", session_id)

    def session_list_key(self, username: str) -> str:
        # Usernames are at most 32 chars, session ids 33, so the two never collide
        return self._store.key("session", username)

    # ------------------------------------------------------------------
    # Login tokens
    # ------------------------------------------------------------------

    async def issue_login_token(self, username: str, name: str, chat_id: str = "") -> LoginToken:
        """Issue a fresh token for ``username``, replacing any pending one.

        Raises:
            ValueError: empty username
            StoreFailure: the batch could not be executed
        """
        if not username:
            raise ValueError("username is required")

        login = LoginToken(token=generate_token(), username=username, name=name or username, chat_id=str(chat_id or ""))
        key = self.login_key(username)

        def batch(pipe):
            pipe.delete(key)
            pipe.hset(key, mapping=login.to_mapping())
            pipe.expire(key, self._login_expire)

        await self._store.execute_atomic(batch)
        logger.info("login_token_issued", username=username, expires_in=self._login_expire)
        return login

    async def exchange_token(self, username: str, token: str) -> Optional[Session]:
        """Consume a login token and open a session.

        Returns None when the token is missing or expired, or when the link's
        username/token do not match the stored record. The caller cannot tell
        these cases apart.

        Raises:
            StoreFailure: the store could not be reached
        """
        key = self.login_key(username)
        session_id = f"{token}_{generate_token()}"
        started = datetime.now(timezone.utc)

        async def read(pipe) -> dict:
            return await pipe.hgetall(key)

        created: list[Session] = []

        def plan(stored: dict):
            if not stored or stored.get("username") != username or stored.get("token") != token:
                return None
            session = Session(
                session_id=session_id,
                username=username,
                name=stored.get("name") or username,
                chat_id=stored.get("chatId", ""),
                started=started,
                token=token,
            )
            created.append(session)
            session_key = self.session_key(session_id)
            list_key = self.session_list_key(username)

            def batch(p):
                p.hset(session_key, mapping=session.to_mapping())
                p.expire(session_key, self._session_expire)
                p.delete(key)
                p.lpush(list_key, session_id)
                p.ltrim(list_key, 0, MAX_RECENT_SESSIONS - 1)

            return batch

        try:
            stored, results = await self._store.execute_guarded([key], read, plan)
        except ConcurrentUpdate:
            # Another exchange or a new /login got there first
            logger.info("login_exchange_raced", username=username)
            return None

        if not stored:
            logger.info("login_token_not_found", username=username)
            return None
        if not results:
            logger.warning("login_token_mismatch", username=username)
            return None

        logger.info("session_created", username=username, expires_in=self._session_expire)
        return created[0]

    async def discard_login_token(self, username: str) -> bool:
        """Delete a pending login token, if any."""
        key = self.login_key(username)
        (deleted,) = await self._store.execute_atomic(lambda pipe: pipe.delete(key))
        return bool(deleted)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def lookup_session(self, session_id: str) -> Optional[Session]:
        """Return the live session, or None if it never existed or expired."""
        if not is_session_id(session_id):
            return None
        key = self.session_key(session_id)
        (mapping,) = await self._store.execute_atomic(lambda pipe: pipe.hgetall(key))
        if not mapping:
            return None
        return Session.from_mapping(session_id, mapping)

    async def terminate_session(self, session_id: str) -> Optional[Session]:
        """Read and delete a session in one transaction."""
        if not is_session_id(session_id):
            return None
        key = self.session_key(session_id)

        def batch(pipe):
            pipe.hgetall(key)
            pipe.delete(key)

        mapping, _ = await self._store.execute_atomic(batch)
        if not mapping:
            return None
        logger.info("session_terminated", username=mapping.get("username"))
        return Session.from_mapping(session_id, mapping)

    async def list_recent_sessions(self, username: str, limit: int = DEFAULT_LIST_LIMIT) -> list[Session]:
        """Live sessions from the user's recent list, newest first."""
        session_ids = await self._recent_session_ids(username, limit)
        return await self._resolve(session_ids)

    async def terminate_all_recent_sessions(self, username: str, limit: int = DEFAULT_LIST_LIMIT) -> SessionSweep:
        """Delete every live session in the user's recent list."""
        session_ids = await self._recent_session_ids(username, limit)
        sessions = await self._resolve(session_ids)
        if not sessions:
            return SessionSweep(count=0)

        keys = [self.session_key(s.session_id) for s in sessions]
        await self._store.execute_atomic(lambda pipe: pipe.delete(*keys))

        now = datetime.now(timezone.utc)
        logger.info("sessions_terminated", username=username, count=len(sessions))
        return SessionSweep(
            count=len(sessions),
            newest=sessions[0].elapsed(now),
            oldest=sessions[-1].elapsed(now),
        )

    async def _recent_session_ids(self, username: str, limit: int) -> list[str]:
        if limit < 1:
            return []
        key = self.session_list_key(username)
        (session_ids,) = await self._store.execute_atomic(lambda pipe: pipe.lrange(key, 0, limit - 1))
        return session_ids

    async def _resolve(self, session_ids: list[str]) -> list[Session]:
        if not session_ids:
            return []

        def batch(pipe):
            for session_id in session_ids:
                pipe.hgetall(self.session_key(session_id))

        mappings = await self._store.execute_atomic(batch)
        # Listed ids may have expired independently of the list itself
        return [
            Session.from_mapping(session_id, mapping)
            for session_id, mapping in zip(session_ids, mappings)
            if mapping
        ]
