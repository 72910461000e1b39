"""Login token and web session records stored as Redis hashes."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from ..utils.timefmt import from_epoch_millis, to_epoch_millis


@dataclass
class LoginToken:
    """Pending login, valid for one exchange until its TTL runs out.

    Attributes:
        token: Random token embedded in the login link
        username: Telegram username the token was issued to
        name: Display name used in replies
        chat_id: Telegram chat to notify
    """
    token: str
    username: str
    name: str
    chat_id: str = ""

    def to_mapping(self) -> dict[str, str]:
        return {
            "token": self.token,
            "username": self.username,
            "name": self.name,
            "chatId": self.chat_id,
        }

    @classmethod
    def from_mapping(cls, mapping: dict[str, str]) -> "LoginToken":
        return cls(
            token=mapping.get("token", ""),
            username=mapping.get("username", ""),
            name=mapping.get("name", ""),
            chat_id=mapping.get("chatId", ""),
        )


@dataclass
class Session:
    """Web session created by exchanging a login token.

    Attributes:
        session_id: ``<token>_<random suffix>``, also the cookie value
        username: Session owner
        name: Display name
        chat_id: Telegram chat of the owner
        started: Exchange time (UTC)
        token: The login token that was consumed
    """
    session_id: str
    username: str
    name: str
    chat_id: str
    started: datetime
    token: str = ""

    def elapsed(self, now: Optional[datetime] = None) -> timedelta:
        return (now or datetime.now(timezone.utc)) - self.started

    def to_mapping(self) -> dict[str, str]:
        return {
            "token": self.token,
            "username": self.username,
            "name": self.name,
            "chatId": self.chat_id,
            "started": str(to_epoch_millis(self.started)),
        }

    @classmethod
    def from_mapping(cls, session_id: str, mapping: dict[str, str]) -> "Session":
        started = mapping.get("started")
        return cls(
            session_id=session_id,
            username=mapping.get("username", ""),
            name=mapping.get("name", ""),
            chat_id=mapping.get("chatId", ""),
            started=from_epoch_millis(started) if started else datetime.fromtimestamp(0, tz=timezone.utc),
            token=mapping.get("token", ""),
        )
