"""Record types persisted in Redis."""

from .session import LoginToken, Session

__all__ = ["LoginToken", "Session"]
