"""Login tokens, web sessions and role-based access control."""

from .rbac import ADMIN_ROLE, NO_ROLE, RevokeResult, RoleRegistry
from .sessions import MAX_RECENT_SESSIONS, SessionEngine, SessionSweep, generate_token

__all__ = [
    "ADMIN_ROLE",
    "NO_ROLE",
    "MAX_RECENT_SESSIONS",
    "RevokeResult",
    "RoleRegistry",
    "SessionEngine",
    "SessionSweep",
    "generate_token",
]
