"""FastAPI dependency injection providers.

Components are built once in the application lifespan and kept on
``app.state``; these providers hand them to routes.
"""

from typing import Annotated, Optional

from fastapi import Cookie, Depends, HTTPException, Request, status

from .auth.rbac import RoleRegistry
from .auth.sessions import SessionEngine
from .bot.dispatcher import CommandDispatcher
from .config import AuthbotConfig
from .models.session import Session
from .notifications.telegram import TelegramSender
from .store import KeyValueStore
from .utils.logging import get_logger

_dep_logger = get_logger("dependencies")

SESSION_COOKIE = "sessionId"


def get_app_config(request: Request) -> AuthbotConfig:
    return request.app.state.config


def get_store(request: Request) -> KeyValueStore:
    return request.app.state.store


def get_session_engine(request: Request) -> SessionEngine:
    return request.app.state.sessions


def get_role_registry(request: Request) -> RoleRegistry:
    return request.app.state.registry


def get_sender(request: Request) -> TelegramSender:
    return request.app.state.sender


def get_dispatcher(request: Request) -> CommandDispatcher:
    return request.app.state.dispatcher


async def get_current_session(
    engine: Annotated[SessionEngine, Depends(get_session_engine)],
    session_id: Annotated[Optional[str], Cookie(alias=SESSION_COOKIE)] = None,
) -> Session:
    """Resolve the session from the ``sessionId`` cookie.

    Raises 401 if the cookie is missing or the session has expired.
    """
    if not session_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    session = await engine.lookup_session(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session expired")
    return session


async def require_admin(
    session: Annotated[Session, Depends(get_current_session)],
    registry: Annotated[RoleRegistry, Depends(get_role_registry)],
) -> Session:
    """Allow only sessions whose user holds the admin role."""
    if not await registry.is_admin(session.username):
        _dep_logger.warning("admin_access_denied", username=session.username)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
    return session
