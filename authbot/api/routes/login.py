"""Browser-facing login, logout and session check routes."""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Cookie, Depends, Request, status
from fastapi.responses import PlainTextResponse, RedirectResponse, Response

from ...auth.sessions import SessionEngine
from ...config import AuthbotConfig
from ...dependencies import SESSION_COOKIE, get_app_config, get_sender, get_session_engine
from ...notifications.telegram import TelegramSender, escape_text
from ...utils.logging import get_logger

logger = get_logger("api.login")

router = APIRouter(prefix="/authbot", tags=["login"])

# Mounted only when session_route is enabled
session_router = APIRouter(tags=["session"])


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)


@router.get("/login/{username}/{token}")
async def login(
    username: str,
    token: str,
    request: Request,
    background: BackgroundTasks,
    config: AuthbotConfig = Depends(get_app_config),
    engine: SessionEngine = Depends(get_session_engine),
    sender: TelegramSender = Depends(get_sender),
):
    """Exchange the login link's token for a session cookie."""
    user_agent = request.headers.get("user-agent", "")
    if user_agent.startswith("TelegramBot"):
        # Link previews must not consume the token
        logger.info("login_preview_refused", username=username)
        return Response(status_code=status.HTTP_403_FORBIDDEN)

    session = await engine.exchange_token(username, token)
    if session is None:
        return _redirect(config.redirect_noauth)

    response = _redirect(config.redirect_auth)
    response.set_cookie(
        key=SESSION_COOKIE,
        value=session.session_id,
        max_age=config.cookie_expire,
        domain=config.domain,
        path="/",
        httponly=True,
        secure=True,
        samesite="lax",
    )
    name = escape_text(session.name, config.send_format)
    background.add_task(sender.send, session.chat_id, f"Thanks {name}, you have logged in.")
    return response


@router.get("/logout")
async def logout(
    config: AuthbotConfig = Depends(get_app_config),
    engine: SessionEngine = Depends(get_session_engine),
    session_id: Optional[str] = Cookie(default=None, alias=SESSION_COOKIE),
):
    """End the cookie's session and forget any pending login link."""
    if session_id:
        session = await engine.terminate_session(session_id)
        if session is not None:
            await engine.discard_login_token(session.username)

    response = _redirect(config.redirect_noauth)
    response.delete_cookie(SESSION_COOKIE, path="/", domain=config.domain, httponly=True, secure=True)
    return response


@session_router.get("/authbot-session/{username}/{session_id}")
async def check_session(
    username: str,
    session_id: str,
    engine: SessionEngine = Depends(get_session_engine),
):
    """For reverse proxies: is this session live and owned by ``username``?"""
    session = await engine.lookup_session(session_id)
    if session is None or session.username != username:
        return PlainTextResponse("Access prohibited", status_code=status.HTTP_403_FORBIDDEN)
    return PlainTextResponse("Authenticated")
