"""Telegram webhook endpoint."""

import hmac

from fastapi import APIRouter, Depends, Request, Response

from ...bot.dispatcher import CommandDispatcher
from ...bot.messages import normalize_update
from ...config import AuthbotConfig
from ...dependencies import get_app_config, get_dispatcher
from ...utils.logging import get_logger

logger = get_logger("api.webhook")

router = APIRouter(prefix="/authbot", tags=["webhook"])


@router.post("/webhook/{secret}")
async def telegram_webhook(
    secret: str,
    request: Request,
    config: AuthbotConfig = Depends(get_app_config),
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
):
    """Receive one Telegram update.

    Always answers with an empty 200 so Telegram does not redeliver.
    """
    if not hmac.compare_digest(secret.encode(), config.secret.encode()):
        logger.warning("webhook_secret_invalid", path_length=len(secret))
        return Response(status_code=200)

    try:
        payload = await request.json()
    except ValueError:
        logger.warning("webhook_body_malformed")
        return Response(status_code=200)

    message = normalize_update(payload)
    if message is None:
        logger.debug("webhook_update_ignored")
        return Response(status_code=200)

    await dispatcher.handle(message)
    return Response(status_code=200)
