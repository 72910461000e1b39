"""Telegram Bot API sender. Delivers bot replies via sendMessage."""

import html
import re

import httpx

from ..utils.logging import get_logger

logger = get_logger("notifications.telegram")

_PARSE_MODES = {"html": "HTML", "markdown": "Markdown", "plain": None}
_MARKDOWN_SPECIAL_RE = re.compile(r"([_*`\[])")


def escape_text(text: str, send_format: str = "html") -> str:
    """Escape user-supplied text (display names) for the given send format."""
    if send_format == "html":
        return html.escape(text, quote=False)
    if send_format == "markdown":
        return _MARKDOWN_SPECIAL_RE.sub(r"\\\1", text)
    return text


class TelegramSender:
    """Sends text messages to a Telegram chat.

    The sender owns the delivery format: callers supply content only and the
    configured parse mode is applied here. Delivery failures are logged and
    reported as False; they never raise into the caller.
    """

    def __init__(
        self,
        bot_token: str,
        timeout: float = 8.0,
        send_format: str = "html",
        api_base: str = "https://api.telegram.org",
    ) -> None:
        self._url = f"{api_base.rstrip('/')}/bot{bot_token}/sendMessage"
        self._timeout = timeout
        self._parse_mode = _PARSE_MODES.get(send_format)

    async def send(self, chat_id: str, text: str) -> bool:
        """Send ``text`` to ``chat_id``.

        Returns:
            True if Telegram accepted the message, False otherwise.
        """
        if not chat_id:
            logger.error("telegram_send_no_chat", text=text[:100])
            return False

        body = {
            "chat_id": chat_id,
            "text": text.strip(),
            "disable_notification": True,
        }
        if self._parse_mode:
            body["parse_mode"] = self._parse_mode

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self._url, json=body)
                response.raise_for_status()
                logger.info("telegram_sent", chat_id=chat_id, status=response.status_code)
                return True
        except httpx.HTTPStatusError as exc:
            # The URL embeds the bot token, never log it
            logger.warning(
                "telegram_http_error",
                chat_id=chat_id,
                status=exc.response.status_code,
                body=exc.response.text[:500],
            )
            return False
        except httpx.HTTPError as exc:
            logger.error("telegram_send_error", chat_id=chat_id, error=type(exc).__name__)
            return False
