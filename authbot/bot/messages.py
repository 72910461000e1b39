"""Normalizes raw Telegram updates into the fields the dispatcher needs."""

from typing import Any, Optional

from pydantic import BaseModel


class InboundMessage(BaseModel):
    username: Optional[str] = None
    name: str
    chat_id: str
    text: str
    timestamp: int = 0


def _str_field(mapping: dict, key: str) -> Optional[str]:
    value = mapping.get(key)
    return value if isinstance(value, str) and value else None


def normalize_update(payload: Any) -> Optional[InboundMessage]:
    """Extract sender, chat and text from a Telegram ``Update``.

    Returns None for updates that carry no text message (edits, joins,
    callback queries and the like) or whose fields have the wrong shape.
    """
    if not isinstance(payload, dict):
        return None
    message = payload.get("message")
    if not isinstance(message, dict):
        return None
    text = message.get("text")
    chat = message.get("chat")
    if not isinstance(text, str) or not isinstance(chat, dict):
        return None
    chat_id = chat.get("id")
    if not isinstance(chat_id, (int, str)) or isinstance(chat_id, bool) or chat_id == "":
        return None

    sender = message.get("from")
    if not isinstance(sender, dict):
        sender = {}
    username = _str_field(sender, "username")
    date = message.get("date")
    return InboundMessage(
        username=username,
        name=_str_field(sender, "first_name") or username or "there",
        chat_id=str(chat_id),
        text=text,
        timestamp=date if isinstance(date, int) and not isinstance(date, bool) else 0,
    )
