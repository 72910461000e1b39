"""Relay of bot updates pushed through a Redis pub/sub hub.

Used in development, where Telegram cannot reach the service directly: a
public webhook relay publishes each update on ``<hub_namespace>:<secret>``.
"""

import json
from typing import Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from ..utils.logging import get_logger
from .dispatcher import CommandDispatcher
from .messages import normalize_update

logger = get_logger("bot.hub")


class HubSubscriber:
    def __init__(self, client: Redis, channel: str, dispatcher: CommandDispatcher) -> None:
        self._client = client
        self._channel = channel
        self._dispatcher = dispatcher

    @property
    def channel(self) -> str:
        return self._channel

    async def handle_payload(self, raw: str) -> Optional[str]:
        """Dispatch one published update. Returns the reply, or None if skipped."""
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError) as exc:
            logger.warning("hub_payload_malformed", error=str(exc))
            return None

        message = normalize_update(payload)
        if message is None:
            logger.debug("hub_update_ignored")
            return None
        return await self._dispatcher.handle(message)

    async def run(self) -> None:
        """Subscribe and dispatch until cancelled."""
        pubsub = self._client.pubsub()
        try:
            await pubsub.subscribe(self._channel)
            logger.info("hub_subscribed", channel=self._channel)
            async for item in pubsub.listen():
                if item.get("type") != "message":
                    continue
                try:
                    await self.handle_payload(item.get("data"))
                except Exception as exc:
                    # One bad update must not stop the relay
                    logger.error("hub_dispatch_failed", channel=self._channel, error=str(exc), exc_info=True)
        except RedisError as exc:
            logger.error("hub_connection_failed", channel=self._channel, error=str(exc))
            raise
        finally:
            await pubsub.aclose()
