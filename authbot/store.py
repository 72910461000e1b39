"""Transactional key-value store adapter on top of Redis MULTI/EXEC."""

from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar

from redis.asyncio import Redis
from redis.asyncio.client import Pipeline
from redis.exceptions import RedisError, WatchError

from .config import AuthbotConfig
from .utils.logging import get_logger

logger = get_logger("authbot.store")

T = TypeVar("T")

Batch = Callable[[Pipeline], None]


class StoreFailure(Exception):
    """An atomic batch could not be executed; none of it is presumed applied."""


class ConcurrentUpdate(StoreFailure):
    """A watched key changed before the guarded batch committed."""


def create_redis(url: str) -> Redis:
    """Create a Redis client that returns str values."""
    return Redis.from_url(url, decode_responses=True)


class KeyValueStore:
    """Executes batches of Redis commands as single MULTI/EXEC transactions.

    Every component reaches Redis through this adapter so that all
    mutations are atomic relative to other callers. The adapter has no
    retry policy; callers decide what to do with a StoreFailure.
    """

    def __init__(self, client: Redis, namespace: str) -> None:
        self._client = client
        self._namespace = namespace

    @classmethod
    def from_config(cls, config: AuthbotConfig, client: Optional[Redis] = None) -> "KeyValueStore":
        return cls(client or create_redis(config.redis_url), config.namespace)

    @property
    def client(self) -> Redis:
        return self._client

    @property
    def namespace(self) -> str:
        return self._namespace

    def key(self, *parts: str) -> str:
        """Build a namespaced key, e.g. key("login", "alice") -> "authbot:login:alice"."""
        return ":".join((self._namespace, *parts))

    async def execute_atomic(self, batch: Batch) -> list[Any]:
        """Queue commands via ``batch`` and commit them as one transaction.

        Returns the per-command results in submission order.

        Raises:
            StoreFailure: the connection failed or Redis rejected the batch.
        """
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                batch(pipe)
                return await pipe.execute()
        except RedisError as exc:
            logger.error("store_batch_failed", error=str(exc))
            raise StoreFailure(str(exc)) from exc

    async def execute_guarded(
        self,
        watch: Sequence[str],
        read: Callable[[Pipeline], Awaitable[T]],
        plan: Callable[[T], Optional[Batch]],
    ) -> tuple[T, list[Any]]:
        """Check-and-set transaction.

        Watches ``watch``, runs ``read`` against the live connection (it may
        watch further keys), then commits the batch returned by
        ``plan(state)``. A ``None`` plan writes nothing and returns no results.

        Raises:
            ConcurrentUpdate: a watched key changed before EXEC.
            StoreFailure: the connection failed.
        """
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                await pipe.watch(*watch)
                state = await read(pipe)
                batch = plan(state)
                if batch is None:
                    return state, []
                pipe.multi()
                batch(pipe)
                return state, await pipe.execute()
        except WatchError as exc:
            logger.info("store_watch_conflict", keys=list(watch))
            raise ConcurrentUpdate(f"watched keys changed: {', '.join(watch)}") from exc
        except RedisError as exc:
            logger.error("store_guarded_batch_failed", error=str(exc))
            raise StoreFailure(str(exc)) from exc

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as exc:
            logger.warning("store_ping_failed", error=str(exc))
            return False

    async def close(self) -> None:
        await self._client.aclose()
