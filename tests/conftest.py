"""Shared test fixtures."""

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from fakeredis import FakeServer
from fakeredis.aioredis import FakeRedis

from authbot.auth.rbac import RoleRegistry
from authbot.auth.sessions import SessionEngine
from authbot.config import AuthbotConfig
from authbot.store import KeyValueStore


def make_config(**overrides) -> AuthbotConfig:
    """Build a config without reading the environment's .env file."""
    values = {
        "domain": "auth.example.com",
        "bot": "ExAuthDemoBot",
        "secret": "webhook-secret",
        "token": "123456:TEST-TOKEN",
        "admin": "root_admin",
        "namespace": "authbot",
        "log_dir": "logs",
    }
    values.update(overrides)
    return AuthbotConfig(_env_file=None, **values)


@pytest.fixture
def config_factory(tmp_path):
    def _factory(**overrides) -> AuthbotConfig:
        overrides.setdefault("log_dir", str(tmp_path / "logs"))
        return make_config(**overrides)

    return _factory


@pytest.fixture
def config(config_factory):
    return config_factory()


@pytest_asyncio.fixture
async def redis_client():
    """An isolated in-process Redis for each test."""
    client = FakeRedis(server=FakeServer(), decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def store(redis_client, config):
    return KeyValueStore(redis_client, config.namespace)


@pytest.fixture
def engine(store, config):
    return SessionEngine(store, config)


@pytest.fixture
def registry(store, config):
    return RoleRegistry(store, config)


@pytest.fixture
def sender():
    """A notification sender that records messages instead of calling Telegram."""
    mock = AsyncMock()
    mock.send = AsyncMock(return_value=True)
    return mock
