"""Integration test fixtures: in-process Redis, app lifespan, async client."""

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from authbot.main import create_app


@pytest.fixture
def notifier():
    mock = AsyncMock()
    mock.send = AsyncMock(return_value=True)
    return mock


@pytest_asyncio.fixture
async def test_app(config, redis_client, notifier):
    """App wired to the fake Redis, with startup and shutdown run around the test."""
    app = create_app(config, redis_client=redis_client, sender=notifier)
    async with app.router.lifespan_context(app):
        yield app


@pytest_asyncio.fixture
async def client(test_app):
    """Async HTTP client for testing."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def _session_cookie(response) -> str:
    """Extract the sessionId value from a Set-Cookie header."""
    header = response.headers["set-cookie"]
    name, _, rest = header.partition("=")
    assert name == "sessionId"
    return rest.split(";", 1)[0]


@pytest.fixture
def session_cookie():
    return _session_cookie


@pytest_asyncio.fixture
async def login(client, test_app):
    """Log ``username`` in through a bot-issued link; returns the Cookie header."""

    async def _login(username: str, name: str = "Tester", chat_id: str = "1000") -> dict:
        token = await test_app.state.sessions.issue_login_token(username, name, chat_id)
        resp = await client.get(f"/authbot/login/{username}/{token.token}")
        assert resp.status_code == 302, resp.text
        return {"Cookie": f"sessionId={_session_cookie(resp)}"}

    return _login
