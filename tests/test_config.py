"""Tests for AuthbotConfig defaults and validation."""

import pytest
from pydantic import ValidationError

from authbot.config import AuthbotConfig

REQUIRED = {
    "domain": "auth.example.com",
    "bot": "ExAuthDemoBot",
    "secret": "webhook-secret",
    "token": "123456:TEST-TOKEN",
    "admin": "root_admin",
}


def test_defaults():
    config = AuthbotConfig(_env_file=None, **REQUIRED)

    assert config.namespace == "authbot"
    assert config.login_expire == 30
    assert config.session_expire == 300
    assert config.cookie_expire == 60
    assert config.send_format == "html"
    assert config.redirect_auth == "/auth"
    assert config.redirect_noauth == "/noauth"
    assert config.hub_redis is None
    assert config.login_url_base == "https://auth.example.com/authbot/login"


def test_reads_environment(monkeypatch):
    for key, value in REQUIRED.items():
        monkeypatch.setenv(key.upper(), value)
    monkeypatch.setenv("LOGIN_EXPIRE", "90")

    config = AuthbotConfig(_env_file=None)
    assert config.login_expire == 90
    assert config.admin == "root_admin"


def test_required_settings_missing(monkeypatch):
    for key in REQUIRED:
        monkeypatch.delenv(key.upper(), raising=False)
    with pytest.raises(ValidationError):
        AuthbotConfig(_env_file=None)


@pytest.mark.parametrize(
    "override",
    [
        {"login_expire": 0},
        {"session_expire": -1},
        {"send_format": "xml"},
        {"namespace": ""},
        {"namespace": "auth:bot"},
    ],
)
def test_invalid_values(override):
    with pytest.raises(ValidationError):
        AuthbotConfig(_env_file=None, **{**REQUIRED, **override})
