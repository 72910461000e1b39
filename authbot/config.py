"""AuthBot configuration system using Pydantic Settings."""

from __future__ import annotations

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AuthbotConfig(BaseSettings):
    """Main configuration class. Loads from .env file and environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = "authbot"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8080

    # Telegram bot (no defaults, must be provided)
    domain: str  # HTTPS web domain the login links point at
    bot: str  # bot name, e.g. ExAuthDemoBot
    secret: str  # webhook path secret
    token: str  # Bot API token
    admin: str  # bootstrap admin username

    telegram_api: str = "https://api.telegram.org"
    send_timeout: float = 8.0
    send_format: str = "html"  # html / markdown / plain

    # Redis
    redis_url: str = "redis://127.0.0.1:6379"
    namespace: str = "authbot"

    # Optional hub for bot updates over Redis pub/sub (development)
    hub_redis: Optional[str] = None
    hub_namespace: str = "telebot"

    # Lifetimes (seconds)
    login_expire: int = 30
    session_expire: int = 300
    cookie_expire: int = 60

    # HTTP
    redirect_auth: str = "/auth"
    redirect_noauth: str = "/noauth"
    session_route: bool = True

    # Logging
    log_dir: str = "logs"
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("login_expire", "session_expire", "cookie_expire")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("expiry must be at least 1 second")
        return v

    @field_validator("send_format")
    @classmethod
    def validate_send_format(cls, v: str) -> str:
        allowed = {"html", "markdown", "plain"}
        if v not in allowed:
            raise ValueError(f"send_format must be one of {allowed}")
        return v

    @field_validator("namespace")
    @classmethod
    def validate_namespace(cls, v: str) -> str:
        if not v or ":" in v:
            raise ValueError("namespace must be non-empty and must not contain ':'")
        return v

    @property
    def login_url_base(self) -> str:
        return f"https://{self.domain}/authbot/login"


def get_config() -> AuthbotConfig:
    """Factory function to create config instance."""
    return AuthbotConfig()
