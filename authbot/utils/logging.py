"""structlog setup: one JSON (or console) line per event, to stdout and a rotating file."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

import structlog

LOG_FILE = "authbot.log"

# httpx logs request URLs at INFO, and Bot API URLs embed the bot token
_QUIET_LOGGERS = ("httpx", "httpcore")


def _handlers(log_dir: str, log_max_bytes: int, log_backup_count: int) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    try:
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                os.path.join(log_dir, LOG_FILE),
                maxBytes=log_max_bytes,
                backupCount=log_backup_count,
                encoding="utf-8",
            )
        )
    except OSError:
        # Read-only filesystem: stdout only
        pass
    return handlers


def setup_logging(
    debug: bool = False,
    log_dir: Optional[str] = "logs",
    log_max_bytes: int = 10_000_000,
    log_backup_count: int = 5,
) -> None:
    """Route structlog events and stdlib records (uvicorn) through the same handlers.

    Events are rendered by structlog and handed to stdlib logging as the
    final message, so the file handler sees exactly what stdout sees.
    ``log_dir=None`` disables the file.
    """
    log_level = logging.DEBUG if debug else logging.INFO

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if debug:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    handlers = _handlers(log_dir, log_max_bytes, log_backup_count) if log_dir else [logging.StreamHandler(sys.stdout)]
    formatter = logging.Formatter("%(message)s")
    for handler in handlers:
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a named structured logger, e.g. ``get_logger("auth.sessions")``."""
    return structlog.get_logger(name)
