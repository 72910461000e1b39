"""Telegram-authenticated web sessions with chat-managed roles."""

__version__ = "0.1.0"
