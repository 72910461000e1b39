"""Chat command grammar: parses message text into a closed set of commands."""

import re
from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class Login:
    pass


@dataclass(frozen=True)
class Logout:
    pass


@dataclass(frozen=True)
class ListSessions:
    pass


@dataclass(frozen=True)
class ListUsers:
    role: Optional[str] = None


@dataclass(frozen=True)
class ListRoles:
    role: Optional[str] = None


@dataclass(frozen=True)
class Grant:
    username: str
    role: str


@dataclass(frozen=True)
class Revoke:
    username: str


@dataclass(frozen=True)
class Usage:
    """A known command with arguments that do not match its syntax."""

    command: str


@dataclass(frozen=True)
class Unrecognized:
    pass


Command = Union[Login, Logout, ListSessions, ListUsers, ListRoles, Grant, Revoke, Usage, Unrecognized]

# /name, optionally addressed as /name@SomeBot, then free-form arguments
_COMMAND_RE = re.compile(r"^/([A-Za-z_]+)(?:@(\w+))?(?:\s+(.*))?$", re.DOTALL)

_NAME = r"[a-z][a-z0-9_]*"
_GRANT_ARGS_RE = re.compile(rf"^@({_NAME})\s+#({_NAME})$")
_REVOKE_ARGS_RE = re.compile(rf"^@({_NAME})$")
_ROLE_FILTER_RE = re.compile(rf"^#({_NAME})$")

USAGE = {
    "grant": "/grant <code>@username</code> <code>#role</code> e.g. <code>/grant @other_user #admin</code>",
    "revoke": "/revoke <code>@username</code> e.g. <code>/revoke @other_user</code>",
    "users": "/users optionally followed by <code>#role</code>",
    "roles": "/roles optionally followed by <code>#role</code>",
}

_ALIASES = {
    "login": "login",
    "logout": "logout",
    "session": "sessions",
    "sessions": "sessions",
    "user": "users",
    "users": "users",
    "role": "roles",
    "roles": "roles",
    "grant": "grant",
    "revoke": "revoke",
}


def _role_filter(name: str, args: str) -> Union[ListUsers, ListRoles, Usage]:
    factory = ListUsers if name == "users" else ListRoles
    if not args:
        return factory()
    match = _ROLE_FILTER_RE.match(args)
    if not match:
        return Usage(name)
    return factory(role=match.group(1))


def parse_command(text: str, bot: Optional[str] = None) -> Command:
    """Parse a chat message into a command.

    Args:
        text: Raw message text
        bot: This bot's name; commands addressed to another bot are ignored

    Returns:
        One of the command variants. Admin commands with bad arguments
        give ``Usage``; anything else unknown gives ``Unrecognized``.
    """
    match = _COMMAND_RE.match((text or "").strip())
    if not match:
        return Unrecognized()

    raw_name, addressee, args = match.groups()
    if addressee and bot and addressee.lower() != bot.lower():
        return Unrecognized()

    name = _ALIASES.get(raw_name.lower())
    args = (args or "").strip()

    if name == "login":
        return Login()
    if name == "logout":
        return Logout()
    if name == "sessions":
        return ListSessions()
    if name in ("users", "roles"):
        return _role_filter(name, args)
    if name == "grant":
        grant = _GRANT_ARGS_RE.match(args)
        return Grant(username=grant.group(1), role=grant.group(2)) if grant else Usage("grant")
    if name == "revoke":
        revoke = _REVOKE_ARGS_RE.match(args)
        return Revoke(username=revoke.group(1)) if revoke else Usage("revoke")
    return Unrecognized()
