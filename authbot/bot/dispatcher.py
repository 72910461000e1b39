"""Routes parsed chat commands to the session engine and
role registry and replies through the notification sender."""

from typing import Optional

from ..auth.rbac import RoleRegistry
from ..auth.sessions import SessionEngine
from ..config import AuthbotConfig
from ..notifications.telegram import TelegramSender, escape_text
from ..store import StoreFailure
from ..utils.logging import get_logger
from ..utils.timefmt import format_elapsed
from .commands import (
    USAGE,
    Command,
    Grant,
    ListRoles,
    ListSessions,
    ListUsers,
    Login,
    Logout,
    Revoke,
    Unrecognized,
    Usage,
    parse_command,
)
from .messages import InboundMessage

logger = get_logger("bot.dispatcher")

HELP_LINES = [
    "Try <code>/login</code>",
    "Other commands: /sessions, /logout, /users, /roles, /grant, /revoke",
]

_ADMIN_COMMANDS = (Grant, Revoke, ListUsers, ListRoles, Usage)


class CommandDispatcher:
    """Turns an inbound chat message into store operations and a reply.

    Every handler returns the reply lines; ``handle`` joins them, prefixes
    the thank-you greeting and sends the result to the originating chat.
    """

    def __init__(
        self,
        config: AuthbotConfig,
        sessions: SessionEngine,
        registry: RoleRegistry,
        sender: TelegramSender,
    ) -> None:
        self._config = config
        self._sessions = sessions
        self._registry = registry
        self._sender = sender

    async def handle(self, message: InboundMessage) -> Optional[str]:
        """Process one message and send the reply. Returns the reply text."""
        command = parse_command(message.text, bot=self._config.bot)
        logger.debug("command_received", command=type(command).__name__, username=message.username)

        if isinstance(command, Unrecognized):
            reply = " ".join(HELP_LINES)
        else:
            try:
                lines = await self._route(command, message)
            except StoreFailure as exc:
                logger.error(
                    "command_store_failure",
                    command=type(command).__name__,
                    username=message.username,
                    error=str(exc),
                )
                lines = ["Apologies, the command failed. Please try again shortly."]
            name = escape_text(message.name, self._config.send_format)
            reply = " ".join([f"Thanks, {name}.", *lines])

        await self._sender.send(message.chat_id, reply)
        return reply

    async def _route(self, command: Command, message: InboundMessage) -> list[str]:
        if not message.username:
            return ["Please set a Telegram username in your settings, then try again."]

        if isinstance(command, _ADMIN_COMMANDS) and not await self._registry.is_admin(message.username):
            logger.info("command_denied", command=type(command).__name__, username=message.username)
            admin = escape_text(self._registry.bootstrap_admin, self._config.send_format)
            return [f"You are not the admin user, please ask {admin}."]

        if isinstance(command, Login):
            return await self._login(message)
        if isinstance(command, Logout):
            return await self._logout(message)
        if isinstance(command, ListSessions):
            return await self._list_sessions(message)
        if isinstance(command, ListUsers):
            return await self._list_users(command)
        if isinstance(command, ListRoles):
            return await self._list_roles(command)
        if isinstance(command, Grant):
            return await self._grant(command)
        if isinstance(command, Revoke):
            return await self._revoke(command)
        if isinstance(command, Usage):
            return [f"Try {USAGE[command.command]}"]
        return HELP_LINES

    # ------------------------------------------------------------------
    # Session commands
    # ------------------------------------------------------------------

    async def _login(self, message: InboundMessage) -> list[str]:
        login = await self._sessions.issue_login_token(message.username, message.name, message.chat_id)
        link = "/".join([self._config.login_url_base, login.username, login.token])
        return [
            f"You can login via {link}.",
            f"This link expires in {self._config.login_expire} seconds.",
        ]

    async def _list_sessions(self, message: InboundMessage) -> list[str]:
        sessions = await self._sessions.list_recent_sessions(message.username)
        if not sessions:
            return ["No active sessions found."]
        if len(sessions) == 1:
            return [f"Your session was created {format_elapsed(sessions[0].elapsed())} ago."]
        return [
            f"You have {len(sessions)} active sessions.",
            f"The latest was created {format_elapsed(sessions[0].elapsed())} ago.",
            f"The oldest was created {format_elapsed(sessions[-1].elapsed())} ago.",
        ]

    async def _logout(self, message: InboundMessage) -> list[str]:
        sweep = await self._sessions.terminate_all_recent_sessions(message.username)
        if sweep.count == 0:
            return ["No active sessions."]
        if sweep.count == 1:
            return [f"The session that was created {format_elapsed(sweep.newest)} ago, has now been deleted."]
        return [
            f"{sweep.count} sessions have been deleted.",
            f"The latest was created {format_elapsed(sweep.newest)} ago.",
            f"The oldest was created {format_elapsed(sweep.oldest)} ago.",
        ]

    # ------------------------------------------------------------------
    # Admin commands
    # ------------------------------------------------------------------

    async def _list_users(self, command: ListUsers) -> list[str]:
        users = await self._registry.list_users(command.role)
        if not users:
            if command.role:
                return [f"No users have role <code>{command.role}</code>."]
            return ["No users have been granted roles."]
        lines = [f"{len(users)} users:"] if len(users) > 1 else []
        lines.extend(f"<code>{username}</code> {role}." for username, role in users.items())
        return lines

    async def _list_roles(self, command: ListRoles) -> list[str]:
        roles = await self._registry.list_roles(command.role)
        if not roles:
            if command.role:
                return [f"Role <code>{command.role}</code> has no members."]
            return ["No roles have been granted."]
        return [
            f"<code>{role}</code> has {count} member{'s' if count != 1 else ''}."
            for role, count in roles.items()
        ]

    async def _grant(self, command: Grant) -> list[str]:
        previous = await self._registry.grant(command.username, command.role)
        lines = [f"Granted role <code>{command.role}</code> to <code>{command.username}</code>."]
        if previous and previous != command.role:
            lines.append(f"This replaces role <code>{previous}</code>.")
        return lines

    async def _revoke(self, command: Revoke) -> list[str]:
        result = await self._registry.revoke(command.username)
        if result.previous_role is None:
            return [f"User <code>{command.username}</code> has no role to revoke."]
        lines = [f"Revoked role <code>{result.previous_role}</code> from <code>{command.username}</code>."]
        if result.remaining == 0:
            lines.append("The role now has no members.")
        else:
            lines.append(f"{result.remaining} member{'s' if result.remaining != 1 else ''} remain.")
        return lines
