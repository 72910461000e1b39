"""Tests for the chat command grammar."""

import pytest

from authbot.bot.commands import (
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


@pytest.mark.parametrize(
    "text, expected",
    [
        ("/login", Login()),
        ("  /login  ", Login()),
        ("/logout", Logout()),
        ("/session", ListSessions()),
        ("/sessions", ListSessions()),
        ("/users", ListUsers()),
        ("/users #admin", ListUsers(role="admin")),
        ("/roles", ListRoles()),
        ("/roles #editor", ListRoles(role="editor")),
        ("/grant @bob #admin", Grant(username="bob", role="admin")),
        ("/grant   @bob_2   #team_a", Grant(username="bob_2", role="team_a")),
        ("/revoke @bob", Revoke(username="bob")),
    ],
)
def test_known_commands(text, expected):
    assert parse_command(text) == expected


@pytest.mark.parametrize(
    "text, command",
    [
        ("/grant bob admin", "grant"),
        ("/grant @bob", "grant"),
        ("/grant @Bob #admin", "grant"),
        ("/revoke", "revoke"),
        ("/revoke bob", "revoke"),
        ("/users admin", "users"),
        ("/roles #Admin", "roles"),
    ],
)
def test_bad_arguments_give_usage(text, command):
    assert parse_command(text) == Usage(command)


@pytest.mark.parametrize("text", ["hello", "", "login", "/start", "/help", "/ login"])
def test_unrecognized(text):
    assert parse_command(text) == Unrecognized()


class TestAddressedCommands:
    def test_addressed_to_this_bot(self):
        assert parse_command("/login@ExAuthDemoBot", bot="ExAuthDemoBot") == Login()

    def test_bot_name_is_case_insensitive(self):
        assert parse_command("/login@exauthdemobot", bot="ExAuthDemoBot") == Login()

    def test_addressed_to_another_bot(self):
        assert parse_command("/login@OtherBot", bot="ExAuthDemoBot") == Unrecognized()

    def test_arguments_after_addressee(self):
        assert parse_command("/revoke@ExAuthDemoBot @bob", bot="ExAuthDemoBot") == Revoke(username="bob")
