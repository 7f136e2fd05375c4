"""
Tests for CLI argument parsing.
"""

from __future__ import annotations

import pytest

from strudel_social.cli.main import parse_args


class TestParseArgs:
    def test_no_args_starts_repl(self):
        args = parse_args([])
        assert args["command"] is None
        assert not args["google"]

    def test_login_with_google(self):
        args = parse_args(["login", "--google"])
        assert args["command"] == "login"
        assert args["google"] is True

    def test_signup_and_logout(self):
        assert parse_args(["signup"])["command"] == "signup"
        assert parse_args(["logout"])["command"] == "logout"

    def test_help_and_version(self):
        assert parse_args(["-h"])["show_help"]
        assert parse_args(["--version"])["show_version"]

    def test_unknown_option_exits(self):
        with pytest.raises(SystemExit):
            parse_args(["--nope"])

    def test_unknown_command_exits(self):
        with pytest.raises(SystemExit):
            parse_args(["dance"])
