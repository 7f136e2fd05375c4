"""Main entry point for the strudel CLI."""

from __future__ import annotations

import asyncio
import logging
import sys

from strudel_social import __version__
from strudel_social.cli.auth import login, logout, signup
from strudel_social.cli.config import Config
from strudel_social.cli.repl import Repl, confirm, notify
from strudel_social.config import settings, warn_if_demo_mode
from strudel_social.services.data_source import build_data_source
from strudel_social.services.mutations import MutationCoordinator
from strudel_social.session import AuthError, SessionContext, SessionProvider


def print_help():
    """Print help message."""
    print(f"""
strudel v{__version__}

Usage:
  strudel [options] [command]

Commands:
  login             Sign in with email and password
  signup            Create an account
  logout            Revoke the session and clear config

Options:
  --google          Sign in with Google (login only)
  -h, --help        Show this help
  -v, --version     Show version

Environment:
  SUPABASE_URL, SUPABASE_ANON_KEY   Project to use (demo mode without them)
  STRUDEL_REPL_URL                  Where /play opens patterns
  STRUDEL_CONFIG_DIR                Where the session is kept (~/.strudel)
  LOG_LEVEL                         Logging level (default WARNING)

REPL Commands:
  /patterns [category]     List patterns
  /search <text>           Search names and tags
  /show <n>                Show a pattern with comments
  /like <n>                Like or unlike
  /play <n>                Open in the Strudel REPL
  /upload                  Upload a pattern
  /delete <n>              Delete your pattern
  /comment <text>          Comment on the pattern last shown
  /uncomment <m>           Delete your comment on the pattern last shown
  /feed                    Community feed
  /post <text>             Post to the feed
  /reply <n> <text>        Reply to a post
  /delete-post <n>         Delete your post
  /delete-comment <n> <m>  Delete your comment on a post
  /profile                 Your uploads and likes
  /help                    Show REPL help
  /quit                    Exit REPL
""")


def parse_args(args: list[str]) -> dict:
    """
    Parse command line arguments.

    Returns dict with:
        command: str | None (login, signup, logout, None for REPL)
        google: bool
        show_help: bool
        show_version: bool
    """
    result = {
        "command": None,
        "google": False,
        "show_help": False,
        "show_version": False,
    }

    for arg in args:
        if arg in ("login", "signup", "logout"):
            result["command"] = arg
        elif arg == "--google":
            result["google"] = True
        elif arg in ("--help", "-h"):
            result["show_help"] = True
        elif arg in ("--version", "-v"):
            result["show_version"] = True
        elif arg.startswith("-"):
            print(f"Unknown option: {arg}")
            print("Run 'strudel --help' for usage.")
            sys.exit(1)
        else:
            print(f"Unknown command: {arg}")
            print("Run 'strudel --help' for usage.")
            sys.exit(1)

    return result


async def run_repl(provider: SessionProvider | None) -> None:
    """Restore the saved session (if any) and start the REPL."""
    context = SessionContext()
    unsubscribe = None
    if provider is not None:
        provider.restore()
        unsubscribe = context.bind(provider)
        try:
            await provider.get_current_user()
        except AuthError as e:
            print(f"Saved session is no longer valid ({e.message}). Run 'strudel login' again.")
            provider.clear()

    coordinator = MutationCoordinator(build_data_source(), context, confirm=confirm, notify=notify)
    try:
        await Repl(coordinator).start()
    finally:
        if unsubscribe is not None:
            unsubscribe()


async def run(args: dict) -> int:
    config = Config()
    provider = SessionProvider(storage=config) if settings.is_configured else None

    if args["command"] is None:
        await run_repl(provider)
        return 0

    if provider is None:
        warn_if_demo_mode(settings)
        print("Supabase is not configured. Set SUPABASE_URL and SUPABASE_ANON_KEY.")
        return 1

    if args["command"] == "login":
        success = await login(provider, config, google=args["google"])
    elif args["command"] == "signup":
        success = await signup(provider, config)
    else:
        success = await logout(provider, config)
    return 0 if success else 1


def main():
    """Main entry point."""
    args = parse_args(sys.argv[1:])

    if args["show_help"]:
        print_help()
        return

    if args["show_version"]:
        print(f"strudel {__version__}")
        return

    logging.basicConfig(level=settings.LOG_LEVEL, format="%(levelname)s [%(name)s] %(message)s")
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
