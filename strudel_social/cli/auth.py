"""Authentication flows for the strudel CLI."""

from __future__ import annotations

import getpass
import webbrowser

from strudel_social.cli.config import Config
from strudel_social.session import AuthError, SessionProvider


async def login(provider: SessionProvider, config: Config, google: bool = False) -> bool:
    """
    Sign in with email and password, or through Google in the browser.

    Returns True if successful, False otherwise.
    """
    try:
        if google:
            url = provider.sign_in_with_oauth("google")
            print(f"\nOpening browser: {url}")
            webbrowser.open(url)
            print("After signing in, paste the URL your browser was redirected to.")
            callback_url = input("Callback URL: ").strip()
            session = await provider.complete_oauth(callback_url)
        else:
            email = input("Email: ").strip()
            password = getpass.getpass("Password: ")
            session = await provider.sign_in(email, password)
    except AuthError as e:
        print(f"\nLogin failed: {e.message}")
        return False
    except (EOFError, KeyboardInterrupt):
        print()
        return False

    print(f"Signed in as {session.user.display_name}")
    print(f"Session saved to {config.config_file}")
    return True


async def signup(provider: SessionProvider, config: Config) -> bool:
    """Create an account. Returns True if signed up (even when confirmation is pending)."""
    try:
        email = input("Email: ").strip()
        username = input("Username (optional): ").strip() or None
        password = getpass.getpass("Password: ")
        session = await provider.sign_up(email, password, username)
    except AuthError as e:
        print(f"\nSign up failed: {e.message}")
        return False
    except ValueError as e:
        print(f"\nSign up failed: {e}")
        return False
    except (EOFError, KeyboardInterrupt):
        print()
        return False

    if session is None:
        print("Check your email to confirm your account, then run 'strudel login'.")
    else:
        print(f"Signed up as {session.user.display_name}")
        print(f"Session saved to {config.config_file}")
    return True


async def logout(provider: SessionProvider, config: Config) -> bool:
    """
    Revoke the session and clear it from config.

    Returns True if successful, False otherwise.
    """
    provider.restore()
    if provider.session is None:
        print(f"Not logged in to {config.project_url}")
        return False

    email = config.email or "unknown"
    try:
        await provider.sign_out()
    except AuthError as e:
        print(f"Logout at provider failed: {e.message}")
        provider.clear()
    print(f"Logged out of {config.project_url} ({email})")
    return True
