"""
Session provider over the hosted auth API (Supabase GoTrue, /auth/v1).

Sign-up, password and OAuth sign-in, sign-out, current-user lookup and an
auth-state subscription. Provider errors are raised as AuthError with the
provider's own message; nothing is retried or recovered locally.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any, Protocol
from urllib.parse import parse_qs, urlencode, urlsplit

import httpx
import jwt

from strudel_social import config
from strudel_social.models.user import ANONYMOUS, AuthSession, Authenticated, SessionUser, SignUpRequest

logger = logging.getLogger(__name__)

# Refresh this many seconds before the access token actually expires.
EXPIRY_MARGIN_SECONDS = 30

AuthCallback = Callable[[SessionUser], None]


class AuthError(Exception):
    """The auth provider rejected a request. Message is the provider's, unmodified."""

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None):
        self.message = message
        self.status_code = status_code
        self.code = code
        super().__init__(message)


class SessionStorage(Protocol):
    """Where a session survives between runs (the CLI keeps it in its config file)."""

    def load_session(self) -> dict[str, Any] | None: ...

    def save_session(self, session: dict[str, Any] | None) -> None: ...


def decode_access_token(token: str, settings: config.Settings | None = None) -> dict[str, Any]:
    """
    Decode an access token's claims.

    The signature is verified when SUPABASE_JWT_SECRET is configured.
    Expiry is not enforced here; callers compare `exp` themselves so an
    expired token can still be refreshed.

    Raises:
        AuthError: If the token is malformed or the signature does not match
    """
    settings = settings or config.settings
    try:
        if settings.SUPABASE_JWT_SECRET:
            return jwt.decode(
                token,
                settings.SUPABASE_JWT_SECRET,
                algorithms=["HS256"],
                audience="authenticated",
                options={"verify_exp": False},
            )
        return jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError as e:
        raise AuthError("Invalid session token. Please sign in again.", status_code=401) from e


def _error_from_response(response: httpx.Response) -> AuthError:
    try:
        body = response.json()
    except ValueError:
        return AuthError(response.text or response.reason_phrase, response.status_code)
    if not isinstance(body, dict):
        return AuthError(str(body), response.status_code)
    message = (
        body.get("error_description")
        or body.get("msg")
        or body.get("message")
        or body.get("error")
        or response.reason_phrase
    )
    code = body.get("error_code") or body.get("error")
    return AuthError(message, response.status_code, code)


class SessionProvider:
    """Client for the hosted auth API.

    Holds at most one session. Listeners registered with
    on_auth_state_change() are told about every sign-in, sign-out and token
    refresh.
    """

    def __init__(
        self,
        settings: config.Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        storage: SessionStorage | None = None,
    ) -> None:
        self._settings = settings or config.settings
        self._transport = transport
        self._storage = storage
        self._session: AuthSession | None = None
        self._listeners: list[AuthCallback] = []
        self._refresh_lock = asyncio.Lock()

    # -- state ---------------------------------------------------------------

    @property
    def session(self) -> AuthSession | None:
        return self._session

    @property
    def current_user(self) -> SessionUser:
        """The user of the held session, with its access token attached."""
        if self._session is None:
            return ANONYMOUS
        return self._session.user.model_copy(update={"access_token": self._session.access_token})

    def _set_session(self, session: AuthSession | None) -> None:
        self._session = session
        if self._storage is not None:
            self._storage.save_session(session.model_dump() if session else None)
        self._emit()

    def _emit(self) -> None:
        user = self.current_user
        for callback in list(self._listeners):
            callback(user)

    def on_auth_state_change(self, callback: AuthCallback) -> Callable[[], None]:
        """
        Subscribe to auth transitions.

        The callback is invoked at once with the current user (or ANONYMOUS)
        and again after every transition.

        Returns:
            A zero-argument function that removes the subscription
        """
        self._listeners.append(callback)
        callback(self.current_user)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def restore(self) -> SessionUser:
        """Load a persisted session without contacting the provider."""
        if self._storage is None:
            return ANONYMOUS
        data = self._storage.load_session()
        if data:
            self._session = AuthSession.model_validate(data)
            self._emit()
        return self.current_user

    # -- transport -----------------------------------------------------------

    def _headers(self, token: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self._settings.SUPABASE_ANON_KEY,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict | None = None,
        params: dict | None = None,
        token: str | None = None,
    ) -> Any:
        try:
            async with httpx.AsyncClient(
                base_url=self._settings.AUTH_URL,
                timeout=self._settings.HTTP_TIMEOUT,
                transport=self._transport,
            ) as client:
                response = await client.request(method, path, json=json, params=params, headers=self._headers(token))
        except httpx.HTTPError as e:
            logger.warning("session: %s %s transport error: %s", method, path, e)
            raise AuthError(str(e) or "Could not reach the auth server.") from e
        if response.is_error:
            raise _error_from_response(response)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def _session_from_body(self, body: dict[str, Any]) -> AuthSession:
        expires_at = body.get("expires_at")
        if expires_at is None and body.get("expires_in") is not None:
            expires_at = int(time.time()) + int(body["expires_in"])
        return AuthSession(
            access_token=body["access_token"],
            refresh_token=body.get("refresh_token"),
            token_type=body.get("token_type", "bearer"),
            expires_at=expires_at,
            user=Authenticated.from_provider(body["user"]),
        )

    # -- operations ----------------------------------------------------------

    async def sign_up(self, email: str, password: str, username: str | None = None) -> AuthSession | None:
        """
        Create an account. The username defaults to the email's local part.

        Returns:
            The new session, or None when the provider requires email
            confirmation before issuing one

        Raises:
            AuthError: If the provider rejects the sign-up
            pydantic.ValidationError: If the email or password is malformed
        """
        req = SignUpRequest(email=email, password=password, username=username)
        body = await self._request(
            "POST",
            "/signup",
            json={
                "email": str(req.email),
                "password": req.password,
                "data": {"username": req.resolved_username},
            },
        )
        if not body or "access_token" not in body:
            logger.info("session: sign-up for %s awaiting email confirmation", req.email)
            return None
        session = self._session_from_body(body)
        self._set_session(session)
        return session

    async def sign_in(self, email: str, password: str) -> AuthSession:
        """Password sign-in."""
        body = await self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        session = self._session_from_body(body)
        self._set_session(session)
        return session

    def sign_in_with_oauth(self, provider: str = "google", redirect_to: str | None = None) -> str:
        """
        Build the provider's authorize URL. The caller opens it in a browser.

        After the redirect, pass the callback URL to complete_oauth().
        """
        query = urlencode({"provider": provider, "redirect_to": redirect_to or self._settings.OAUTH_REDIRECT_URL})
        return f"{self._settings.AUTH_URL}/authorize?{query}"

    async def complete_oauth(self, callback_url: str) -> AuthSession:
        """
        Finish an OAuth sign-in from the redirect URL's fragment tokens.

        Raises:
            AuthError: If the fragment carries an error or no access token
        """
        fragment = parse_qs(urlsplit(callback_url).fragment)
        if "error" in fragment:
            description = fragment.get("error_description", fragment["error"])[0]
            raise AuthError(description, code=fragment["error"][0])
        if "access_token" not in fragment:
            raise AuthError("No access token in callback URL.")

        access_token = fragment["access_token"][0]
        user_body = await self._request("GET", "/user", token=access_token)
        body: dict[str, Any] = {
            "access_token": access_token,
            "refresh_token": fragment.get("refresh_token", [None])[0],
            "token_type": fragment.get("token_type", ["bearer"])[0],
            "user": user_body,
        }
        if "expires_at" in fragment:
            body["expires_at"] = int(fragment["expires_at"][0])
        elif "expires_in" in fragment:
            body["expires_in"] = int(fragment["expires_in"][0])
        session = self._session_from_body(body)
        self._set_session(session)
        return session

    async def sign_out(self) -> None:
        """Revoke the session at the provider, then forget it locally."""
        if self._session is None:
            return
        await self._request("POST", "/logout", token=self._session.access_token)
        self._set_session(None)

    def clear(self) -> None:
        """Forget the held session locally without contacting the provider."""
        self._set_session(None)

    def _is_expired(self, session: AuthSession) -> bool:
        expires_at = session.expires_at
        if expires_at is None:
            expires_at = decode_access_token(session.access_token, self._settings).get("exp")
        if expires_at is None:
            return False
        return expires_at - EXPIRY_MARGIN_SECONDS <= time.time()

    async def refresh(self) -> AuthSession:
        """Exchange the refresh token for a new session."""
        if self._session is None or not self._session.refresh_token:
            raise AuthError("No session to refresh.", status_code=401)
        body = await self._request(
            "POST",
            "/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": self._session.refresh_token},
        )
        session = self._session_from_body(body)
        self._set_session(session)
        return session

    async def ensure_fresh(self, force: bool = False) -> SessionUser:
        """
        Refresh the held session if its access token has expired (or always, with force).

        Concurrent callers share one refresh: whoever waited on the lock sees
        the new token and does not refresh again.

        Raises:
            AuthError: If the provider rejects the refresh token
        """
        if self._session is None:
            return ANONYMOUS
        stale_token = self._session.access_token
        async with self._refresh_lock:
            session = self._session
            if session is not None and session.access_token == stale_token:
                if force or self._is_expired(session):
                    logger.info("session: refreshing access token for %s", session.user.id)
                    await self.refresh()
        return self.current_user

    async def get_current_user(self) -> SessionUser:
        """
        Ask the provider who the held session belongs to.

        Refreshes an expired access token first.

        Returns:
            The Authenticated user, or ANONYMOUS when no session is held
        """
        if self._session is None:
            return ANONYMOUS
        await self.ensure_fresh()
        body = await self._request("GET", "/user", token=self._session.access_token)
        user = Authenticated.from_provider(body)
        if user != self._session.user:
            self._session = self._session.model_copy(update={"user": user})
        return self.current_user


class SessionContext:
    """The current user, passed explicitly to the data source and coordinator."""

    def __init__(self, user: SessionUser = ANONYMOUS):
        self.user: SessionUser = user
        self._provider: SessionProvider | None = None

    def set_user(self, user: SessionUser) -> None:
        self.user = user

    def bind(self, provider: SessionProvider) -> Callable[[], None]:
        """Follow the provider's auth state. Returns the unsubscribe handle."""
        self._provider = provider
        unsubscribe = provider.on_auth_state_change(self.set_user)

        def unbind() -> None:
            unsubscribe()
            self._provider = None

        return unbind

    async def fresh_user(self, force: bool = False) -> SessionUser:
        """
        The current user, with an expired access token refreshed first.

        The new token arrives through the subscription. When the provider
        rejects the refresh token the session is dropped locally and the
        user becomes ANONYMOUS; a transport failure keeps the old session.
        """
        if self._provider is None or not isinstance(self.user, Authenticated):
            return self.user
        try:
            await self._provider.ensure_fresh(force=force)
        except AuthError as e:
            logger.warning("session: refresh failed: %s", e.message)
            if e.status_code is not None:
                self._provider.clear()
        return self.user
