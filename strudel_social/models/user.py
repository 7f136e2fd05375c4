"""Session user models: the signed-out and signed-in states."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class Anonymous(BaseModel):
    """No session. Every mutating action is rejected for this user."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["anonymous"] = "anonymous"

    @property
    def is_authenticated(self) -> bool:
        return False

    @property
    def display_name(self) -> str:
        return "Anonymous"


class Authenticated(BaseModel):
    """A signed-in user as reported by the auth provider."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["authenticated"] = "authenticated"
    id: str
    email: str = ""
    username: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    access_token: str | None = Field(default=None, repr=False, exclude=True)

    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def display_name(self) -> str:
        """Username, else the email's local part, else "Anonymous"."""
        if self.username:
            return self.username
        if self.email:
            return self.email.split("@")[0]
        return "Anonymous"

    @classmethod
    def from_provider(cls, data: dict[str, Any], access_token: str | None = None) -> Authenticated:
        """Build from an auth-provider user object (`user_metadata` carries the username)."""
        metadata = data.get("user_metadata") or {}
        return cls(
            id=str(data["id"]),
            email=data.get("email") or "",
            username=metadata.get("username"),
            metadata=metadata,
            access_token=access_token,
        )


SessionUser = Anonymous | Authenticated

ANONYMOUS = Anonymous()


class SignUpRequest(BaseModel):
    """What the client sends to create an account."""

    model_config = {"extra": "forbid"}

    email: EmailStr
    password: str = Field(min_length=6)
    username: str | None = Field(default=None, max_length=50)

    @property
    def resolved_username(self) -> str:
        return self.username or str(self.email).split("@")[0]


class AuthSession(BaseModel):
    """Tokens issued by the auth provider plus the user they belong to."""

    access_token: str = Field(repr=False)
    refresh_token: str | None = Field(default=None, repr=False)
    token_type: str = "bearer"
    expires_at: int | None = None
    user: Authenticated
