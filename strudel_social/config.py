"""
strudel-social configuration: all environment variables in one place.

Read from environment at access time. Never hardcode secrets.
Missing Supabase credentials are not an error: the client runs in demo mode.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


class Settings:
    """Application settings from environment variables."""

    # Playback
    DEFAULT_REPL_URL: str = "https://strudel.cc/"

    # Pattern categories offered by the upload form
    CATEGORIES: tuple[str, ...] = ("Drums", "Bass", "Synth", "Melodic", "Ambient", "Patterns", "Vocal", "FX")
    DEFAULT_CATEGORY: str = "Drums"

    # Hosted backend
    @property
    def SUPABASE_URL(self) -> str:
        return os.environ.get("SUPABASE_URL", "").rstrip("/")

    @property
    def SUPABASE_ANON_KEY(self) -> str:
        return os.environ.get("SUPABASE_ANON_KEY", "")

    @property
    def SUPABASE_JWT_SECRET(self) -> str:
        return os.environ.get("SUPABASE_JWT_SECRET", "")

    # Direct Postgres access (optional, also used by alembic)
    @property
    def DATABASE_URL(self) -> str:
        return os.environ.get("DATABASE_URL", "")

    @property
    def STRUDEL_REPL_URL(self) -> str:
        return os.environ.get("STRUDEL_REPL_URL", self.DEFAULT_REPL_URL)

    @property
    def OAUTH_REDIRECT_URL(self) -> str:
        return os.environ.get("STRUDEL_OAUTH_REDIRECT", "http://localhost:3000/")

    @property
    def HTTP_TIMEOUT(self) -> float:
        return float(os.environ.get("HTTP_TIMEOUT", "10"))

    @property
    def LOG_LEVEL(self) -> str:
        return os.environ.get("LOG_LEVEL", "WARNING").upper()

    @property
    def CONFIG_DIR(self) -> Path:
        override = os.environ.get("STRUDEL_CONFIG_DIR")
        if override:
            return Path(override)
        return Path.home() / ".strudel"

    @property
    def is_configured(self) -> bool:
        """True when both hosted-backend credentials are present."""
        return bool(self.SUPABASE_URL and self.SUPABASE_ANON_KEY)

    @property
    def REST_URL(self) -> str:
        return f"{self.SUPABASE_URL}/rest/v1"

    @property
    def AUTH_URL(self) -> str:
        return f"{self.SUPABASE_URL}/auth/v1"


# Singleton instance
settings = Settings()


def warn_if_demo_mode(current: Settings | None = None) -> bool:
    """
    Log a warning when the hosted-backend credentials are missing.

    Returns:
        True if the client will run in demo mode
    """
    current = current or settings
    if current.is_configured:
        return False
    logger.warning("Supabase credentials not found. Using demo mode.")
    return True
