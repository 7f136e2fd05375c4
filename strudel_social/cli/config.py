"""
Configuration management for the strudel CLI.

Sessions are stored per Supabase project, so switching SUPABASE_URL does
not reuse another project's tokens.

  Config structure:
  {
    "projects": {
      "https://abc.supabase.co": {
        "email": "user@example.com",
        "session": {"access_token": "...", "refresh_token": "...", ...}
      }
    }
  }

The file lives at $STRUDEL_CONFIG_DIR/config.json (default
~/.strudel/config.json) and is written with 0600 permissions.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from strudel_social import config as app_config

logger = logging.getLogger(__name__)


class Config:
    """Config manager for the strudel CLI. Also the session storage for SessionProvider."""

    def __init__(self, config_dir: Path | None = None, project_url: str | None = None):
        """
        Initialize config.

        Args:
            config_dir: Override for the config directory
            project_url: Override for the Supabase project the session belongs to
        """
        self.config_dir = Path(config_dir) if config_dir else app_config.settings.CONFIG_DIR
        self.config_file = self.config_dir / "config.json"
        self._project_url = project_url
        self._data: dict[str, Any] = {}
        self._load()

    def _load(self):
        """Load config from disk. A corrupt file is treated as empty."""
        if self.config_file.exists():
            try:
                with open(self.config_file) as f:
                    self._data = json.load(f)
            except (OSError, ValueError) as e:
                logger.warning("cli config: ignoring unreadable %s: %s", self.config_file, e)
                self._data = {}

        if not isinstance(self._data.get("projects"), dict):
            self._data["projects"] = {}

    def _save(self):
        """Save config to disk with secure permissions."""
        self.config_dir.mkdir(parents=True, exist_ok=True)

        with open(self.config_file, "w") as f:
            json.dump(self._data, f, indent=2, default=str)

        # Set file permissions to 0600
        self.config_file.chmod(0o600)

    @property
    def project_url(self) -> str:
        return (self._project_url or app_config.settings.SUPABASE_URL).rstrip("/")

    def _get_project(self) -> dict:
        return self._data["projects"].get(self.project_url, {})

    @property
    def email(self) -> str | None:
        return self._get_project().get("email")

    @property
    def is_authenticated(self) -> bool:
        return bool(self._get_project().get("session"))

    # SessionStorage

    def load_session(self) -> dict[str, Any] | None:
        return self._get_project().get("session")

    def save_session(self, session: dict[str, Any] | None) -> None:
        if session is None:
            self.clear_project()
            return
        self._data["projects"][self.project_url] = {
            "email": (session.get("user") or {}).get("email"),
            "session": session,
        }
        self._save()

    def clear_project(self, url: str | None = None):
        """Forget the session for one project (the current one by default)."""
        target_url = (url or self.project_url).rstrip("/")
        if target_url in self._data["projects"]:
            del self._data["projects"][target_url]
            self._save()

    def clear_all(self):
        """Clear all sessions and delete the config file."""
        self._data = {"projects": {}}
        if self.config_file.exists():
            self.config_file.unlink()
