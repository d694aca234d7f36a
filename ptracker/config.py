"""Runtime settings, read from the environment."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel

DEFAULT_DB_PATH = Path.home() / ".local" / "share" / "ptracker" / "ptracker.db"
DEFAULT_SITE_URL = "http://localhost:3000"


class Settings(BaseModel):
    """Where data lives and which backend to talk to."""

    db_path: Path = DEFAULT_DB_PATH
    session_path: Path | None = None
    supabase_url: str | None = None
    supabase_key: str | None = None
    site_url: str = DEFAULT_SITE_URL
    log_level: str = "WARNING"

    @property
    def use_supabase(self) -> bool:
        """True when both the project URL and the anon key are configured."""
        return bool(self.supabase_url and self.supabase_key)

    @property
    def resolved_session_path(self) -> Path:
        if self.session_path is not None:
            return self.session_path
        return self.db_path.parent / "session.json"

    @property
    def pending_logs_path(self) -> Path:
        """Activity logs whose write failed, kept until they can be stored."""
        return self.resolved_session_path.parent / "pending_logs.json"


def load_settings(env: dict[str, str] | None = None, **overrides: object) -> Settings:
    """Build settings from environment variables.

    Args:
        env: Mapping to read instead of ``os.environ`` (for testing).
        **overrides: Explicit values (e.g. from CLI options). ``None`` values
            are ignored so unset options fall back to the environment.

    Returns:
        Validated Settings.
    """
    if env is None:
        env = dict(os.environ)

    values: dict[str, object] = {}
    if env.get("PTRACKER_DB"):
        values["db_path"] = Path(env["PTRACKER_DB"]).expanduser()
    if env.get("PTRACKER_SESSION"):
        values["session_path"] = Path(env["PTRACKER_SESSION"]).expanduser()
    if env.get("SUPABASE_URL"):
        values["supabase_url"] = env["SUPABASE_URL"]
    if env.get("SUPABASE_ANON_KEY"):
        values["supabase_key"] = env["SUPABASE_ANON_KEY"]
    if env.get("PTRACKER_SITE_URL"):
        values["site_url"] = env["PTRACKER_SITE_URL"]
    if env.get("PTRACKER_LOG_LEVEL"):
        values["log_level"] = env["PTRACKER_LOG_LEVEL"].upper()

    values.update({key: value for key, value in overrides.items() if value is not None})
    return Settings.model_validate(values)
