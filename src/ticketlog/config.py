"""Runtime configuration for the Ticketlog CLI and server."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEFAULT_HOME = Path.home() / ".ticketlog"
DB_FILENAME = "ticketlog.db"
DEFAULT_PORT = 8124
DEFAULT_GEMINI_MODEL = "gemini-2.0-flash"
STORAGE_BACKENDS = ("local", "remote")


@dataclass(frozen=True)
class Settings:
    home: Path
    storage: str
    api_url: str
    port: int
    api_key: Optional[str]
    gemini_model: str

    @property
    def db_path(self) -> Path:
        return self.home / DB_FILENAME


def load_settings(env: Optional[dict] = None) -> Settings:
    """Build settings from environment variables (``os.environ`` by default)."""
    env = os.environ if env is None else env
    home = Path(env.get("TICKETLOG_HOME") or DEFAULT_HOME).expanduser()
    storage = (env.get("TICKETLOG_STORAGE") or "local").strip().lower()
    if storage not in STORAGE_BACKENDS:
        raise ValueError(f"Unknown storage backend '{storage}'. Use one of: {', '.join(STORAGE_BACKENDS)}")
    try:
        port = int(env.get("TICKETLOG_PORT") or DEFAULT_PORT)
    except ValueError as exc:
        raise ValueError("TICKETLOG_PORT must be an integer") from exc
    api_url = (env.get("TICKETLOG_API_URL") or f"http://127.0.0.1:{port}").rstrip("/")
    # The original web client read API_KEY; GEMINI_API_KEY wins when both are set
    api_key = env.get("GEMINI_API_KEY") or env.get("API_KEY") or None
    return Settings(
        home=home,
        storage=storage,
        api_url=api_url,
        port=port,
        api_key=api_key,
        gemini_model=env.get("TICKETLOG_GEMINI_MODEL") or DEFAULT_GEMINI_MODEL,
    )
