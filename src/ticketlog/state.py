"""Shared state helpers for the Ticketlog CLI and web server."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from .models import ActiveTimer

ACTIVE_TIMER_FILENAME = "active_timer.json"
SERVER_INFO_FILENAME = "server_info.json"
SERVER_LOG_FILENAME = "server.log"

logger = logging.getLogger(__name__)


def runtime_dir(home: Path) -> Path:
    home.mkdir(parents=True, exist_ok=True)
    return home


def _active_timer_path(home: Path) -> Path:
    return runtime_dir(home) / ACTIVE_TIMER_FILENAME


def _server_info_path(home: Path) -> Path:
    return runtime_dir(home) / SERVER_INFO_FILENAME


def server_log_path(home: Path) -> Path:
    return runtime_dir(home) / SERVER_LOG_FILENAME


def load_active_timer(home: Path) -> Optional[ActiveTimer]:
    path = _active_timer_path(home)
    if not path.exists():
        return None
    try:
        return ActiveTimer.from_dict(json.loads(path.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, KeyError, TypeError, ValueError):
        logger.warning("Ignoring unreadable active timer record at %s", path)
        return None


def save_active_timer(home: Path, timer: ActiveTimer) -> None:
    path = _active_timer_path(home)
    path.write_text(json.dumps(timer.to_dict(), indent=2), encoding="utf-8")


def clear_active_timer(home: Path) -> None:
    path = _active_timer_path(home)
    if path.exists():
        path.unlink()


def read_server_info(home: Path) -> Optional[Dict[str, Any]]:
    path = _server_info_path(home)
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        return None


def write_server_info(home: Path, info: Dict[str, Any]) -> None:
    path = _server_info_path(home)
    path.write_text(json.dumps(info, indent=2), encoding="utf-8")


def clear_server_info(home: Path) -> None:
    path = _server_info_path(home)
    if path.exists():
        path.unlink()
