"""Entry stores: local SQLite file or the remote REST API.

Both implementations follow the same contract. Reads degrade to an empty
list and writes report failure through their return value; errors are
logged rather than raised so callers never crash on I/O.
"""
from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import List, Optional
from urllib import parse as urllib_parse, request as urllib_request

from . import db
from .config import Settings
from .models import TimeEntry

DEFAULT_TIMEOUT = 5

logger = logging.getLogger(__name__)


class EntryStore:
    def list(self) -> List[TimeEntry]:
        raise NotImplementedError

    def create(self, entry: TimeEntry) -> Optional[TimeEntry]:
        raise NotImplementedError

    def delete(self, entry_id: str) -> bool:
        raise NotImplementedError


class LocalEntryStore(EntryStore):
    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path

    def list(self) -> List[TimeEntry]:
        try:
            conn = db.connect(self._db_path)
        except (sqlite3.Error, OSError):
            logger.exception("Failed to open %s", self._db_path)
            return []
        try:
            return db.fetch_entries(conn)
        except (sqlite3.Error, OSError):
            logger.exception("Failed to load entries")
            return []
        finally:
            conn.close()

    def create(self, entry: TimeEntry) -> Optional[TimeEntry]:
        try:
            conn = db.connect(self._db_path)
        except (sqlite3.Error, OSError):
            logger.exception("Failed to open %s", self._db_path)
            return None
        try:
            db.insert_entry(conn, entry)
        except (sqlite3.Error, OSError):
            logger.exception("Failed to add entry %s", entry.id)
            return None
        finally:
            conn.close()
        return entry

    def delete(self, entry_id: str) -> bool:
        try:
            conn = db.connect(self._db_path)
        except (sqlite3.Error, OSError):
            logger.exception("Failed to open %s", self._db_path)
            return False
        try:
            db.delete_entry(conn, entry_id)
        except (sqlite3.Error, OSError):
            logger.exception("Failed to delete entry %s", entry_id)
            return False
        finally:
            conn.close()
        return True


class RemoteEntryStore(EntryStore):
    """Client for the ``/api/entries`` collection served by ``ticketlog.server``."""

    def __init__(self, base_url: str, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    @property
    def collection_url(self) -> str:
        return f"{self._base_url}/api/entries"

    def list(self) -> List[TimeEntry]:
        try:
            with urllib_request.urlopen(self.collection_url, timeout=self._timeout) as resp:
                payload = json.loads(resp.read().decode("utf-8"))
            return [TimeEntry.from_dict(item) for item in payload]
        except (OSError, ValueError, TypeError):
            # URLError is an OSError; ValidationError and JSONDecodeError are ValueErrors
            logger.exception("Failed to load entries from %s", self.collection_url)
            return []

    def create(self, entry: TimeEntry) -> Optional[TimeEntry]:
        request_obj = urllib_request.Request(
            self.collection_url,
            data=json.dumps(entry.to_dict()).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with urllib_request.urlopen(request_obj, timeout=self._timeout) as resp:
                return TimeEntry.from_dict(json.loads(resp.read().decode("utf-8")))
        except (OSError, ValueError):
            logger.exception("Failed to add entry %s", entry.id)
            return None

    def delete(self, entry_id: str) -> bool:
        url = f"{self.collection_url}/{urllib_parse.quote(entry_id, safe='')}"
        request_obj = urllib_request.Request(url, method="DELETE")
        try:
            with urllib_request.urlopen(request_obj, timeout=self._timeout) as resp:
                return 200 <= resp.status < 300
        except OSError:
            logger.exception("Failed to delete entry %s", entry_id)
            return False


def store_from_settings(settings: Settings) -> EntryStore:
    if settings.storage == "remote":
        return RemoteEntryStore(settings.api_url)
    return LocalEntryStore(settings.db_path)

