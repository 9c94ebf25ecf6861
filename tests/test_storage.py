"""
Tests for ticketlog.storage: the local SQLite store, the HTTP store (routed
into the Flask test client) and their shared failure contract.
"""
import io
import sqlite3
from pathlib import Path
from urllib import error as urllib_error

import pytest

from conftest import BASE_MS, make_entry
from ticketlog import db, storage
from ticketlog.config import load_settings
from ticketlog.storage import LocalEntryStore, RemoteEntryStore, store_from_settings


class _Response(io.BytesIO):
    def __init__(self, body: bytes, status: int) -> None:
        super().__init__(body)
        self.status = status


@pytest.fixture
def remote_store(client, monkeypatch) -> RemoteEntryStore:
    """RemoteEntryStore whose urlopen calls are served by the Flask test client."""

    def fake_urlopen(req, timeout=None):
        if isinstance(req, str):
            url, method, data = req, "GET", None
        else:
            url, method, data = req.full_url, req.get_method(), req.data
        path = url.replace("http://testserver", "", 1)
        resp = client.open(path, method=method, data=data, content_type="application/json")
        if resp.status_code >= 400:
            raise urllib_error.HTTPError(url, resp.status_code, resp.status, {}, None)
        return _Response(resp.data, resp.status_code)

    monkeypatch.setattr(storage.urllib_request, "urlopen", fake_urlopen)
    return RemoteEntryStore("http://testserver/")


class TestLocalEntryStore:
    def test_create_list_delete(self, local_store: LocalEntryStore):
        older = make_entry("PROJ-1", 10, BASE_MS - 1000)
        newer = make_entry("OPS-2", 20, BASE_MS)
        assert local_store.create(older) == older
        assert local_store.create(newer) == newer
        assert local_store.list() == [newer, older]
        assert local_store.delete(older.id) is True
        assert local_store.list() == [newer]

    def test_delete_missing_id_succeeds(self, local_store: LocalEntryStore):
        entry = make_entry("PROJ-1", 10)
        local_store.create(entry)
        assert local_store.delete("nope") is True
        assert local_store.list() == [entry]

    def test_list_on_failure_is_empty(self, local_store: LocalEntryStore, monkeypatch):
        local_store.create(make_entry("PROJ-1", 10))

        def broken(conn):
            raise sqlite3.DatabaseError("file is not a database")

        monkeypatch.setattr(db, "fetch_entries", broken)
        assert local_store.list() == []

    def test_create_failure_returns_none(self, local_store: LocalEntryStore):
        entry = make_entry("PROJ-1", 10)
        local_store.create(entry)
        # Same primary key again
        assert local_store.create(entry) is None

    def test_schema_created_once(self, db_path: Path):
        for _ in range(2):
            conn = db.connect(db_path)
            columns = [row[1] for row in conn.execute("PRAGMA table_info(time_entries)")]
            conn.close()
        assert columns == ["id", "ticket_id", "description", "duration_minutes", "timestamp"]

    def test_unopenable_database(self, tmp_path: Path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory", encoding="utf-8")
        store = LocalEntryStore(blocker / "ticketlog.db")
        assert store.list() == []
        assert store.create(make_entry("PROJ-1", 10)) is None
        assert store.delete("x") is False


class TestRemoteEntryStore:
    def test_round_trip_through_api(self, remote_store: RemoteEntryStore):
        entry = make_entry("PROJ-1", 45, description='Quote "this"')
        assert remote_store.create(entry) == entry
        assert remote_store.list() == [entry]
        assert remote_store.delete(entry.id) is True
        assert remote_store.list() == []

    def test_server_error_degrades(self, remote_store: RemoteEntryStore, monkeypatch):
        def broken(*args):
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(db, "fetch_entries", broken)
        monkeypatch.setattr(db, "insert_entry", broken)
        monkeypatch.setattr(db, "delete_entry", broken)
        assert remote_store.list() == []
        assert remote_store.create(make_entry("PROJ-1", 5)) is None
        assert remote_store.delete("abc") is False

    def test_malformed_entries_degrade_to_empty(self, monkeypatch):
        body = b'[{"id": "a", "ticketId": 42, "durationMinutes": 5, "timestamp": 1}]'
        monkeypatch.setattr(storage.urllib_request, "urlopen", lambda req, timeout=None: _Response(body, 200))
        assert RemoteEntryStore("http://testserver").list() == []

    def test_unreachable_server_degrades(self):
        store = RemoteEntryStore("http://127.0.0.1:9", timeout=0.5)
        assert store.list() == []
        assert store.create(make_entry("PROJ-1", 5)) is None
        assert store.delete("abc") is False


class TestStoreSelection:
    def test_local_by_default(self, tmp_path: Path):
        settings = load_settings({"TICKETLOG_HOME": str(tmp_path)})
        assert isinstance(store_from_settings(settings), LocalEntryStore)

    def test_remote_when_configured(self, tmp_path: Path):
        settings = load_settings(
            {"TICKETLOG_HOME": str(tmp_path), "TICKETLOG_STORAGE": "remote", "TICKETLOG_API_URL": "http://example:1/"}
        )
        store = store_from_settings(settings)
        assert isinstance(store, RemoteEntryStore)
        assert store.collection_url == "http://example:1/api/entries"

    def test_unknown_backend_rejected(self):
        with pytest.raises(ValueError):
            load_settings({"TICKETLOG_STORAGE": "postgres"})
