"""Flask application serving the Ticketlog entries API."""
from __future__ import annotations

import argparse
import logging
import os
import signal
import sqlite3
import threading
import time
from pathlib import Path
from typing import List, Optional

from flask import Flask, jsonify, request

from . import db
from .config import load_settings
from .models import TimeEntry, ValidationError

app = Flask(__name__)
app.config.setdefault("DB_PATH", None)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _db_path() -> Path:
    configured = app.config.get("DB_PATH")
    if configured:
        return Path(configured)
    return load_settings().db_path


def _internal_error():
    return jsonify({"error": "Internal server error"}), 500


# ---------------------------------------------------------------------------
# API Endpoints
# ---------------------------------------------------------------------------

@app.get("/api/entries")
def api_list_entries():
    try:
        conn = db.connect(_db_path())
        try:
            entries = db.fetch_entries(conn)
        finally:
            conn.close()
    except (sqlite3.Error, OSError):
        logger.exception("Failed to list entries")
        return _internal_error()
    return jsonify([entry.to_dict() for entry in entries])


@app.post("/api/entries")
def api_create_entry():
    payload = request.get_json(silent=True)
    try:
        entry = TimeEntry.from_dict(payload)
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    try:
        conn = db.connect(_db_path())
        try:
            db.insert_entry(conn, entry)
        finally:
            conn.close()
    except (sqlite3.Error, OSError):
        logger.exception("Failed to create entry %s", entry.id)
        return _internal_error()
    return jsonify(entry.to_dict()), 201


@app.delete("/api/entries/<entry_id>")
def api_delete_entry(entry_id: str):
    try:
        conn = db.connect(_db_path())
        try:
            removed = db.delete_entry(conn, entry_id)
        finally:
            conn.close()
    except (sqlite3.Error, OSError):
        logger.exception("Failed to delete entry %s", entry_id)
        return _internal_error()
    if not removed:
        logger.debug("Delete for unknown entry %s", entry_id)
    return "", 204


@app.post("/__stop")
def shutdown_server() -> dict:
    def _shutdown():
        time.sleep(1)
        os.kill(os.getpid(), signal.SIGTERM)

    threading.Thread(target=_shutdown, daemon=True).start()
    return {"status": "stopping"}


@app.get("/__health")
def healthcheck() -> dict:
    return {"status": "ok"}


def main(argv: Optional[List[str]] = None) -> None:
    settings = load_settings()
    parser = argparse.ArgumentParser(description="Ticketlog Flask server")
    parser.add_argument("--port", type=int, default=settings.port, help="Port to bind")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind")
    parser.add_argument("--db", type=Path, default=settings.db_path, help="SQLite database file")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app.config["DB_PATH"] = str(args.db)
    conn = db.connect(args.db)
    conn.close()
    logger.info("Serving entries from %s", args.db)
    app.run(host=args.host, port=args.port)


if __name__ == "__main__":  # pragma: no cover
    main()
