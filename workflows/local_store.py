"""Local SQLite stores: cached file bytes and per-user snapshots.

Both stores share one database file. Connections are opened with
check_same_thread=False and guarded by a lock because remote listeners
call back on their own threads.
"""

import base64
import json
import os
import sqlite3
import threading
from typing import Dict, List, Optional, Tuple

from .document import Document
from .records import UserRecord, normalize_email

DB_DIR = os.path.expanduser("~/.local/share/docarchive")
DB_PATH = os.path.join(DB_DIR, "archive.db")


def to_data_url(data: bytes, mime_type: Optional[str] = None) -> str:
    """Encode bytes as a base64 data URL."""
    mime = mime_type or "application/octet-stream"
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def from_data_url(data_url: str) -> Tuple[str, bytes]:
    """Decode a base64 data URL into (mime_type, bytes)."""
    if not data_url.startswith("data:") or "," not in data_url:
        raise ValueError("Not a data URL")
    header, payload = data_url[5:].split(",", 1)
    mime = header.split(";")[0] or "application/octet-stream"
    if header.endswith(";base64"):
        return mime, base64.b64decode(payload)
    return mime, payload.encode("utf-8")


class _SQLiteStore:
    """Shared connection handling for the local stores."""

    def __init__(self, db_path: str = DB_PATH) -> None:
        # Ensure directory exists
        db_dir = os.path.dirname(db_path)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir)

        self.db_path = db_path
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._init_db()

    def _init_db(self) -> None:
        raise NotImplementedError

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self.conn.close()


class FileCache(_SQLiteStore):
    """File bytes keyed by document id, stored as data URLs.

    No eviction: entries stay until deleted explicitly.
    """

    def _init_db(self) -> None:
        with self._lock:
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS files (
                    id TEXT PRIMARY KEY,
                    data_url TEXT NOT NULL
                )
            """)
            self.conn.commit()

    def put(self, doc_id: str, data_url: str) -> None:
        with self._lock:
            self.conn.execute(
                "INSERT OR REPLACE INTO files (id, data_url) VALUES (?, ?)",
                (doc_id, data_url),
            )
            self.conn.commit()

    def get(self, doc_id: str) -> Optional[str]:
        with self._lock:
            row = self.conn.execute(
                "SELECT data_url FROM files WHERE id = ?", (doc_id,)
            ).fetchone()
        return row["data_url"] if row else None

    def get_bytes(self, doc_id: str) -> Optional[bytes]:
        data_url = self.get(doc_id)
        if data_url is None:
            return None
        return from_data_url(data_url)[1]

    def delete(self, doc_id: str) -> None:
        """Remove an entry. Deleting a missing id is a no-op."""
        with self._lock:
            self.conn.execute("DELETE FROM files WHERE id = ?", (doc_id,))
            self.conn.commit()

    def exists(self, doc_id: str) -> bool:
        with self._lock:
            row = self.conn.execute(
                "SELECT 1 FROM files WHERE id = ?", (doc_id,)
            ).fetchone()
        return row is not None


class UserStore(_SQLiteStore):
    """Last-known snapshot of every user seen on this device.

    Holds each user's documents, shared-folder views and the invite queues
    used when the remote store is unreachable.
    """

    def _init_db(self) -> None:
        with self._lock:
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    email TEXT PRIMARY KEY,
                    data TEXT NOT NULL
                )
            """)
            self.conn.commit()

    def get(self, email: str) -> Optional[UserRecord]:
        key = normalize_email(email)
        with self._lock:
            row = self.conn.execute(
                "SELECT data FROM users WHERE email = ?", (key,)
            ).fetchone()
        if not row:
            return None
        return UserRecord.from_dict(json.loads(row["data"]))

    def ensure(self, email: str) -> UserRecord:
        """Return the user's record, creating an empty one if needed."""
        with self._lock:
            record = self.get(email)
            if record is None:
                record = UserRecord(email=normalize_email(email))
                self.save(record)
            return record

    def save(self, record: UserRecord) -> None:
        record.email = normalize_email(record.email)
        payload = json.dumps(record.to_dict(), ensure_ascii=False, default=str)
        with self._lock:
            self.conn.execute(
                "INSERT OR REPLACE INTO users (email, data) VALUES (?, ?)",
                (record.email, payload),
            )
            self.conn.commit()

    def all(self) -> Dict[str, UserRecord]:
        with self._lock:
            rows = self.conn.execute("SELECT email, data FROM users").fetchall()
        return {row["email"]: UserRecord.from_dict(json.loads(row["data"])) for row in rows}

    def get_docs(self, email: str) -> List[Document]:
        record = self.get(email)
        return list(record.docs) if record else []

    def set_docs(self, email: str, docs: List[Document]) -> None:
        with self._lock:
            record = self.ensure(email)
            record.docs = list(docs)
            self.save(record)
