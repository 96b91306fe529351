"""SQLite document store keyed by the URL-derived document id."""

import sqlite3
import threading
from typing import List, Optional, Tuple

from .models import Document, EmptyIdError


class StoreError(Exception):
    pass


class Database:
    def __init__(self, db_path: str = "zeno.db"):
        self.db_path = db_path
        self._local = threading.local()
        self._init_db()

    @property
    def _conn(self) -> sqlite3.Connection:
        if not hasattr(self._local, "conn") or self._local.conn is None:
            self._local.conn = sqlite3.connect(self.db_path)
            self._local.conn.row_factory = sqlite3.Row
            self._local.conn.execute("PRAGMA journal_mode=WAL")
        return self._local.conn

    def _init_db(self):
        conn = self._conn
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS documents (
                id TEXT PRIMARY KEY,
                url TEXT NOT NULL,
                title TEXT DEFAULT '',
                description TEXT DEFAULT '',
                content TEXT DEFAULT '',
                capture_requested INTEGER DEFAULT 0,
                doc_type TEXT NOT NULL,
                parsed_at INTEGER,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );

            CREATE INDEX IF NOT EXISTS idx_documents_doc_type ON documents(doc_type);
        """)
        conn.commit()

    def close(self):
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None

    def save(self, doc: Document):
        """Insert or update the record for doc.id."""
        if not doc.id:
            raise EmptyIdError()
        row = doc.to_dict()
        try:
            self._conn.execute(
                """INSERT INTO documents
                   (id, url, title, description, content, capture_requested, doc_type, parsed_at)
                   VALUES (:id, :url, :title, :description, :content, :capture_requested,
                           :doc_type, :parsed_at)
                   ON CONFLICT(id) DO UPDATE SET
                       url = excluded.url, title = excluded.title,
                       description = excluded.description, content = excluded.content,
                       capture_requested = excluded.capture_requested,
                       doc_type = excluded.doc_type, parsed_at = excluded.parsed_at,
                       updated_at = CURRENT_TIMESTAMP""",
                row,
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"cannot save document {doc.id}: {e}") from e

    def get(self, doc_id: str) -> Optional[Document]:
        if not doc_id:
            raise EmptyIdError()
        try:
            row = self._conn.execute(
                "SELECT * FROM documents WHERE id = ?", (doc_id,)
            ).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"cannot fetch document {doc_id}: {e}") from e
        return Document.from_row(row) if row else None

    def get_all(self, limit: int = -1, offset: int = 0) -> List[Document]:
        try:
            rows = self._conn.execute(
                "SELECT * FROM documents ORDER BY updated_at DESC, id LIMIT ? OFFSET ?",
                (limit, offset),
            ).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"cannot fetch documents: {e}") from e
        return [Document.from_row(r) for r in rows]

    def count(self) -> int:
        try:
            return self._conn.execute("SELECT COUNT(*) FROM documents").fetchone()[0]
        except sqlite3.Error as e:
            raise StoreError(f"cannot count documents: {e}") from e

    def delete(self, doc_id: str):
        if not doc_id:
            raise EmptyIdError()
        try:
            self._conn.execute("DELETE FROM documents WHERE id = ?", (doc_id,))
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"cannot delete document {doc_id}: {e}") from e

    def get_stats(self) -> List[Tuple]:
        rows = self._conn.execute(
            """SELECT doc_type, COUNT(*) as cnt,
                      SUM(CASE WHEN capture_requested THEN 1 ELSE 0 END) as captured,
                      COALESCE(SUM(LENGTH(content)), 0) as total_chars
               FROM documents GROUP BY doc_type ORDER BY doc_type"""
        ).fetchall()
        return [tuple(r) for r in rows]
