# chatbot/services/document_store.py
"""Per-key document storage used by the message log.

Each key (a user id) holds one JSON-like document: a dict of field -> value.
The message log only needs four operations, captured by `DocumentStore`.
Backends:
- InMemoryDocumentStore: process-local dicts (dev / tests)
- SQLiteDocumentStore: one row per key holding the JSON document
"""
from __future__ import annotations

import copy
import json
import os
import sqlite3
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Protocol

Document = Dict[str, Any]
DEFAULT_BUSY_TIMEOUT = 5.0


class DocumentStore(Protocol):
    """Storage operations required by the message log store."""

    def get(self, key: str) -> Optional[Document]:
        """Return a copy of the document, or None when it does not exist."""
        ...

    def merge_set(self, key: str, fields: Document) -> None:
        """Upsert `fields` into the document, creating it if absent."""
        ...

    def overwrite(self, key: str, document: Document) -> None:
        """Replace the whole document."""
        ...

    def delete_field(self, key: str, field: str) -> None:
        """Remove one field. Missing documents/fields are a no-op."""
        ...


class InMemoryDocumentStore:
    """Dict-backed store. Swap with SQLiteDocumentStore for persistence."""

    def __init__(self) -> None:
        self._docs: Dict[str, Document] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Document]:
        with self._lock:
            doc = self._docs.get(key)
            return copy.deepcopy(doc) if doc is not None else None

    def merge_set(self, key: str, fields: Document) -> None:
        with self._lock:
            self._docs.setdefault(key, {}).update(copy.deepcopy(fields))

    def overwrite(self, key: str, document: Document) -> None:
        with self._lock:
            self._docs[key] = copy.deepcopy(document)

    def delete_field(self, key: str, field: str) -> None:
        with self._lock:
            doc = self._docs.get(key)
            if doc is not None:
                doc.pop(field, None)


class SQLiteDocumentStore:
    """Thin SQLite wrapper that satisfies the DocumentStore contract."""

    def __init__(self, db_path: str, timeout: float = DEFAULT_BUSY_TIMEOUT) -> None:
        self._db_path = db_path
        # seconds a call waits on a locked database before failing
        self._timeout = timeout

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        # one connection per call; commits on success, rolls back on error
        conn = sqlite3.connect(self._db_path, timeout=self._timeout)
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def init_db(self) -> None:
        """Create the documents table if it does not exist."""
        parent = os.path.dirname(self._db_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    doc_key TEXT PRIMARY KEY,
                    body TEXT NOT NULL
                )
                """
            )

    @staticmethod
    def _read(conn: sqlite3.Connection, key: str) -> Optional[Document]:
        row = conn.execute("SELECT body FROM documents WHERE doc_key = ?", (key,)).fetchone()
        return json.loads(row["body"]) if row else None

    @staticmethod
    def _write(conn: sqlite3.Connection, key: str, document: Document) -> None:
        conn.execute(
            """
            INSERT INTO documents (doc_key, body) VALUES (?, ?)
            ON CONFLICT(doc_key) DO UPDATE SET body = excluded.body
            """,
            (key, json.dumps(document)),
        )

    def get(self, key: str) -> Optional[Document]:
        with self._connect() as conn:
            return self._read(conn, key)

    def merge_set(self, key: str, fields: Document) -> None:
        # BEGIN IMMEDIATE keeps the read and the write in one write transaction
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            doc = self._read(conn, key) or {}
            doc.update(fields)
            self._write(conn, key, doc)

    def overwrite(self, key: str, document: Document) -> None:
        with self._connect() as conn:
            self._write(conn, key, document)

    def delete_field(self, key: str, field: str) -> None:
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            doc = self._read(conn, key)
            if doc is None or field not in doc:
                return
            del doc[field]
            self._write(conn, key, doc)


def build_document_store(
    backend: str, sqlite_path: str = "./data/messages.db", timeout: float = DEFAULT_BUSY_TIMEOUT,
) -> DocumentStore:
    """Backend factory driven by the STORAGE_BACKEND setting."""
    if backend == "memory":
        return InMemoryDocumentStore()
    if backend == "sqlite":
        store = SQLiteDocumentStore(sqlite_path, timeout=timeout)
        store.init_db()
        return store
    raise ValueError(f"unknown storage backend {backend!r} (expected memory or sqlite)")
