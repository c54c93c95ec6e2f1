"""Local single-file vector store backed by SQLite."""

import json
import logging
import sqlite3
import threading
from array import array
from pathlib import Path
from typing import Any

from vecsync.exceptions import DimensionMismatchError
from vecsync.store.base import validate_vector
from vecsync.store.metadata import METADATA_TYPES
from vecsync.store.models import Document, ScoredDocument
from vecsync.store.search import rank_documents

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS documents (
  id TEXT PRIMARY KEY,
  vector BLOB NOT NULL,
  content TEXT,
  metadata TEXT,
  checksum TEXT NOT NULL,
  version TEXT NOT NULL DEFAULT '0.0.0',
  created_at INTEGER DEFAULT (strftime('%s', 'now'))
);

CREATE INDEX IF NOT EXISTS idx_documents_checksum ON documents(checksum);

CREATE TABLE IF NOT EXISTS store_info (
  key TEXT PRIMARY KEY,
  value TEXT NOT NULL
);
"""


def _pack(vector: list[float]) -> bytes:
    return array("f", vector).tobytes()


def _unpack(blob: bytes) -> list[float]:
    values = array("f")
    values.frombytes(blob)
    return values.tolist()


def _metadata_path(field: str) -> str:
    if field not in METADATA_TYPES:
        raise ValueError(f"Unknown metadata field: {field}")
    return f"$.{field}"


class SQLiteVectorStore:
    """Vector store in a local SQLite file, ranked by brute-force cosine.

    The store remembers the dimension it was created with; reopening it with
    a different dimension is a configuration error. One connection is shared
    behind a lock so the store can be driven from worker threads.
    """

    def __init__(self, db_path: str | Path, dimension: int) -> None:
        path = str(db_path)
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self.db_path = path
        self._lock = threading.Lock()
        self._con = sqlite3.connect(path, check_same_thread=False)
        self._con.executescript(SCHEMA_SQL)
        self.dimension = self._check_dimension(dimension)
        logger.debug(f"Opened SQLite store {path} (dimension={self.dimension})")

    def _check_dimension(self, dimension: int) -> int:
        with self._lock:
            row = self._con.execute(
                "SELECT value FROM store_info WHERE key = 'dimension'"
            ).fetchone()
            if row is None:
                self._con.execute(
                    "INSERT INTO store_info (key, value) VALUES ('dimension', ?)",
                    (str(dimension),),
                )
                self._con.commit()
                return dimension
        stored = int(row[0])
        if stored != dimension:
            raise DimensionMismatchError(stored, dimension, context=f"store {self.db_path}")
        return stored

    def put(self, doc: Document) -> None:
        self.put_batch([doc])

    def put_batch(self, docs: list[Document]) -> None:
        for doc in docs:
            validate_vector(doc.vector, self.dimension, doc.id)
        rows = [
            (
                doc.id,
                _pack(doc.vector),
                json.dumps(doc.content) if doc.content is not None else None,
                json.dumps(doc.metadata) if doc.metadata else None,
                doc.checksum,
                doc.version,
            )
            for doc in docs
        ]
        with self._lock:
            self._con.executemany(
                "INSERT OR REPLACE INTO documents (id, vector, content, metadata, checksum, version) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                rows,
            )
            self._con.commit()

    def get_by_checksum(self, checksum: str) -> str | None:
        with self._lock:
            row = self._con.execute(
                "SELECT id FROM documents WHERE checksum = ? LIMIT 1", (checksum,)
            ).fetchone()
        return row[0] if row else None

    def existing_checksums(self, checksums: list[str]) -> set[str]:
        if not checksums:
            return set()
        placeholders = ",".join("?" for _ in checksums)
        with self._lock:
            rows = self._con.execute(
                f"SELECT DISTINCT checksum FROM documents WHERE checksum IN ({placeholders})",
                list(checksums),
            ).fetchall()
        return {row[0] for row in rows}

    def get_all(self) -> list[Document]:
        with self._lock:
            rows = self._con.execute(
                "SELECT id, vector, content, metadata, checksum, version FROM documents"
            ).fetchall()
        return [self._row_to_document(row) for row in rows]

    def get_metadata_by_source(self, source: str) -> list[tuple[str, dict[str, Any]]]:
        with self._lock:
            rows = self._con.execute(
                "SELECT id, metadata FROM documents WHERE json_extract(metadata, '$.source') = ?",
                (source,),
            ).fetchall()
        return [(row[0], json.loads(row[1]) if row[1] else {}) for row in rows]

    def get_ids_where(self, field: str, value: Any) -> list[str]:
        with self._lock:
            rows = self._con.execute(
                "SELECT id FROM documents WHERE json_extract(metadata, ?) = ?",
                (_metadata_path(field), value),
            ).fetchall()
        return [row[0] for row in rows]

    def delete_by_ids(self, ids: list[str]) -> int:
        if not ids:
            return 0
        with self._lock:
            cursor = self._con.executemany(
                "DELETE FROM documents WHERE id = ?", [(doc_id,) for doc_id in ids]
            )
            self._con.commit()
        return cursor.rowcount

    def count(self) -> int:
        with self._lock:
            return self._con.execute("SELECT COUNT(*) FROM documents").fetchone()[0]

    def query(self, vector: list[float], top_k: int) -> list[ScoredDocument]:
        validate_vector(vector, self.dimension, "query")
        return rank_documents(vector, self.get_all(), top_k)

    def close(self) -> None:
        with self._lock:
            self._con.close()
        logger.debug(f"Closed SQLite store {self.db_path}")

    @staticmethod
    def _row_to_document(row: tuple) -> Document:
        doc_id, blob, content, metadata, checksum, version = row
        return Document(
            id=doc_id,
            vector=_unpack(blob),
            checksum=checksum,
            version=version,
            content=json.loads(content) if content is not None else None,
            metadata=json.loads(metadata) if metadata else {},
        )
