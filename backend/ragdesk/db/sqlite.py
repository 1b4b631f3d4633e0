"""SQLite connection management for the resource store."""

from __future__ import annotations

import math
import sqlite3
from array import array
from contextlib import contextmanager
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Iterator, Sequence

SCHEMA_PATH = Path(__file__).with_name("schema.sql")

DEFAULT_PRAGMAS = (
    "PRAGMA journal_mode=WAL;",
    "PRAGMA synchronous=NORMAL;",
    "PRAGMA foreign_keys=ON;",
    "PRAGMA temp_store=MEMORY;",
)


class SQLiteDatabase:
    """Single shared connection to the ragdesk database.

    The connection registers a ``cosine_distance(a, b)`` SQL function over
    packed float32 blobs so similarity ranking runs inside the query. Callers
    group writes with :meth:`transaction`; nothing else commits.
    """

    def __init__(self, db_path: Path, busy_timeout: float = 30.0) -> None:
        self.db_path = db_path.expanduser()
        self.busy_timeout = busy_timeout
        self._connection: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        if self._connection is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.db_path, timeout=self.busy_timeout, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.create_function("cosine_distance", 2, cosine_distance, deterministic=True)
            for pragma in DEFAULT_PRAGMAS:
                conn.execute(pragma)
            self._connection = conn
        return self._connection

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> sqlite3.Cursor:
        return self.connect().execute(sql, params or [])

    def executemany(self, sql: str, seq_of_params: Iterable[Sequence[Any]]) -> sqlite3.Cursor:
        return self.connect().executemany(sql, seq_of_params)

    def query(self, sql: str, params: Sequence[Any] | None = None) -> list[sqlite3.Row]:
        return self.execute(sql, params).fetchall()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Cursor]:
        """Commit everything executed inside the block, or roll it all back."""
        conn = self.connect()
        cursor = conn.cursor()
        try:
            yield cursor
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            cursor.close()

    def ensure_schema(self, schema_sql: str | None = None) -> None:
        self.connect().executescript(schema_sql or SCHEMA_PATH.read_text(encoding="utf-8"))


def cosine_distance(left: bytes | None, right: bytes | None) -> float | None:
    """SQL function: ``1 - cosine similarity`` of two float32 blobs."""
    if left is None or right is None:
        return None
    a = _unpack(left)
    b = _unpack(right)
    if len(a) != len(b):
        return None
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0:
        return 1.0
    return 1.0 - dot / norm


@lru_cache(maxsize=64)
def _unpack(blob: bytes) -> tuple[float, ...]:
    floats = array("f")
    floats.frombytes(blob)
    return tuple(floats)


__all__ = ["SQLiteDatabase", "cosine_distance"]
