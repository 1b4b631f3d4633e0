"""Resource, version, chunk, and embedding persistence.

Methods do not commit; callers group writes with ``SQLiteDatabase.transaction``
or ``SQLiteDatabase.commit``.
"""

from __future__ import annotations

import sqlite3
from typing import Any, Sequence

from ragdesk.db.sqlite import SQLiteDatabase
from ragdesk.ingest.embeddings import EmbeddingModel
from ragdesk.ingest.types import StoredChunk, TextChunk
from ragdesk.models.entities import Resource, ResourceStatus, ResourceVersion
from ragdesk.utils.ids import new_id
from ragdesk.utils.time import ms_to_datetime, now_ms

_RESOURCE_COLUMNS = "id, type, title, source, lang, content_hash, created_by, status, created_at, updated_at"


class DuplicateContentError(Exception):
    """Raised when a resource with the same content hash already exists."""

    def __init__(self, content_hash: str) -> None:
        super().__init__(f"Resource with content hash {content_hash} already exists")
        self.content_hash = content_hash


class ResourceStore:
    def __init__(self, db: SQLiteDatabase) -> None:
        self.db = db

    # Resources --------------------------------------------------------

    def create_resource(
        self,
        *,
        type: str,
        title: str | None,
        source: str | None,
        lang: str | None,
        content_hash: str | None,
        created_by: str | None,
        status: ResourceStatus = ResourceStatus.PROCESSING,
    ) -> Resource:
        resource_id = new_id("res")
        now = now_ms()
        try:
            self.db.execute(
                f"INSERT INTO resources ({_RESOURCE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [resource_id, type, title, source, lang, content_hash, created_by, status.value, now, now],
            )
        except sqlite3.IntegrityError as exc:
            if content_hash is not None and "content_hash" in str(exc):
                raise DuplicateContentError(content_hash) from exc
            raise
        return Resource(
            id=resource_id,
            type=type,
            title=title,
            source=source,
            lang=lang,
            content_hash=content_hash,
            created_by=created_by,
            status=status,
            created_at=ms_to_datetime(now),
            updated_at=ms_to_datetime(now),
        )

    def get(self, resource_id: str) -> Resource | None:
        row = self.db.execute(
            f"SELECT {_RESOURCE_COLUMNS} FROM resources WHERE id = ?",
            [resource_id],
        ).fetchone()
        return _row_to_resource(row) if row else None

    def find_by_hash(self, content_hash: str) -> Resource | None:
        row = self.db.execute(
            f"SELECT {_RESOURCE_COLUMNS} FROM resources WHERE content_hash = ? LIMIT 1",
            [content_hash],
        ).fetchone()
        return _row_to_resource(row) if row else None

    def set_status(self, resource_id: str, status: ResourceStatus) -> Resource | None:
        cursor = self.db.execute(
            "UPDATE resources SET status = ?, updated_at = ? WHERE id = ?",
            [status.value, now_ms(), resource_id],
        )
        if cursor.rowcount == 0:
            return None
        return self.get(resource_id)

    def delete(self, resource_id: str) -> bool:
        cursor = self.db.execute("DELETE FROM resources WHERE id = ?", [resource_id])
        return cursor.rowcount > 0

    def list_resources(self, limit: int = 20, offset: int = 0) -> list[tuple[Resource, int]]:
        rows = self.db.query(
            f"""
            SELECT {", ".join(f"resources.{column.strip()}" for column in _RESOURCE_COLUMNS.split(","))},
                   COUNT(chunks.id) AS chunk_count
            FROM resources
            LEFT JOIN chunks ON chunks.resource_id = resources.id
            GROUP BY resources.id
            ORDER BY resources.created_at DESC
            LIMIT ? OFFSET ?
            """,
            [limit, offset],
        )
        return [(_row_to_resource(row), int(row["chunk_count"])) for row in rows]

    def stats(self) -> dict[str, Any]:
        by_status = {status.value: 0 for status in ResourceStatus}
        for row in self.db.query("SELECT status, COUNT(*) AS count FROM resources GROUP BY status"):
            by_status[row["status"]] = int(row["count"])
        return {
            "total_resources": sum(by_status.values()),
            "by_status": by_status,
            "total_chunks": self._scalar("SELECT COUNT(*) FROM chunks"),
            "total_embeddings": self.total_embeddings(),
        }

    # Versions ---------------------------------------------------------

    def create_version(self, resource_id: str, version: int, content_hash: str | None) -> ResourceVersion:
        version_id = new_id("ver")
        now = now_ms()
        self.db.execute(
            "INSERT INTO resource_versions (id, resource_id, version, content_hash, created_at) VALUES (?, ?, ?, ?, ?)",
            [version_id, resource_id, version, content_hash, now],
        )
        return ResourceVersion(
            id=version_id,
            resource_id=resource_id,
            version=version,
            content_hash=content_hash,
            created_at=ms_to_datetime(now),
        )

    # Chunks and embeddings --------------------------------------------

    def insert_chunks(
        self,
        resource_id: str,
        version: int,
        lang: str | None,
        chunks: Sequence[TextChunk],
    ) -> list[StoredChunk]:
        now = now_ms()
        stored = [
            StoredChunk(
                id=new_id("chk"),
                resource_id=resource_id,
                version=version,
                idx=idx,
                lang=lang or "",
                text=chunk.text,
                token_count=chunk.token_count,
            )
            for idx, chunk in enumerate(chunks)
        ]
        self.db.executemany(
            """
            INSERT INTO chunks (id, resource_id, version, idx, lang, text, token_count, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (item.id, item.resource_id, item.version, item.idx, lang, item.text, item.token_count, now)
                for item in stored
            ],
        )
        return stored

    def insert_embeddings(
        self,
        chunks: Sequence[StoredChunk],
        vectors: Sequence[Sequence[float]],
        model: str,
        dim: int,
    ) -> int:
        if len(chunks) != len(vectors):
            raise ValueError(f"Cannot align {len(vectors)} vectors with {len(chunks)} chunks")
        now = now_ms()
        self.db.executemany(
            "INSERT INTO embeddings (id, chunk_id, model, dim, vector, created_at) VALUES (?, ?, ?, ?, ?, ?)",
            [
                (new_id("emb"), chunk.id, model, dim, EmbeddingModel.as_bytes(vector), now)
                for chunk, vector in zip(chunks, vectors)
            ],
        )
        return len(chunks)

    def count_chunks(self, resource_id: str) -> int:
        return self._scalar("SELECT COUNT(*) FROM chunks WHERE resource_id = ?", [resource_id])

    def count_embeddings(self, resource_id: str) -> int:
        return self._scalar(
            """
            SELECT COUNT(*) FROM embeddings
            JOIN chunks ON chunks.id = embeddings.chunk_id
            WHERE chunks.resource_id = ?
            """,
            [resource_id],
        )

    def total_embeddings(self) -> int:
        return self._scalar("SELECT COUNT(*) FROM embeddings")

    def _scalar(self, sql: str, params: Sequence[Any] | None = None) -> int:
        row = self.db.execute(sql, params).fetchone()
        return int(row[0]) if row else 0


def _row_to_resource(row: sqlite3.Row) -> Resource:
    return Resource(
        id=row["id"],
        type=row["type"],
        title=row["title"],
        source=row["source"],
        lang=row["lang"],
        content_hash=row["content_hash"],
        created_by=row["created_by"],
        status=ResourceStatus(row["status"]),
        created_at=ms_to_datetime(row["created_at"]),
        updated_at=ms_to_datetime(row["updated_at"]),
    )


__all__ = ["ResourceStore", "DuplicateContentError"]
