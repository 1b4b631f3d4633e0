"""Vector similarity search over stored embeddings."""

from __future__ import annotations

from typing import Sequence

from ragdesk.db.sqlite import SQLiteDatabase
from ragdesk.ingest.embeddings import EmbeddingModel
from ragdesk.models.entities import SimilarChunk


class VectorIndex:
    """Cosine-similarity search evaluated inside SQLite.

    Similarity is ``1 - cosine_distance(embedding, query)``. Rows are
    filtered by ``threshold`` before ordering and ``limit`` are applied, so
    the threshold alone decides which chunks count as irrelevant.
    """

    def __init__(self, db: SQLiteDatabase, dim: int) -> None:
        self.db = db
        self.dim = dim

    def search_similar(self, vector: Sequence[float], threshold: float, limit: int) -> list[SimilarChunk]:
        if len(vector) != self.dim:
            raise ValueError("Query vector dimension mismatch")
        if limit <= 0:
            return []
        rows = self.db.query(
            """
            SELECT
              chunks.id AS chunk_id,
              chunks.resource_id,
              chunks.idx,
              chunks.version,
              chunks.text,
              scored.similarity
            FROM (
              SELECT chunk_id, 1 - cosine_distance(vector, ?) AS similarity
              FROM embeddings
              WHERE dim = ?
            ) AS scored
            JOIN chunks ON chunks.id = scored.chunk_id
            WHERE scored.similarity > ?
            ORDER BY scored.similarity DESC, chunks.resource_id ASC, chunks.idx ASC
            LIMIT ?
            """,
            [EmbeddingModel.as_bytes(vector), self.dim, threshold, limit],
        )
        return [
            SimilarChunk(
                content=row["text"],
                similarity=float(row["similarity"]),
                chunk_id=row["chunk_id"],
                resource_id=row["resource_id"],
                chunk_idx=row["idx"],
                version=row["version"],
            )
            for row in rows
        ]


__all__ = ["VectorIndex"]
