"""Semantic retrieval for the chat layer."""

from __future__ import annotations

import time
from typing import Any

from ragdesk.core.config import Settings
from ragdesk.core.errors import DependencyError, RagdeskError
from ragdesk.core.logging import get_logger
from ragdesk.core.metrics import REQUEST_LATENCY
from ragdesk.ingest.embeddings import EmbeddingModel
from ragdesk.models.entities import SimilarChunk
from ragdesk.retrieval.vector_index import VectorIndex

logger = get_logger(__name__)


class RetrievalService:
    """Embeds a query and returns the most similar stored chunks."""

    def __init__(
        self,
        vector_index: VectorIndex,
        embedding_model: EmbeddingModel,
        threshold: float = 0.5,
        limit: int = 4,
    ) -> None:
        self.vector_index = vector_index
        self.embedding_model = embedding_model
        self.threshold = threshold
        self.limit = limit

    @classmethod
    def from_settings(cls, settings: Settings, vector_index: VectorIndex, embedding_model: EmbeddingModel) -> "RetrievalService":
        return cls(
            vector_index=vector_index,
            embedding_model=embedding_model,
            threshold=settings.similarity_threshold,
            limit=settings.retrieval_limit,
        )

    def find_relevant_content(self, query: str) -> list[SimilarChunk]:
        start_time = time.perf_counter()
        if not query.strip():
            return []
        query_vector = self.embedding_model.embed(query)
        try:
            results = self.vector_index.search_similar(query_vector, threshold=self.threshold, limit=self.limit)
        except RagdeskError:
            raise
        except Exception as exc:
            logger.exception("Similarity search failed")
            raise DependencyError(f"Similarity search failed: {exc}", stage="search") from exc
        REQUEST_LATENCY.labels(endpoint="retrieval", method="search").observe(time.perf_counter() - start_time)
        logger.info(
            "Retrieved %s chunks",
            len(results),
            extra={"ctx_top_similarity": results[0].similarity if results else None},
        )
        return results


def as_payload(result: SimilarChunk) -> dict[str, Any]:
    return {
        "content": result.content,
        "similarity": result.similarity,
        "chunk_id": result.chunk_id,
        "resource_id": result.resource_id,
        "chunk_idx": result.chunk_idx,
        "version": result.version,
    }


__all__ = ["RetrievalService", "as_payload"]
