"""Tests for retrieval utilities."""

from __future__ import annotations

from pathlib import Path

import pytest

from ragdesk.core.errors import DependencyError
from ragdesk.db.resources import ResourceStore
from ragdesk.db.sqlite import SQLiteDatabase, cosine_distance
from ragdesk.ingest.embeddings import EmbeddingModel
from ragdesk.ingest.types import TextChunk
from ragdesk.retrieval import RetrievalService, VectorIndex


class _TableModel(EmbeddingModel):
    """Returns preset vectors keyed by text."""

    def __init__(self, table: dict[str, list[float]]) -> None:
        super().__init__("table", dim=3)
        self.table = table

    def _encode(self, texts: list[str]) -> list[list[float]]:
        return [self.table[text] for text in texts]


VECTORS = {
    "exact": [1.0, 0.0, 0.0],
    "close": [0.9, 0.1, 0.0],
    "closer": [0.95, 0.05, 0.0],
    "near": [0.8, 0.2, 0.0],
    "medium": [0.7, 0.3, 0.0],
    "far": [0.0, 1.0, 0.0],
    "opposite": [-1.0, 0.0, 0.0],
    "question": [1.0, 0.0, 0.0],
}


@pytest.fixture
def db(tmp_path: Path) -> SQLiteDatabase:
    database = SQLiteDatabase(tmp_path / "retrieval.db")
    database.ensure_schema()
    yield database
    database.close()


def _seed(db: SQLiteDatabase, texts: list[str]) -> None:
    store = ResourceStore(db)
    model = _TableModel(VECTORS)
    with db.transaction():
        resource = store.create_resource(
            type="pdf", title="seed", source=None, lang="en", content_hash="seed", created_by=None
        )
        store.create_version(resource.id, 1, "seed")
        chunks = [TextChunk(text=text, token_count=1, start_char=0, end_char=1) for text in texts]
        stored = store.insert_chunks(resource.id, 1, "en", chunks)
        batch = model.encode([chunk.text for chunk in stored])
        store.insert_embeddings(stored, batch.vectors, batch.model, batch.dim)


def test_cosine_distance_function() -> None:
    same = EmbeddingModel.as_bytes([1.0, 2.0])
    other = EmbeddingModel.as_bytes([-2.0, 1.0])
    assert cosine_distance(same, same) == pytest.approx(0.0, abs=1e-6)
    assert cosine_distance(same, other) == pytest.approx(1.0, abs=1e-6)
    assert cosine_distance(same, None) is None


def test_vector_index_orders_by_similarity(db: SQLiteDatabase) -> None:
    _seed(db, ["far", "close", "exact", "near"])
    index = VectorIndex(db, dim=3)
    results = index.search_similar([1.0, 0.0, 0.0], threshold=0.5, limit=4)
    assert [result.content for result in results] == ["exact", "close", "near"]
    similarities = [result.similarity for result in results]
    assert similarities == sorted(similarities, reverse=True)
    assert all(similarity > 0.5 for similarity in similarities)
    assert results[0].chunk_idx == 2
    assert results[0].version == 1


def test_vector_index_threshold_before_limit(db: SQLiteDatabase) -> None:
    _seed(db, ["opposite", "far", "medium", "near", "close", "closer", "exact"])
    index = VectorIndex(db, dim=3)
    results = index.search_similar([1.0, 0.0, 0.0], threshold=0.5, limit=4)
    assert [result.content for result in results] == ["exact", "closer", "close", "near"]
    assert index.search_similar([1.0, 0.0, 0.0], threshold=0.999, limit=4)[0].content == "exact"
    assert index.search_similar([0.0, 0.0, 1.0], threshold=0.5, limit=4) == []


def test_vector_index_rejects_wrong_dimension(db: SQLiteDatabase) -> None:
    with pytest.raises(ValueError):
        VectorIndex(db, dim=3).search_similar([1.0, 0.0], threshold=0.5, limit=4)


def test_retrieval_service_limits_results(db: SQLiteDatabase) -> None:
    _seed(db, ["exact", "closer", "close", "near", "medium", "far"])
    service = RetrievalService(VectorIndex(db, dim=3), _TableModel(VECTORS))
    results = service.find_relevant_content("question")
    assert len(results) == 4
    assert results[0].content == "exact"
    assert service.find_relevant_content("   ") == []


def test_retrieval_service_wraps_search_failures(db: SQLiteDatabase) -> None:
    class _BrokenIndex(VectorIndex):
        def search_similar(self, vector, threshold, limit):
            raise RuntimeError("database is locked")

    service = RetrievalService(_BrokenIndex(db, dim=3), _TableModel(VECTORS))
    with pytest.raises(DependencyError) as excinfo:
        service.find_relevant_content("question")
    assert excinfo.value.stage == "search"
