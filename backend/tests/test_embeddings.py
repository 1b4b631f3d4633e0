"""Tests for embedding utilities."""

from __future__ import annotations

import math
from typing import Any

import pytest
import requests

from ragdesk.core.config import Settings
from ragdesk.core.errors import DependencyError
from ragdesk.ingest.embeddings import (
    EmbeddingModel,
    HashedEmbeddingModel,
    OpenAIEmbeddingModel,
    build_embedding_model,
)


class _FakeResponse:
    def __init__(self, payload: dict[str, Any], status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self) -> dict[str, Any]:
        return self._payload


class _FakeSession:
    def __init__(self, response: _FakeResponse) -> None:
        self.response = response
        self.calls: list[dict[str, Any]] = []

    def post(self, url: str, **kwargs: Any) -> _FakeResponse:
        self.calls.append({"url": url, **kwargs})
        return self.response


class _ShortModel(EmbeddingModel):
    def _encode(self, texts: list[str]) -> list[list[float]]:
        return [[1.0] * self.dim for _ in texts[:-1]]


def test_hashed_model_vectors_are_normalised() -> None:
    model = HashedEmbeddingModel("hashed", dim=32)
    vectors = model.encode(["hello", "world"]).vectors
    assert len(vectors) == 2
    assert all(len(vec) == model.dim for vec in vectors)
    assert abs(sum(value * value for value in vectors[0]) - 1.0) < 1e-6


def test_hashed_model_is_deterministic_and_ordered() -> None:
    model = HashedEmbeddingModel("hashed", dim=32)
    first = model.embed_many(["alpha beta", "gamma"])
    second = model.embed_many(["gamma", "alpha beta"])
    assert first[0] == second[1]
    assert first[1] == second[0]


def test_embed_replaces_escaped_newlines() -> None:
    model = HashedEmbeddingModel("hashed", dim=32)
    assert model.embed("alpha\\nbeta") == model.embed("alpha beta")


def test_empty_batch() -> None:
    batch = HashedEmbeddingModel("hashed", dim=8).encode([])
    assert batch.vectors == []
    assert batch.dim == 8


def test_count_mismatch_raises() -> None:
    with pytest.raises(DependencyError) as excinfo:
        _ShortModel("short", dim=4).encode(["a", "b", "c"])
    assert excinfo.value.stage == "embed"


def test_vector_blob_round_trip() -> None:
    blob = EmbeddingModel.as_bytes([0.5, -1.0, 2.0])
    assert EmbeddingModel.from_bytes(blob) == [0.5, -1.0, 2.0]


def test_openai_model_orders_by_index() -> None:
    payload = {
        "data": [
            {"index": 1, "embedding": [0.0, 1.0]},
            {"index": 0, "embedding": [1.0, 0.0]},
        ]
    }
    session = _FakeSession(_FakeResponse(payload))
    model = OpenAIEmbeddingModel("text-embedding-3-small", 2, "https://example.test/v1/", "secret", session=session)
    vectors = model.embed_many(["first", "second"])
    assert vectors == [[1.0, 0.0], [0.0, 1.0]]
    call = session.calls[0]
    assert call["url"] == "https://example.test/v1/embeddings"
    assert call["headers"]["Authorization"] == "Bearer secret"
    assert call["json"]["dimensions"] == 2


def test_openai_model_dimension_mismatch() -> None:
    session = _FakeSession(_FakeResponse({"data": [{"index": 0, "embedding": [1.0, 0.0, 0.0]}]}))
    model = OpenAIEmbeddingModel("m", 2, "https://example.test/v1", None, session=session)
    with pytest.raises(DependencyError):
        model.embed("text")


def test_openai_model_http_error() -> None:
    session = _FakeSession(_FakeResponse({}, status_code=500))
    model = OpenAIEmbeddingModel("m", 2, "https://example.test/v1", None, session=session)
    with pytest.raises(DependencyError) as excinfo:
        model.embed("text")
    assert excinfo.value.stage == "embed"


def test_build_embedding_model_selects_backend(tmp_path) -> None:
    hashed = build_embedding_model(Settings(db_path=tmp_path / "a.db", embedding_dim=16))
    assert isinstance(hashed, HashedEmbeddingModel)
    assert hashed.dim == 16
    remote = build_embedding_model(Settings(db_path=tmp_path / "a.db", embedding_backend="openai", embedding_dim=16))
    assert isinstance(remote, OpenAIEmbeddingModel)
    assert not math.isnan(remote.timeout)
