"""Embedding models."""

from __future__ import annotations

import hashlib
import logging
import math
import re
from array import array
from dataclasses import dataclass
from typing import Any, Sequence

import requests

from ragdesk.core.config import Settings
from ragdesk.core.errors import DependencyError

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"\w+")


@dataclass(slots=True)
class EmbeddingBatch:
    vectors: list[list[float]]
    model: str
    dim: int
    backend: str


class EmbeddingModel:
    """Maps text to fixed-dimension vectors.

    ``encode`` is all-or-nothing: it either returns exactly one vector per
    input, in input order, or raises :class:`DependencyError`.
    """

    backend = "base"

    def __init__(self, model_name: str, dim: int) -> None:
        self.model_name = model_name
        self._dim = dim

    @property
    def dim(self) -> int:
        return self._dim

    def encode(self, texts: Sequence[str]) -> EmbeddingBatch:
        texts = list(texts)
        if not texts:
            return EmbeddingBatch(vectors=[], model=self.model_name, dim=self._dim, backend=self.backend)
        vectors = self._encode(texts)
        if len(vectors) != len(texts):
            raise DependencyError(
                f"Embedding provider returned {len(vectors)} vectors for {len(texts)} inputs",
                stage="embed",
            )
        for vector in vectors:
            if len(vector) != self._dim:
                raise DependencyError(
                    f"Embedding dimension {len(vector)} does not match expected {self._dim}",
                    stage="embed",
                )
        return EmbeddingBatch(vectors=vectors, model=self.model_name, dim=self._dim, backend=self.backend)

    def embed(self, text: str) -> list[float]:
        # Literal backslash-n sequences in query text, not real newlines.
        return self.encode([text.replace("\\n", " ")]).vectors[0]

    def embed_many(self, texts: Sequence[str]) -> list[list[float]]:
        return self.encode(texts).vectors

    def _encode(self, texts: list[str]) -> list[list[float]]:  # pragma: no cover - interface
        raise NotImplementedError

    @staticmethod
    def as_bytes(vector: Sequence[float]) -> bytes:
        return array("f", vector).tobytes()

    @staticmethod
    def from_bytes(blob: bytes) -> list[float]:
        floats = array("f")
        floats.frombytes(blob)
        return list(floats)


class HashedEmbeddingModel(EmbeddingModel):
    """Lightweight hashed bag-of-words model with deterministic output."""

    backend = "hashed"

    def _encode(self, texts: list[str]) -> list[list[float]]:
        vectors: list[list[float]] = []
        for text in texts:
            vector = [0.0] * self._dim
            for token in _tokenize(text):
                vector[_hash_token(token, self._dim)] += 1.0
            _normalize(vector)
            vectors.append(vector)
        return vectors


class OpenAIEmbeddingModel(EmbeddingModel):
    """Client for an OpenAI-compatible ``/embeddings`` endpoint."""

    backend = "openai"

    def __init__(
        self,
        model_name: str,
        dim: int,
        api_url: str,
        api_key: str | None,
        timeout: float = 60.0,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(model_name, dim)
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def _encode(self, texts: list[str]) -> list[list[float]]:
        payload: dict[str, Any] = {"model": self.model_name, "input": texts, "dimensions": self._dim}
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            response = self.session.post(
                f"{self.api_url}/embeddings",
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json().get("data") or []
            ordered = sorted(data, key=lambda item: item.get("index", 0))
            return [[float(value) for value in item["embedding"]] for item in ordered]
        except (requests.RequestException, ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.error("Embedding request failed for %s inputs: %s", len(texts), exc)
            raise DependencyError(f"Embedding provider request failed: {exc}", stage="embed") from exc


def build_embedding_model(settings: Settings) -> EmbeddingModel:
    """Instantiate the embedding backend selected in settings."""
    if settings.embedding_backend == "openai":
        return OpenAIEmbeddingModel(
            model_name=settings.embedding_model,
            dim=settings.embedding_dim,
            api_url=settings.embedding_api_url,
            api_key=settings.embedding_api_key,
            timeout=settings.embedding_timeout,
        )
    return HashedEmbeddingModel(model_name="hashed", dim=settings.embedding_dim)


def _tokenize(text: str) -> list[str]:
    return _TOKEN_RE.findall(text.lower())


def _hash_token(token: str, dim: int) -> int:
    digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big") % dim


def _normalize(vector: list[float]) -> None:
    norm = math.sqrt(sum(value * value for value in vector))
    if norm == 0:
        return
    inv = 1.0 / norm
    for idx, value in enumerate(vector):
        vector[idx] = value * inv


__all__ = [
    "EmbeddingModel",
    "EmbeddingBatch",
    "HashedEmbeddingModel",
    "OpenAIEmbeddingModel",
    "build_embedding_model",
]
