"""Common ingestion data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ragdesk.models.entities import Resource


@dataclass(slots=True)
class ExtractedPDF:
    """Raw text and document metadata pulled from a PDF."""

    text: str
    page_count: int
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def title(self) -> str | None:
        value = self.metadata.get("title")
        return value or None


@dataclass(slots=True)
class TextChunk:
    """Chunk produced by the chunker prior to persistence."""

    text: str
    token_count: int
    start_char: int
    end_char: int


@dataclass(slots=True)
class StoredChunk:
    """Chunk row written for a resource, in index order."""

    id: str
    resource_id: str
    version: int
    idx: int
    lang: str
    text: str
    token_count: int


@dataclass(slots=True)
class PDFUploadResult:
    """Outcome of ``IngestPipeline.process_pdf``."""

    resource_id: str
    title: str
    chunks_created: int
    embeddings_created: int
    duplicate: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource_id": self.resource_id,
            "title": self.title,
            "chunks_created": self.chunks_created,
            "embeddings_created": self.embeddings_created,
            "duplicate": self.duplicate,
        }


@dataclass(slots=True)
class ResourceStatusReport:
    """Resource row plus chunk and embedding counts, for progress polling."""

    resource: Resource
    chunk_count: int
    embedding_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource": self.resource.to_dict(),
            "chunk_count": self.chunk_count,
            "embedding_count": self.embedding_count,
        }


__all__ = [
    "ExtractedPDF",
    "TextChunk",
    "StoredChunk",
    "PDFUploadResult",
    "ResourceStatusReport",
]
