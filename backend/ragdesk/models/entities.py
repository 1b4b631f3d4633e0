"""Internal dataclasses representing persisted entities."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class ResourceStatus(str, Enum):
    PROCESSING = "processing"
    READY = "ready"
    ERROR = "error"
    ARCHIVED = "archived"


@dataclass(slots=True)
class Resource:
    id: str
    type: str
    title: str | None
    source: str | None
    lang: str | None
    content_hash: str | None
    created_by: str | None
    status: ResourceStatus
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "source": self.source,
            "lang": self.lang,
            "content_hash": self.content_hash,
            "created_by": self.created_by,
            "status": self.status.value,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass(slots=True)
class ResourceVersion:
    id: str
    resource_id: str
    version: int
    content_hash: str | None
    created_at: datetime


@dataclass(slots=True)
class SimilarChunk:
    """Row returned by the similarity search, joined with its chunk."""

    content: str
    similarity: float
    chunk_id: str
    resource_id: str
    chunk_idx: int
    version: int
