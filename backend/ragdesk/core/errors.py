"""Exception hierarchy for ragdesk.

Every failure surfaced by the ingestion pipeline or retrieval engine is a
:class:`RagdeskError` carrying a machine-readable ``kind`` and a human
message, so API handlers and the CLI can render a structured failure
without inspecting exception types.

    RagdeskError
    +-- InvalidFileError        (bad MIME type, size, or PDF signature)
    +-- ExtractionError         (unparsable PDF, zero pages)
    +-- EmptyContentError       (no text after cleaning, zero chunks)
    +-- DependencyError         (object store, embedding provider, datastore)
    +-- NotFoundError           (unknown resource id)
    +-- RateLimitExceededError  (caller exceeded its request budget)
"""

from __future__ import annotations

from typing import Any


class RagdeskError(Exception):
    """Base class for all ragdesk errors."""

    kind = "internal_error"

    def __init__(self, message: str, stage: str | None = None) -> None:
        self.message = message
        self.stage = stage
        super().__init__(message)

    def __str__(self) -> str:
        if self.stage:
            return f"[{self.stage}] {self.message}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.kind, "message": self.message}
        if self.stage:
            payload["stage"] = self.stage
        return payload


class InvalidFileError(RagdeskError):
    kind = "invalid_file"


class ExtractionError(RagdeskError):
    kind = "extraction_error"


class EmptyContentError(RagdeskError):
    kind = "empty_content"


class DependencyError(RagdeskError):
    """An external collaborator failed; ``stage`` names the pipeline step."""

    kind = "dependency_error"


class NotFoundError(RagdeskError):
    kind = "not_found"


class RateLimitExceededError(RagdeskError):
    kind = "rate_limited"

    def __init__(self, message: str, reset_at: float, retry_after: int, remaining: int = 0) -> None:
        super().__init__(message)
        self.reset_at = reset_at
        self.retry_after = retry_after
        self.remaining = remaining


__all__ = [
    "RagdeskError",
    "InvalidFileError",
    "ExtractionError",
    "EmptyContentError",
    "DependencyError",
    "NotFoundError",
    "RateLimitExceededError",
]
