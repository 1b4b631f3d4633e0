"""Deduplication helpers."""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING

from ragdesk.models.entities import Resource

if TYPE_CHECKING:
    from ragdesk.db.resources import ResourceStore


def content_hash(cleaned_text: str) -> str:
    """Compute the dedup key for cleaned document text.

    The input must already be normalised (see ``PDFLoader.clean_text``);
    two extractions of the same document only hash identically once
    incidental whitespace and page artefacts are gone.
    """
    return hashlib.sha256(cleaned_text.encode("utf-8")).hexdigest()


def find_existing(store: "ResourceStore", digest: str) -> Resource | None:
    """Return the resource already holding ``digest``, if any."""
    return store.find_by_hash(digest)


__all__ = ["content_hash", "find_existing"]
