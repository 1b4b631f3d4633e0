"""PDF loading and text cleanup."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any

import fitz

from ragdesk.core.errors import ExtractionError
from ragdesk.ingest.types import ExtractedPDF

PDF_MAGIC = b"%PDF"

_PAGE_OF_RE = re.compile(r"page\s+\d+\s+of\s+\d+", re.IGNORECASE)
_PAGE_NUMBER_LINE_RE = re.compile(r"^[ \t]*(?:-[ \t]*)?\d+(?:[ \t]*-)?[ \t]*$", re.MULTILINE)
_HSPACE_RE = re.compile(r"[^\S\n]+")
_WRAPPED_LINE_RE = re.compile(r"(?<=\S)\n(?=\S)")
_EXCESS_NEWLINES_RE = re.compile(r"\n\s*\n(?:\s*\n)+")
_PDF_DATE_RE = re.compile(r"^(?:D:)?(\d{4})(\d{2})?(\d{2})?(\d{2})?(\d{2})?(\d{2})?")

_METADATA_KEYS = ("title", "author", "creator", "producer", "subject", "keywords")


class PDFLoader:
    """Extract text and document metadata from PDF bytes with PyMuPDF."""

    mime_type = "application/pdf"

    @staticmethod
    def is_valid_pdf(data: bytes) -> bool:
        return data[:4] == PDF_MAGIC

    def extract(self, data: bytes) -> ExtractedPDF:
        try:
            with fitz.open(stream=data, filetype="pdf") as doc:
                pages = [page.get_text("text", sort=True) for page in doc]
                raw_meta = dict(doc.metadata or {})
        except Exception as exc:
            raise ExtractionError(f"Failed to parse PDF: {exc}", stage="extract") from exc
        if not pages:
            raise ExtractionError("PDF contains no pages", stage="extract")
        return ExtractedPDF(
            text="\n\n".join(pages),
            page_count=len(pages),
            metadata=_extract_metadata(raw_meta),
        )

    @staticmethod
    def clean_text(text: str) -> str:
        """Normalise extracted text before hashing and chunking.

        Line endings are unified, ``Page N of M`` markers and lines holding
        only a page number are removed, runs of spaces collapse to one, lines
        wrapped inside a paragraph are joined, and blank-line runs shrink to a
        single paragraph break.
        """
        text = text.replace("\r\n", "\n").replace("\r", "\n")
        text = _PAGE_OF_RE.sub("", text)
        text = _PAGE_NUMBER_LINE_RE.sub("", text)
        text = _HSPACE_RE.sub(" ", text)
        text = "\n".join(line.strip() for line in text.split("\n"))
        text = _WRAPPED_LINE_RE.sub(" ", text)
        text = _EXCESS_NEWLINES_RE.sub("\n\n", text)
        return text.strip()


def _extract_metadata(raw: dict[str, Any]) -> dict[str, Any]:
    metadata: dict[str, Any] = {}
    for key in _METADATA_KEYS:
        value = raw.get(key)
        if isinstance(value, str) and value.strip():
            metadata[key] = value.strip()
    for source, target in (("creationDate", "creation_date"), ("modDate", "modification_date")):
        parsed = _parse_pdf_date(raw.get(source))
        if parsed is not None:
            metadata[target] = parsed
    return metadata


def _parse_pdf_date(value: Any) -> datetime | None:
    if not isinstance(value, str):
        return None
    match = _PDF_DATE_RE.match(value.strip())
    if not match:
        return None
    parts = [int(part) if part else default for part, default in zip(match.groups(), (0, 1, 1, 0, 0, 0))]
    try:
        return datetime(*parts, tzinfo=timezone.utc)
    except ValueError:
        return None


__all__ = ["PDFLoader", "PDF_MAGIC"]
