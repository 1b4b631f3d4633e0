"""Tests for PDF loading and cleanup."""

from __future__ import annotations

import pytest

from ragdesk.core.errors import ExtractionError
from ragdesk.ingest.loaders import PDFLoader


def test_is_valid_pdf() -> None:
    assert PDFLoader.is_valid_pdf(b"%PDF-1.7\n...")
    assert not PDFLoader.is_valid_pdf(b"PK\x03\x04")
    assert not PDFLoader.is_valid_pdf(b"")


def test_clean_text_strips_page_markers() -> None:
    raw = "Intro line\r\nPage 1 of 3\r\n\r\n  12  \r\nBody   text here\n\n\n\n- 4 -\nEnd."
    cleaned = PDFLoader.clean_text(raw)
    assert "Page 1 of 3" not in cleaned
    assert "12" not in cleaned
    assert "- 4 -" not in cleaned
    assert "Body text here" in cleaned
    assert "\n\n\n" not in cleaned


def test_clean_text_joins_wrapped_lines() -> None:
    raw = "The first paragraph wraps\nacross two lines.\n\nSecond paragraph."
    assert PDFLoader.clean_text(raw) == "The first paragraph wraps across two lines.\n\nSecond paragraph."


def test_clean_text_whitespace_only() -> None:
    assert PDFLoader.clean_text(" \n\t\n  \r\n") == ""


def test_extract_reads_text_and_metadata(pdf_builder) -> None:
    data = pdf_builder(["Quarterly report on vector search adoption."], title="Q3 Report")
    extracted = PDFLoader().extract(data)
    assert extracted.page_count == 1
    assert extracted.title == "Q3 Report"
    assert "vector search adoption" in extracted.text


def test_extract_rejects_broken_document() -> None:
    with pytest.raises(ExtractionError) as excinfo:
        PDFLoader().extract(b"%PDF-1.4\nthis is not really a pdf")
    assert excinfo.value.stage == "extract"
