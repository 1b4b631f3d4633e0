"""Test fixtures for ragdesk."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable

import fitz
import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

TEST_DIM = 64

PDFBuilder = Callable[..., bytes]


@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset global singletons and environment between tests."""
    monkeypatch.setenv("RAGDESK_DB_PATH", str(tmp_path / "ragdesk.db"))
    monkeypatch.setenv("RAGDESK_STORAGE_DIR", str(tmp_path / "objects"))
    monkeypatch.setenv("RAGDESK_EMBEDDING_DIM", str(TEST_DIM))
    monkeypatch.delenv("RAGDESK_CONFIG", raising=False)
    monkeypatch.delenv("RAGDESK_EMBEDDING_BACKEND", raising=False)

    from ragdesk.api import dependencies as deps

    deps.reset_singletons()
    yield
    deps.reset_singletons()


def _paragraphs(count: int, topic: str) -> list[str]:
    return [
        f"Section {index} explains how {topic} works in practice. "
        f"Each paragraph repeats the {topic} vocabulary so that retrieval has something to match. "
        f"Operators read section {index} when they need details about {topic}."
        for index in range(count)
    ]


def _wrap(text: str, width: int = 90) -> list[str]:
    lines: list[str] = []
    current = ""
    for word in text.split():
        candidate = f"{current} {word}".strip()
        if len(candidate) > width:
            lines.append(current)
            current = word
        else:
            current = candidate
    if current:
        lines.append(current)
    return lines


def build_pdf(paragraphs: list[str], title: str | None = None, lines_per_page: int = 50) -> bytes:
    """Render paragraphs into a PDF with PyMuPDF, one wrapped line at a time."""
    lines: list[str] = []
    for paragraph in paragraphs:
        lines.extend(_wrap(paragraph))
        lines.append("")
    doc = fitz.open()
    try:
        for start in range(0, max(len(lines), 1), lines_per_page):
            page = doc.new_page()
            for offset, line in enumerate(lines[start : start + lines_per_page]):
                if line:
                    page.insert_text((50, 60 + offset * 14), line, fontsize=9)
        if title:
            doc.set_metadata({"title": title})
        return doc.tobytes()
    finally:
        doc.close()


@pytest.fixture
def pdf_builder() -> PDFBuilder:
    return build_pdf


@pytest.fixture
def sample_pdf() -> bytes:
    return build_pdf(_paragraphs(12, "vector retrieval"), title="Retrieval Handbook")


@pytest.fixture
def blank_pdf() -> bytes:
    doc = fitz.open()
    try:
        doc.new_page()
        return doc.tobytes()
    finally:
        doc.close()
