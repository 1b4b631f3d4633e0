"""Tests for chunker."""

import pytest

from ragdesk.ingest.chunker import ChunkConfig, DEFAULT_PDF_CONFIG, TextChunker, chunk_text, split_into_sentences
from ragdesk.utils.text import estimate_tokens

SENTENCES = [f"Sentence number {index} talks about retrieval." for index in range(30)]


def _shares_boundary(previous: str, following: str) -> bool:
    """True when a leading slice of ``following`` is a trailing slice of ``previous``."""
    for index, char in enumerate(following):
        if char == " " and index > 0 and previous.endswith(following[:index]):
            return True
    return False


def test_estimate_tokens_rounds_up() -> None:
    assert estimate_tokens("") == 0
    assert estimate_tokens("abc") == 1
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


def test_split_into_sentences() -> None:
    text = "First point here. Second one follows! Is there a third? yes, lowercase stays."
    assert split_into_sentences(text) == [
        "First point here.",
        "Second one follows!",
        "Is there a third? yes, lowercase stays.",
    ]


def test_chunk_scenario_small_budget() -> None:
    text = " ".join(SENTENCES)
    assert 1150 <= len(text) <= 1400
    chunks = chunk_text(text, max_tokens=100, overlap_tokens=10, min_chunk_tokens=5)
    assert len(chunks) >= 3
    assert all(chunk.token_count <= 100 for chunk in chunks)
    assert all(chunk.token_count >= 5 for chunk in chunks)
    for previous, following in zip(chunks, chunks[1:]):
        assert _shares_boundary(previous.text, following.text)


def test_chunk_coverage_keeps_every_sentence() -> None:
    paragraphs = [" ".join(SENTENCES[i : i + 5]) for i in range(0, len(SENTENCES), 5)]
    text = "\n\n".join(paragraphs)
    chunks = chunk_text(text, max_tokens=60, overlap_tokens=8, min_chunk_tokens=10)
    for sentence in SENTENCES:
        assert any(sentence in chunk.text for chunk in chunks), sentence


def test_chunk_offsets_are_ordered() -> None:
    text = "\n\n".join(" ".join(SENTENCES[i : i + 3]) for i in range(0, 30, 3))
    chunks = chunk_text(text, max_tokens=80, overlap_tokens=10, min_chunk_tokens=10)
    assert chunks
    assert all(chunk.start_char < chunk.end_char for chunk in chunks)
    starts = [chunk.start_char for chunk in chunks]
    assert starts == sorted(starts)


def test_chunk_empty_input() -> None:
    assert chunk_text("") == []
    assert chunk_text("   \n\n\t ") == []


def test_document_below_minimum_yields_no_chunks() -> None:
    assert chunk_text("Short note.", max_tokens=100, overlap_tokens=10, min_chunk_tokens=50) == []


def test_long_word_run_is_hard_split() -> None:
    text = " ".join(["token"] * 400)
    chunks = chunk_text(text, max_tokens=50, overlap_tokens=5, min_chunk_tokens=5)
    assert len(chunks) > 1
    assert all(chunk.token_count <= 50 for chunk in chunks)


def test_short_intro_before_unbroken_run_meets_minimum() -> None:
    intro = "A short introduction sentence that is about eighty characters long, more or less."
    text = intro + "\n\n" + "x" * 2000
    chunks = chunk_text(text, max_tokens=100, overlap_tokens=10, min_chunk_tokens=30)
    assert len(chunks) > 1
    assert intro in chunks[0].text
    assert all(chunk.token_count >= 30 for chunk in chunks)
    assert all(chunk.token_count <= 100 for chunk in chunks[:-1])
    assert sum(chunk.text.count("x") for chunk in chunks) >= 2000


def test_minimum_above_hard_split_window_is_respected() -> None:
    # The hard-split window here is (50 - 10 - 1) * 4 chars, i.e. 39 tokens.
    text = "Intro sentence here.\n\n" + "y" * 1500
    chunks = chunk_text(text, max_tokens=50, overlap_tokens=10, min_chunk_tokens=45)
    assert len(chunks) > 1
    assert all(chunk.token_count >= 45 for chunk in chunks)
    assert all(chunk.token_count <= 50 for chunk in chunks[:-1])
    assert "Intro sentence here." in chunks[0].text


def test_custom_sentence_splitter_is_used() -> None:
    calls: list[str] = []

    def splitter(text: str) -> list[str]:
        calls.append(text)
        return [part.strip() + ";" for part in text.split(";") if part.strip()]

    text = "; ".join(f"clause {index} without capitals" for index in range(40))
    chunks = TextChunker(ChunkConfig(max_tokens=40, overlap_tokens=0, min_chunk_tokens=5), splitter).chunk(text)
    assert calls
    assert len(chunks) > 1
    assert all(chunk.token_count <= 40 for chunk in chunks)


def test_chunk_config_validation() -> None:
    with pytest.raises(ValueError):
        ChunkConfig(max_tokens=10, overlap_tokens=10)
    with pytest.raises(ValueError):
        ChunkConfig(max_tokens=10, overlap_tokens=1, min_chunk_tokens=11)
    assert DEFAULT_PDF_CONFIG == ChunkConfig(max_tokens=400, overlap_tokens=50, min_chunk_tokens=30)
