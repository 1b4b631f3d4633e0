"""Chunking utilities.

Text is cut into paragraph units on blank lines; paragraphs close to the
token budget are regrouped by sentence. Units are accumulated into chunks of
at most ``max_tokens`` estimated tokens, and each chunk after a split starts
with a short suffix of its predecessor so context survives the boundary.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterator

from ragdesk.ingest.types import TextChunk
from ragdesk.utils.text import estimate_tokens

_SEGMENT_RE = re.compile(r"\n\s*\n", re.MULTILINE)
_SENTENCE_BOUNDARY_RE = re.compile(r"(?<=[.!?])\s+(?=[A-Z])")
_OVERLAP_BOUNDARY_RE = re.compile(r"(?<=[.!?])\s+|\n\s*\n")
_WORD_BOUNDARY_RE = re.compile(r"\s+")

PARAGRAPH_JOINER = "\n\n"
SENTENCE_JOINER = " "

# Paragraphs above this share of max_tokens are regrouped by sentence.
PARAGRAPH_SPLIT_RATIO = 0.8
SENTENCE_GROUP_RATIO = 0.6

SentenceSplitter = Callable[[str], list[str]]


@dataclass(frozen=True, slots=True)
class ChunkConfig:
    max_tokens: int = 500
    overlap_tokens: int = 50
    min_chunk_tokens: int = 50

    def __post_init__(self) -> None:
        if self.max_tokens < 1:
            raise ValueError("max_tokens must be positive")
        if self.overlap_tokens < 0 or self.min_chunk_tokens < 0:
            raise ValueError("overlap_tokens and min_chunk_tokens must not be negative")
        if self.overlap_tokens >= self.max_tokens:
            raise ValueError("overlap_tokens must be smaller than max_tokens")
        if self.min_chunk_tokens > self.max_tokens:
            raise ValueError("min_chunk_tokens must not exceed max_tokens")


DEFAULT_PDF_CONFIG = ChunkConfig(max_tokens=400, overlap_tokens=50, min_chunk_tokens=30)


@dataclass(slots=True)
class Segment:
    text: str
    start: int
    end: int
    joiner: str = PARAGRAPH_JOINER


@dataclass(slots=True)
class _Buffer:
    text: str
    start: int
    end: int
    prefix_len: int = 0

    @classmethod
    def of(cls, segment: Segment) -> "_Buffer":
        return cls(text=segment.text, start=segment.start, end=segment.end)

    @property
    def tokens(self) -> int:
        return estimate_tokens(self.text)

    def fits(self, segment: Segment, max_tokens: int) -> bool:
        return estimate_tokens(f"{self.text}{segment.joiner}{segment.text}") <= max_tokens

    def append(self, segment: Segment) -> None:
        self.text = f"{self.text}{segment.joiner}{segment.text}"
        self.end = max(self.end, segment.end)


def split_into_sentences(text: str) -> list[str]:
    """Best-effort sentence split: terminal punctuation, whitespace, capital."""
    return [part.strip() for part in _SENTENCE_BOUNDARY_RE.split(text) if part.strip()]


def chunk_text(
    text: str,
    max_tokens: int = 500,
    overlap_tokens: int = 50,
    min_chunk_tokens: int = 50,
    sentence_splitter: SentenceSplitter = split_into_sentences,
) -> list[TextChunk]:
    """Split text into ordered, overlapping chunks respecting token budgets."""
    config = ChunkConfig(
        max_tokens=max_tokens,
        overlap_tokens=overlap_tokens,
        min_chunk_tokens=min_chunk_tokens,
    )
    return TextChunker(config, sentence_splitter).chunk(text)


class TextChunker:
    """Boundary-aware chunker; the sentence splitter is swappable."""

    def __init__(
        self,
        config: ChunkConfig | None = None,
        sentence_splitter: SentenceSplitter = split_into_sentences,
    ) -> None:
        self.config = config or ChunkConfig()
        self.split_sentences = sentence_splitter

    def chunk(self, text: str) -> list[TextChunk]:
        if not text.strip():
            return []

        max_tokens = self.config.max_tokens
        min_tokens = self.config.min_chunk_tokens
        chunks: list[TextChunk] = []
        buffer: _Buffer | None = None

        for unit in self._units(text):
            unit_tokens = estimate_tokens(unit.text)
            if buffer is None:
                if unit_tokens <= max_tokens:
                    buffer = _Buffer.of(unit)
                else:
                    buffer = self._accumulate_sentences(unit, None, chunks)
                    buffer = self._flush_if_ready(buffer, chunks)
                continue

            if buffer.fits(unit, max_tokens):
                buffer.append(unit)
                continue

            if unit_tokens <= max_tokens and buffer.tokens >= min_tokens:
                self._emit(buffer, chunks)
                buffer = self._seed(buffer, unit)
                continue

            oversized = unit_tokens > max_tokens
            if oversized and buffer.tokens >= min_tokens:
                self._emit(buffer, chunks)
                buffer = None
            # Undersized buffers are carried into the sentence pass so their
            # text is not lost.
            buffer = self._accumulate_sentences(unit, buffer, chunks)
            if oversized:
                buffer = self._flush_if_ready(buffer, chunks)

        if buffer is not None:
            self._finish(buffer, chunks)
        return chunks

    # Internal helpers -------------------------------------------------

    def _units(self, text: str) -> Iterator[Segment]:
        threshold = self.config.max_tokens * PARAGRAPH_SPLIT_RATIO
        for paragraph in _iter_segments(text):
            if estimate_tokens(paragraph.text) > threshold:
                yield from self._sentence_groups(paragraph)
            else:
                yield paragraph

    def _sentence_groups(self, paragraph: Segment) -> Iterator[Segment]:
        limit = self.config.max_tokens * SENTENCE_GROUP_RATIO
        current: Segment | None = None
        for sentence in self._locate_sentences(paragraph):
            if current is None:
                current = sentence
                continue
            joined = f"{current.text}{SENTENCE_JOINER}{sentence.text}"
            if estimate_tokens(joined) > limit:
                yield current
                current = sentence
            else:
                current = Segment(joined, current.start, sentence.end, SENTENCE_JOINER)
        if current is not None:
            yield current

    def _locate_sentences(self, segment: Segment) -> Iterator[Segment]:
        cursor = 0
        for sentence in self.split_sentences(segment.text):
            found = segment.text.find(sentence, cursor)
            offset = found if found >= 0 else cursor
            cursor = offset + len(sentence) if found >= 0 else cursor
            start = segment.start + offset
            yield Segment(sentence, start, start + len(sentence), SENTENCE_JOINER)

    def _sentence_pieces(self, segment: Segment) -> Iterator[Segment]:
        # Room is left for an overlap prefix in front of every hard-split piece.
        window = max(1, self.config.max_tokens - self.config.overlap_tokens - 1) * 4
        for sentence in self._locate_sentences(segment):
            if estimate_tokens(sentence.text) <= self.config.max_tokens:
                yield sentence
            else:
                yield from _split_segment(sentence, window)

    def _accumulate_sentences(
        self,
        unit: Segment,
        buffer: _Buffer | None,
        chunks: list[TextChunk],
    ) -> _Buffer | None:
        max_tokens = self.config.max_tokens
        for piece in self._sentence_pieces(unit):
            if buffer is None:
                buffer = _Buffer.of(piece)
                continue
            if buffer.fits(piece, max_tokens):
                buffer.append(piece)
                continue
            if buffer.tokens < self.config.min_chunk_tokens:
                rest = _fill(buffer, piece, max_tokens, self.config.min_chunk_tokens)
                if rest is None:
                    continue
                piece = rest
            self._emit(buffer, chunks)
            buffer = self._seed(buffer, piece)
        return buffer

    def _seed(self, previous: _Buffer, unit: Segment) -> _Buffer:
        budget = min(
            self.config.overlap_tokens,
            self.config.max_tokens - estimate_tokens(unit.text) - 1,
        )
        prefix = _overlap_suffix(previous.text, budget) if budget > 0 else ""
        if not prefix:
            return _Buffer.of(unit)
        start = max(0, previous.end - len(prefix))
        return _Buffer(
            text=f"{prefix}{unit.joiner}{unit.text}",
            start=min(start, unit.start),
            end=unit.end,
            prefix_len=len(prefix) + len(unit.joiner),
        )

    def _flush_if_ready(self, buffer: _Buffer | None, chunks: list[TextChunk]) -> _Buffer | None:
        if buffer is not None and buffer.tokens >= self.config.min_chunk_tokens:
            self._emit(buffer, chunks)
            return None
        return buffer

    def _finish(self, buffer: _Buffer, chunks: list[TextChunk]) -> None:
        if buffer.tokens >= self.config.min_chunk_tokens:
            self._emit(buffer, chunks)
            return
        fresh = buffer.text[buffer.prefix_len :].strip()
        if not chunks or not fresh:
            return
        # A short tail is folded into the final chunk instead of being dropped.
        last = chunks[-1]
        merged = f"{last.text}{SENTENCE_JOINER}{fresh}"
        chunks[-1] = TextChunk(
            text=merged,
            token_count=estimate_tokens(merged),
            start_char=last.start_char,
            end_char=max(last.end_char, buffer.end),
        )

    @staticmethod
    def _emit(buffer: _Buffer, chunks: list[TextChunk]) -> None:
        text = buffer.text.strip()
        if not text:
            return
        chunks.append(
            TextChunk(
                text=text,
                token_count=estimate_tokens(text),
                start_char=buffer.start,
                end_char=max(buffer.end, buffer.start + 1),
            )
        )


def _iter_segments(text: str) -> Iterator[Segment]:
    last_index = 0
    for match in _SEGMENT_RE.finditer(text):
        segment = _trim_segment(text, last_index, match.start())
        if segment:
            yield segment
        last_index = match.end()
    if last_index < len(text):
        segment = _trim_segment(text, last_index, len(text))
        if segment:
            yield segment


def _trim_segment(text: str, start: int, end: int) -> Segment | None:
    seg_start = start
    seg_end = end
    while seg_start < seg_end and text[seg_start].isspace():
        seg_start += 1
    while seg_end > seg_start and text[seg_end - 1].isspace():
        seg_end -= 1
    if seg_start >= seg_end:
        return None
    return Segment(text=text[seg_start:seg_end], start=seg_start, end=seg_end)


def _split_segment(segment: Segment, window: int) -> list[Segment]:
    """Hard-split text without usable sentence boundaries at word breaks."""
    pieces: list[Segment] = []
    text = segment.text
    cursor = 0
    while cursor < len(text):
        stop = min(len(text), cursor + window)
        if stop < len(text):
            space = text.rfind(" ", cursor + 1, stop)
            if space > cursor:
                stop = space
        piece = text[cursor:stop].strip()
        if piece:
            start = segment.start + cursor
            pieces.append(Segment(piece, start, segment.start + stop, SENTENCE_JOINER))
        cursor = stop
    return pieces


def _fill(buffer: _Buffer, piece: Segment, max_tokens: int, min_tokens: int) -> Segment | None:
    """Move the front of ``piece`` into an undersized ``buffer``; return the rest.

    Whole words go first. If the buffer is still below ``min_tokens`` because
    the next word is an unbroken run (a URL, base64, a digit table), that run
    is cut mid-word so the buffer reaches ``max_tokens``.
    """
    head, rest = _take_words(buffer, piece, max_tokens)
    if head is not None:
        buffer.append(head)
    if rest is None or buffer.tokens >= min_tokens:
        return rest
    room = max_tokens * 4 - len(buffer.text) - len(rest.joiner)
    if room <= 0:
        return rest
    buffer.append(Segment(rest.text[:room], rest.start, rest.start + room, rest.joiner))
    remainder = rest.text[room:].lstrip()
    if not remainder:
        return None
    offset = len(rest.text) - len(remainder)
    return Segment(remainder, rest.start + offset, rest.end, rest.joiner)


def _take_words(buffer: _Buffer, piece: Segment, max_tokens: int) -> tuple[Segment | None, Segment | None]:
    """Split ``piece`` so its leading words top up ``buffer`` to the budget."""
    cut = None
    for match in _WORD_BOUNDARY_RE.finditer(piece.text):
        head = piece.text[: match.start()]
        if estimate_tokens(f"{buffer.text}{piece.joiner}{head}") > max_tokens:
            break
        cut = match
    if cut is None:
        return None, piece
    head = Segment(piece.text[: cut.start()], piece.start, piece.start + cut.start(), piece.joiner)
    rest = piece.text[cut.end() :]
    if not rest.strip():
        return head, None
    tail = Segment(rest, piece.start + cut.end(), piece.end, piece.joiner)
    return head, tail


def _overlap_suffix(text: str, budget: int) -> str:
    """Longest trailing run of whole sentences (or words) within ``budget``."""
    text = text.strip()
    for boundaries in (_OVERLAP_BOUNDARY_RE, _WORD_BOUNDARY_RE):
        for match in boundaries.finditer(text):
            suffix = text[match.end() :]
            if suffix and estimate_tokens(suffix) <= budget:
                return suffix
    return ""


__all__ = [
    "ChunkConfig",
    "DEFAULT_PDF_CONFIG",
    "TextChunker",
    "chunk_text",
    "split_into_sentences",
]
