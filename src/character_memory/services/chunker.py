"""Overlapping text chunker.

Chunks are raw slices of the input: each chunk is at most ``chunk_size``
characters, and every chunk after the first starts exactly ``overlap``
characters before the previous one ended. Cut points prefer a sentence end,
then whitespace, inside a look-back window at the end of each chunk.
"""

import re
from collections.abc import Iterable, Iterator

from character_memory.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 800
DEFAULT_OVERLAP = 100

_SENTENCE_END = re.compile(r"[.!?][\"')\]]*(?=\s)|\n")
_WHITESPACE = re.compile(r"\s")


def _last_match_end(pattern: re.Pattern[str], text: str, lo: int, hi: int) -> int | None:
    """End index of the last match of ``pattern`` lying wholly inside text[lo:hi]."""
    best = None
    for match in pattern.finditer(text, lo, hi):
        best = match.end()
    return best


def _cut_point(text: str, start: int, end: int, overlap: int, window: int) -> int:
    # A cut at or before start + overlap would stall the next chunk's start
    lo = max(end - window, start + overlap + 1)
    if lo >= end:
        return end
    sentence = _last_match_end(_SENTENCE_END, text, lo, end)
    if sentence is not None:
        return sentence
    space = _last_match_end(_WHITESPACE, text, lo, end)
    if space is not None:
        return space
    return end


class ChunkSequence(Iterable[str]):
    """Lazy, restartable sequence of chunks over one text."""

    def __init__(self, text: str, chunk_size: int, overlap: int, lookback: int) -> None:
        self.text = text
        self.chunk_size = chunk_size
        self.overlap = overlap
        self.lookback = lookback

    def __iter__(self) -> Iterator[str]:
        text = self.text
        if not text.strip():
            return

        length = len(text)
        start = 0
        while True:
            end = min(start + self.chunk_size, length)
            if end < length:
                end = _cut_point(text, start, end, self.overlap, self.lookback)
            yield text[start:end]
            if end >= length:
                return
            start = end - self.overlap

    def __repr__(self) -> str:
        return (
            f"ChunkSequence(length={len(self.text)}, chunk_size={self.chunk_size}, "
            f"overlap={self.overlap})"
        )


def chunk_text(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_OVERLAP,
    lookback: int | None = None,
) -> ChunkSequence:
    """Split ``text`` into overlapping chunks.

    Args:
        text: Text to split
        chunk_size: Maximum characters per chunk
        overlap: Characters shared by consecutive chunks
        lookback: Size of the window searched for a natural break,
            defaults to a tenth of ``chunk_size``

    Returns:
        A restartable iterable of chunk strings; empty or whitespace-only
        text yields nothing

    Raises:
        ValueError: If the size parameters are inconsistent
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if overlap < 0:
        raise ValueError(f"overlap must not be negative, got {overlap}")
    if overlap >= chunk_size:
        raise ValueError(f"overlap ({overlap}) must be smaller than chunk_size ({chunk_size})")

    window = lookback if lookback is not None else max(chunk_size // 10, 1)
    if window < 0:
        raise ValueError(f"lookback must not be negative, got {lookback}")

    return ChunkSequence(text, chunk_size, overlap, window)


def reassemble(chunks: Iterable[str], overlap: int) -> str:
    """Rebuild the chunked text by dropping each chunk's leading overlap."""
    parts: list[str] = []
    for index, chunk in enumerate(chunks):
        parts.append(chunk if index == 0 else chunk[overlap:])
    return "".join(parts)
