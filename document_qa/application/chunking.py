from __future__ import annotations

from typing import List, Optional, Tuple

from ..domain.errors import ContractError, ErrorKind
from ..domain.models import Chunk

SENTENCE_TERMINALS = ".!?"
BOUNDARY_SEARCH_RADIUS = 100
DEFAULT_MIN_CHUNK_SIZE = 100
DEFAULT_MAX_CHUNK_SIZE = 10000


def _is_boundary(text: str, i: int) -> bool:
    """True when ``text[i]`` ends a sentence: a terminal followed by whitespace or end of text."""
    return text[i] in SENTENCE_TERMINALS and (i + 1 == len(text) or text[i + 1].isspace())


def find_sentence_boundary(text: str, edge: int, lower: int, radius: int = BOUNDARY_SEARCH_RADIUS) -> Optional[int]:
    """Return the cut index nearest to ``edge`` that falls right after a sentence terminal.

    Candidates are searched outward from ``edge`` up to ``radius`` characters on
    either side; cuts at or below ``lower`` are ignored. Ties prefer the
    earlier cut so chunks stay within the requested size.
    """
    n = len(text)
    for distance in range(radius + 1):
        for cut in (edge - distance, edge + distance):
            if cut <= lower or cut > n:
                continue
            if _is_boundary(text, cut - 1):
                return cut
    return None


def _validate(text: str, chunk_size: int, chunk_overlap: int, min_size: int, max_size: int) -> None:
    if not text or not text.strip():
        raise ContractError("Document content is empty", code=ErrorKind.EMPTY_DOCUMENT)
    if chunk_overlap < 0 or chunk_overlap >= chunk_size:
        raise ContractError(
            f"chunk_overlap must be in [0, chunk_size); got overlap={chunk_overlap}, size={chunk_size}",
            code=ErrorKind.INVALID_CHUNK_OVERLAP,
            details={"chunk_size": chunk_size, "chunk_overlap": chunk_overlap},
        )
    if not (min_size <= chunk_size <= max_size):
        raise ContractError(
            f"chunk_size must be within [{min_size}, {max_size}]; got {chunk_size}",
            code=ErrorKind.INVALID_CHUNK_SIZE,
            details={"chunk_size": chunk_size, "min": min_size, "max": max_size},
        )


def _spans(text: str, chunk_size: int, chunk_overlap: int) -> List[Tuple[int, int]]:
    n = len(text)
    spans: List[Tuple[int, int]] = []
    start = 0
    while start < n:
        end = min(start + chunk_size, n)
        if end < n:
            cut = find_sentence_boundary(text, end, lower=start + chunk_overlap)
            if cut is not None:
                end = cut
        if text[start:end].strip():
            spans.append((start, end))
        elif spans:
            # Whitespace-only tail: let the previous chunk cover it.
            spans[-1] = (spans[-1][0], end)
        if end >= n:
            break
        next_start = end - chunk_overlap
        if next_start <= start:
            next_start = end
        start = next_start
    return spans


def chunk_text(
    text: str,
    chunk_size: int,
    chunk_overlap: int,
    document_id: str = "",
    min_size: int = DEFAULT_MIN_CHUNK_SIZE,
    max_size: int = DEFAULT_MAX_CHUNK_SIZE,
) -> List[Chunk]:
    """Split ``text`` into overlapping, sentence-aware chunks.

    Args:
        text: Full document text; offsets refer to it unmodified.
        chunk_size: Window width in characters; a sentence-boundary cut may
            move the window edge by up to 100 characters.
        chunk_overlap: Characters shared by consecutive chunks.
        document_id: Owner recorded on every chunk.
        min_size / max_size: Accepted range for ``chunk_size``.

    Returns:
        List[Chunk]: Ordered chunks; start offsets strictly increase, the last
            end offset equals ``len(text)`` and every chunk reports the same
            ``total_chunks``.

    Raises:
        ContractError: ``EMPTY_DOCUMENT``, ``INVALID_CHUNK_OVERLAP`` or
            ``INVALID_CHUNK_SIZE``, checked in that order.
    """
    _validate(text, chunk_size, chunk_overlap, min_size, max_size)
    if len(text) <= chunk_size:
        spans = [(0, len(text))]
    else:
        spans = _spans(text, chunk_size, chunk_overlap)
    total = len(spans)
    return [
        Chunk(
            document_id=document_id,
            index=i,
            start_offset=start,
            end_offset=end,
            content=text[start:end].strip(),
            total_chunks=total,
        )
        for i, (start, end) in enumerate(spans)
    ]


class TextChunker:
    """Chunker bound to configured defaults and size limits."""

    def __init__(
        self,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        min_size: int = DEFAULT_MIN_CHUNK_SIZE,
        max_size: int = DEFAULT_MAX_CHUNK_SIZE,
    ) -> None:
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.min_size = min_size
        self.max_size = max_size

    def chunk(
        self,
        text: str,
        document_id: str = "",
        chunk_size: Optional[int] = None,
        chunk_overlap: Optional[int] = None,
    ) -> List[Chunk]:
        return chunk_text(
            text,
            self.chunk_size if chunk_size is None else int(chunk_size),
            self.chunk_overlap if chunk_overlap is None else int(chunk_overlap),
            document_id=document_id,
            min_size=self.min_size,
            max_size=self.max_size,
        )
