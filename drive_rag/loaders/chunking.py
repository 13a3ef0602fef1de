from __future__ import annotations

"""Text normalization and word-based chunking utilities."""

import re

from drive_rag.rag.types import Chunk, DocumentInfo

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Normalize whitespace and line endings in text."""
    return _WHITESPACE_RE.sub(" ", text.replace("\r\n", "\n")).strip()


def chunk_text(text: str, chunk_size: int, overlap: int = 0) -> list[str]:
    """Split text into word-aligned chunks of at most ``chunk_size`` characters.

    Words are packed greedily while ``running_length + len(word) + 1`` stays
    within the budget. A word longer than the budget is emitted alone. With
    ``overlap`` set, every chunk after the first starts with the trailing
    words of the previous chunk whose joined length fits in ``overlap``.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be greater than zero")
    if overlap < 0 or overlap >= chunk_size:
        raise ValueError("overlap must be between 0 and chunk_size - 1")
    if not text:
        return []
    words = text.split()
    if not words:
        return []

    chunks: list[str] = []
    current: list[str] = []
    current_length = 0
    for word in words:
        if current and current_length + len(word) + 1 > chunk_size:
            chunks.append(" ".join(current))
            current = _overlap_seed(current, overlap, len(word), chunk_size)
            current_length = sum(len(item) + 1 for item in current)
        current.append(word)
        current_length += len(word) + 1
    if current:
        chunks.append(" ".join(current))
    return chunks


def _overlap_seed(
    previous: list[str], overlap: int, next_word_length: int, chunk_size: int
) -> list[str]:
    """Return trailing words of ``previous`` to carry into the next chunk."""
    if overlap <= 0:
        return []
    seed: list[str] = []
    joined_length = 0
    for word in reversed(previous):
        added = len(word) + (1 if seed else 0)
        if joined_length + added > overlap:
            break
        seed.insert(0, word)
        joined_length += added
    # Running chunk length counts one separator per word.
    while seed and sum(len(item) + 1 for item in seed) + next_word_length + 1 > chunk_size:
        seed.pop(0)
    return seed


def chunk_document(
    info: DocumentInfo,
    text: str,
    chunk_size: int,
    overlap: int = 0,
) -> list[Chunk]:
    """Chunk extracted document text into un-embedded index records."""
    pieces = [piece for piece in chunk_text(text, chunk_size, overlap) if piece.strip()]
    return [
        Chunk(
            document_id=info.document_id,
            chunk_index=idx,
            content=piece,
            document_name=info.name,
            modified_time=info.modified_time,
            folder_path=info.folder_path,
            tags=info.tags,
        )
        for idx, piece in enumerate(pieces)
    ]
