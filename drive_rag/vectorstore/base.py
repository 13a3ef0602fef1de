from __future__ import annotations

"""Chunk index protocol and write results."""

import math
from dataclasses import dataclass, field
from typing import Protocol, Sequence

from drive_rag.rag.types import Chunk, SearchResult


@dataclass(frozen=True)
class ChunkError:
    """Failure attributed to a single chunk during ingestion."""
    chunk_index: int
    stage: str
    detail: str


@dataclass
class IndexWriteResult:
    """Outcome of replacing a document's chunk set."""
    document_id: str
    deleted: int = 0
    written: int = 0
    errors: list[ChunkError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class ChunkIndex(Protocol):
    """Protocol for stores holding embedded chunks."""

    def replace(self, document_id: str, chunks: Sequence[Chunk]) -> IndexWriteResult:
        """Make the stored chunk set of ``document_id`` equal to ``chunks``."""
        raise NotImplementedError

    def purge(self, document_id: str) -> int:
        """Delete every chunk of ``document_id``; return the number removed."""
        raise NotImplementedError

    def search(self, vector: list[float], threshold: float, limit: int) -> list[SearchResult]:
        """Return chunks scoring at least ``threshold``, best first."""
        raise NotImplementedError

    def chunks_for(self, document_id: str) -> list[Chunk]:
        raise NotImplementedError

    def stats(self) -> dict[str, int | str]:
        raise NotImplementedError

    def health(self) -> dict[str, str | bool]:
        raise NotImplementedError


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Compute cosine similarity between two vectors."""
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (norm_a * norm_b)


def rank_results(results: list[SearchResult], threshold: float, limit: int) -> list[SearchResult]:
    """Apply threshold, stable descending order and cap to search results."""
    if limit <= 0:
        return []
    kept = [result for result in results if result.score >= threshold]
    kept.sort(key=lambda item: item.score, reverse=True)
    return kept[:limit]
