from __future__ import annotations

"""Core data types for documents, chunks and retrieval."""

from dataclasses import dataclass, field, replace
from enum import Enum


@dataclass(frozen=True)
class DocumentInfo:
    """Attributes of a source document, re-derived on every ingestion."""
    document_id: str
    name: str
    mime_type: str
    modified_time: str | None = None
    folder_path: str | None = None
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class Chunk:
    """Indexed segment of a document with denormalized document metadata."""
    document_id: str
    chunk_index: int
    content: str
    document_name: str
    modified_time: str | None = None
    folder_path: str | None = None
    tags: tuple[str, ...] = ()
    embedding: tuple[float, ...] = field(default=(), repr=False)

    @property
    def key(self) -> str:
        """Composite key for stores that need a single primary key."""
        return chunk_key(self.document_id, self.chunk_index)

    def with_embedding(self, vector: list[float]) -> "Chunk":
        """Return a copy carrying the given embedding vector."""
        return replace(self, embedding=tuple(vector))


def chunk_key(document_id: str, chunk_index: int) -> str:
    return f"{document_id}:{chunk_index}"


@dataclass(frozen=True)
class SearchResult:
    """Chunk returned by a similarity search with its score."""
    chunk: Chunk
    score: float


@dataclass(frozen=True)
class SourceDescriptor:
    """Citation entry returned alongside a synthesized answer."""
    document_name: str
    chunk_index: int
    similarity: float
    folder_path: str | None
    tags: list[str]


@dataclass(frozen=True)
class FAQEntry:
    question: str
    answer: str


class EventKind(str, Enum):
    CHANGED = "changed"
    REMOVED = "removed"


@dataclass(frozen=True)
class ChangeEvent:
    """Resolved identity of a change notification."""
    document_id: str
    kind: EventKind
