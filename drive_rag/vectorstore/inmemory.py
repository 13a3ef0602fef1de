from __future__ import annotations

"""In-memory chunk index for local runs and tests."""

from dataclasses import dataclass, field
from typing import Sequence

from drive_rag.rag.types import Chunk, SearchResult
from drive_rag.vectorstore.base import (
    ChunkError,
    IndexWriteResult,
    cosine_similarity,
    rank_results,
)


@dataclass
class InMemoryChunkIndex:
    """Chunk index keyed by (document_id, chunk_index) with cosine search."""
    dimension: int
    rows: dict[tuple[str, int], Chunk] = field(default_factory=dict)

    def replace(self, document_id: str, chunks: Sequence[Chunk]) -> IndexWriteResult:
        """Delete the document's chunks, then insert the new set."""
        result = IndexWriteResult(document_id=document_id)
        result.deleted = self.purge(document_id)
        for chunk in chunks:
            try:
                self.upsert(chunk)
            except ValueError as exc:
                result.errors.append(
                    ChunkError(chunk_index=chunk.chunk_index, stage="indexed", detail=str(exc))
                )
                continue
            result.written += 1
        return result

    def upsert(self, chunk: Chunk) -> None:
        """Store a single chunk, overwriting any row with the same key."""
        if len(chunk.embedding) != self.dimension:
            raise ValueError(
                f"Embedding dimension mismatch: expected {self.dimension}, got {len(chunk.embedding)}"
            )
        self.rows[(chunk.document_id, chunk.chunk_index)] = chunk

    def purge(self, document_id: str) -> int:
        """Delete every chunk of a document."""
        keys = [key for key in self.rows if key[0] == document_id]
        for key in keys:
            del self.rows[key]
        return len(keys)

    def search(self, vector: list[float], threshold: float, limit: int) -> list[SearchResult]:
        """Score every stored chunk against the query vector."""
        scored = [
            SearchResult(chunk=chunk, score=cosine_similarity(vector, chunk.embedding))
            for chunk in self.rows.values()
        ]
        return rank_results(scored, threshold, limit)

    def chunks_for(self, document_id: str) -> list[Chunk]:
        chunks = [chunk for key, chunk in self.rows.items() if key[0] == document_id]
        return sorted(chunks, key=lambda chunk: chunk.chunk_index)

    def stats(self) -> dict[str, int | str]:
        """Return basic stats for the index."""
        return {
            "backend": "memory",
            "chunk_count": len(self.rows),
            "document_count": len({key[0] for key in self.rows}),
            "embedding_dimension": self.dimension,
        }

    def health(self) -> dict[str, str | bool]:
        return {"backend": "memory", "ok": True}
