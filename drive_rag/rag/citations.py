from __future__ import annotations

"""Source descriptors attached to synthesized answers."""

from drive_rag.rag.types import SearchResult, SourceDescriptor


def build_sources(results: list[SearchResult]) -> list[SourceDescriptor]:
    """Describe each result in retrieval order."""
    return [
        SourceDescriptor(
            document_name=result.chunk.document_name,
            chunk_index=result.chunk.chunk_index,
            similarity=result.score,
            folder_path=result.chunk.folder_path,
            tags=list(result.chunk.tags),
        )
        for result in results
    ]
