from __future__ import annotations

"""Embedding-based similarity retrieval over the chunk index."""

import logging
from dataclasses import dataclass

from drive_rag.rag.embeddings import EmbeddingProvider
from drive_rag.rag.errors import ClientInputError, CollaboratorError, RetrievalError
from drive_rag.rag.types import SearchResult
from drive_rag.vectorstore.base import ChunkIndex, rank_results

logger = logging.getLogger(__name__)


@dataclass
class Retriever:
    """Return thresholded, capped, best-first chunks for a question."""
    embedder: EmbeddingProvider
    index: ChunkIndex
    threshold: float = 0.75
    max_results: int = 5
    min_query_length: int = 5
    short_query_message: str = "The question is too short. Please be more specific."

    def validate(self, query: str) -> str:
        """Trim the query and reject ones too short to be meaningful."""
        cleaned = (query or "").strip()
        if len(cleaned) < self.min_query_length:
            raise ClientInputError(self.short_query_message)
        return cleaned

    def retrieve(self, query: str) -> list[SearchResult]:
        cleaned = self.validate(query)
        try:
            vector = self.embedder.embed(cleaned)
            results = self.index.search(vector, self.threshold, self.max_results)
        except CollaboratorError as exc:
            raise RetrievalError(
                f"Similarity search failed: {exc}",
                stage="retrieval",
                context={"question": cleaned},
            ) from exc
        results = rank_results(results, self.threshold, self.max_results)
        logger.info(
            "retrieval_complete",
            extra={
                "results": len(results),
                "query_length": len(cleaned),
                "top_score": results[0].score if results else None,
            },
        )
        return results
