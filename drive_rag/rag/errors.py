from __future__ import annotations

"""Error taxonomy shared by the ingestion and query pipelines."""

from typing import Any


class ClientInputError(ValueError):
    """Raised when a request cannot be processed as submitted."""
    pass


class CollaboratorError(RuntimeError):
    """Raised when an external collaborator call fails."""

    def __init__(
        self,
        message: str,
        *,
        stage: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.stage = stage
        self.context = dict(context or {})


class RetrievalError(CollaboratorError):
    """Raised when the similarity search fails."""
    pass


class IndexStoreError(CollaboratorError):
    """Raised when the chunk index cannot be read or written."""
    pass


class ExtractionError(CollaboratorError):
    """Raised when document content cannot be fetched or exported."""
    pass
