from __future__ import annotations

"""Ingestion pipeline: change notification to an up-to-date chunk set."""

import logging
from dataclasses import dataclass, field
from enum import Enum

from drive_rag.ingestion.identity import ChangeNotification, CompositeIdentityResolver
from drive_rag.loaders.chunking import chunk_document
from drive_rag.loaders.drive import ContentSource
from drive_rag.loaders.extractors import ContentExtractor, load_document_info
from drive_rag.rag.embeddings import EmbeddingProvider
from drive_rag.rag.errors import CollaboratorError
from drive_rag.rag.types import Chunk, EventKind
from drive_rag.vectorstore.base import ChunkError, ChunkIndex

logger = logging.getLogger(__name__)


class IngestionStage(str, Enum):
    RECEIVED = "received"
    IDENTITY_RESOLVED = "identity_resolved"
    REMOVAL_HANDLED = "removal_handled"
    CONTENT_EXTRACTED = "content_extracted"
    CHUNKED = "chunked"
    EMBEDDED = "embedded"
    INDEXED = "indexed"
    FAILED = "failed"


@dataclass
class IngestionReport:
    """Terminal state of one ingestion run."""
    document_id: str
    kind: EventKind
    stage: IngestionStage = IngestionStage.IDENTITY_RESOLVED
    failed_stage: IngestionStage | None = None
    content_available: bool | None = None
    chunk_count: int = 0
    indexed_count: int = 0
    removed_count: int = 0
    errors: list[ChunkError] = field(default_factory=list)
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.stage != IngestionStage.FAILED and not self.errors

    @property
    def status(self) -> str:
        if self.stage == IngestionStage.FAILED:
            return "failed"
        if self.stage == IngestionStage.REMOVAL_HANDLED:
            return "removed"
        if self.errors:
            return "degraded"
        return "indexed"


class _StageFailure(Exception):
    def __init__(self, stage: IngestionStage, error: CollaboratorError) -> None:
        super().__init__(str(error))
        self.stage = stage
        self.error = error


@dataclass
class IngestionPipeline:
    """Resolve, extract, chunk, embed and index a changed document."""
    source: ContentSource
    embedder: EmbeddingProvider
    index: ChunkIndex
    resolver: CompositeIdentityResolver = field(default_factory=CompositeIdentityResolver)
    extractor: ContentExtractor | None = None
    chunk_size: int = 1000
    chunk_overlap: int = 0

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be greater than zero")
        if not 0 <= self.chunk_overlap < self.chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")
        if self.extractor is None:
            self.extractor = ContentExtractor(source=self.source)

    def handle(self, notification: ChangeNotification) -> IngestionReport:
        """Run the pipeline for one notification.

        Raises ClientInputError when the notification names no document;
        collaborator failures are reported through the returned report.
        """
        event = self.resolver.resolve(notification)
        report = IngestionReport(document_id=event.document_id, kind=event.kind)
        logger.info(
            "ingestion_started",
            extra={"document_id": event.document_id, "kind": event.kind.value},
        )
        try:
            if event.kind == EventKind.REMOVED:
                self._remove(report)
            else:
                self._index(report)
        except _StageFailure as failure:
            report.stage = IngestionStage.FAILED
            report.failed_stage = failure.stage
            report.detail = str(failure.error)
            logger.error(
                "ingestion_failed",
                extra={
                    "document_id": report.document_id,
                    "stage": failure.stage.value,
                    "detail": report.detail,
                },
            )
            return report
        logger.info(
            "ingestion_completed",
            extra={
                "document_id": report.document_id,
                "status": report.status,
                "chunks": report.chunk_count,
                "indexed": report.indexed_count,
                "errors": len(report.errors),
            },
        )
        return report

    def _remove(self, report: IngestionReport) -> None:
        try:
            report.removed_count = self.index.purge(report.document_id)
        except CollaboratorError as exc:
            raise _StageFailure(IngestionStage.REMOVAL_HANDLED, exc) from exc
        report.stage = IngestionStage.REMOVAL_HANDLED

    def _index(self, report: IngestionReport) -> None:
        document_id = report.document_id
        try:
            info = load_document_info(self.source, document_id)
            extraction = self.extractor.extract(info)
        except CollaboratorError as exc:
            raise _StageFailure(IngestionStage.CONTENT_EXTRACTED, exc) from exc
        report.content_available = extraction.available
        report.stage = IngestionStage.CONTENT_EXTRACTED
        if not extraction.text.strip():
            logger.info(
                "ingestion_empty_content",
                extra={"document_id": document_id, "strategy": extraction.strategy},
            )

        chunks = chunk_document(info, extraction.text, self.chunk_size, self.chunk_overlap)
        report.chunk_count = len(chunks)
        report.stage = IngestionStage.CHUNKED

        embedded = self._embed(chunks, report)
        if chunks and not embedded:
            first = report.errors[0]
            raise _StageFailure(
                IngestionStage.EMBEDDED,
                CollaboratorError(first.detail, stage=first.stage, context={"document_id": document_id}),
            )
        report.stage = IngestionStage.EMBEDDED

        try:
            result = self.index.replace(document_id, embedded)
        except CollaboratorError as exc:
            raise _StageFailure(IngestionStage.INDEXED, exc) from exc
        report.indexed_count = result.written
        report.errors.extend(result.errors)
        report.stage = IngestionStage.INDEXED

    def _embed(self, chunks: list[Chunk], report: IngestionReport) -> list[Chunk]:
        """Embed each chunk, collecting failures instead of stopping."""
        embedded: list[Chunk] = []
        for chunk in chunks:
            try:
                vector = self.embedder.embed(chunk.content)
            except CollaboratorError as exc:
                logger.warning(
                    "chunk_embedding_failed",
                    extra={
                        "document_id": chunk.document_id,
                        "chunk_index": chunk.chunk_index,
                        "detail": str(exc),
                    },
                )
                report.errors.append(
                    ChunkError(chunk_index=chunk.chunk_index, stage="embedded", detail=str(exc))
                )
                continue
            embedded.append(chunk.with_embedding(vector))
        return embedded
