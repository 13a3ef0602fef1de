from __future__ import annotations

"""Persistent log of ingestion runs."""

import json
import uuid
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any

from drive_rag.ingestion.pipeline import IngestionReport


class IngestionLogError(RuntimeError):
    """Raised when the ingestion log cannot be written."""
    pass


class IngestionLog:
    """Store one row per ingestion run in a SQL database."""
    def __init__(self, connection_uri: str) -> None:
        """Initialize the log and ensure tables exist."""
        try:
            from sqlalchemy import (
                Column,
                DateTime,
                Integer,
                MetaData,
                String,
                Table,
                Text,
                create_engine,
            )
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise IngestionLogError("sqlalchemy is required to use the ingestion log") from exc

        self._engine = create_engine(connection_uri)
        self._metadata = MetaData()
        self._table = Table(
            "ingestion_events",
            self._metadata,
            Column("id", String(36), primary_key=True),
            Column("request_id", String(64), nullable=True),
            Column("document_id", String(256), nullable=True),
            Column("kind", String(16), nullable=True),
            Column("status", String(32), nullable=False),
            Column("failed_stage", String(32), nullable=True),
            Column("chunk_count", Integer, nullable=True),
            Column("indexed_count", Integer, nullable=True),
            Column("error", Text, nullable=True),
            Column("chunk_errors", Text, nullable=True),
            Column("created_at", DateTime(timezone=True), nullable=False),
            Column("completed_at", DateTime(timezone=True), nullable=True),
        )
        self._metadata.create_all(self._engine)

    def record_start(self, request_id: str | None) -> str:
        """Create a record for a received notification and return its ID."""
        record_id = str(uuid.uuid4())
        with self._engine.begin() as conn:
            conn.execute(
                self._table.insert().values(
                    id=record_id,
                    request_id=request_id,
                    status="received",
                    created_at=datetime.now(timezone.utc),
                )
            )
        return record_id

    def record_report(self, record_id: str, report: IngestionReport) -> None:
        """Store the terminal state of an ingestion run."""
        values: dict[str, Any] = {
            "document_id": report.document_id,
            "kind": report.kind.value,
            "status": report.status,
            "failed_stage": report.failed_stage.value if report.failed_stage else None,
            "chunk_count": report.chunk_count,
            "indexed_count": report.indexed_count,
            "error": report.detail,
            "chunk_errors": None,
            "completed_at": datetime.now(timezone.utc),
        }
        if report.errors:
            values["chunk_errors"] = json.dumps(
                [asdict(error) for error in report.errors], ensure_ascii=True
            )
        self._update(record_id, values)

    def record_rejected(self, record_id: str, error: str) -> None:
        """Mark a notification that named no document."""
        self._update(
            record_id,
            {"status": "rejected", "error": error, "completed_at": datetime.now(timezone.utc)},
        )

    def record_failure(self, record_id: str, error: str) -> None:
        """Mark a run that aborted before producing a report."""
        self._update(
            record_id,
            {"status": "failed", "error": error, "completed_at": datetime.now(timezone.utc)},
        )

    def _update(self, record_id: str, values: dict[str, Any]) -> None:
        with self._engine.begin() as conn:
            conn.execute(self._table.update().where(self._table.c.id == record_id).values(**values))
