from __future__ import annotations

import pytest

from drive_rag.ingestion.identity import ChangeNotification
from drive_rag.ingestion.pipeline import IngestionPipeline, IngestionStage
from drive_rag.loaders.drive import FileMetadata
from drive_rag.rag.errors import ClientInputError
from drive_rag.rag.types import EventKind
from drive_rag.tests.helpers import CountingEmbedder, seeded_source, text_file
from drive_rag.vectorstore.inmemory import InMemoryChunkIndex


def notification(document_id: str, state: str | None = None) -> ChangeNotification:
    body = {"fileId": document_id}
    if state:
        body["state"] = state
    return ChangeNotification.from_http({}, body)


def build(chunk_size: int = 30, embedder: CountingEmbedder | None = None):
    source = seeded_source()
    embedder = embedder or CountingEmbedder()
    index = InMemoryChunkIndex(dimension=embedder.dimension)
    pipeline = IngestionPipeline(
        source=source, embedder=embedder, index=index, chunk_size=chunk_size
    )
    return pipeline, source, index, embedder


def test_changed_document_is_indexed_with_metadata() -> None:
    pipeline, _, index, _ = build()
    report = pipeline.handle(notification("doc-1"))
    assert report.status == "indexed"
    assert report.stage == IngestionStage.INDEXED
    assert report.content_available is True
    assert report.chunk_count == report.indexed_count > 1
    chunks = index.chunks_for("doc-1")
    assert [chunk.chunk_index for chunk in chunks] == list(range(report.chunk_count))
    assert chunks[0].folder_path == "/Albums"
    assert chunks[0].tags == ("tour", "2024")
    assert chunks[0].document_name == "tour.txt"
    assert all(len(chunk.content) <= 30 for chunk in chunks)


def test_reingestion_is_idempotent() -> None:
    pipeline, _, index, _ = build()
    pipeline.handle(notification("doc-1"))
    first = [(chunk.chunk_index, chunk.content) for chunk in index.chunks_for("doc-1")]
    pipeline.handle(notification("doc-1"))
    second = [(chunk.chunk_index, chunk.content) for chunk in index.chunks_for("doc-1")]
    assert first == second


def test_shrinking_document_leaves_no_stale_chunks() -> None:
    pipeline, source, index, _ = build()
    pipeline.handle(notification("doc-1"))
    assert len(index.chunks_for("doc-1")) > 1
    source.put("doc-1", text_file("tour.txt"), content=b"Cancelled.")
    report = pipeline.handle(notification("doc-1"))
    assert report.chunk_count == 1
    assert [chunk.content for chunk in index.chunks_for("doc-1")] == ["Cancelled."]


def test_removal_purges_without_fetching_content() -> None:
    pipeline, source, index, embedder = build()
    pipeline.handle(notification("doc-1"))
    source.files.clear()
    embedder.calls.clear()
    report = pipeline.handle(notification("doc-1", state="trashed"))
    assert report.kind == EventKind.REMOVED
    assert report.status == "removed"
    assert report.removed_count > 0
    assert index.chunks_for("doc-1") == []
    assert embedder.calls == []


def test_empty_document_purges_and_never_embeds_blank_text() -> None:
    pipeline, source, index, embedder = build()
    pipeline.handle(notification("doc-1"))
    source.put("doc-1", text_file("tour.txt"), content=b"   \n  ")
    embedder.calls.clear()
    report = pipeline.handle(notification("doc-1"))
    assert report.status == "indexed"
    assert report.chunk_count == 0
    assert index.chunks_for("doc-1") == []
    assert embedder.calls == []


def test_unsupported_format_clears_previous_chunks() -> None:
    pipeline, source, index, _ = build()
    pipeline.handle(notification("doc-1"))
    source.put("doc-1", FileMetadata(name="tour.mp3", mime_type="audio/mpeg"), content=b"ID3")
    report = pipeline.handle(notification("doc-1"))
    assert report.content_available is False
    assert index.chunks_for("doc-1") == []


def test_partial_embedding_failure_is_degraded() -> None:
    embedder = CountingEmbedder(fail_on={"Milan"})
    pipeline, _, index, _ = build(embedder=embedder)
    report = pipeline.handle(notification("doc-1"))
    assert report.status == "degraded"
    assert len(report.errors) == 1
    assert report.errors[0].stage == "embedded"
    assert report.indexed_count == report.chunk_count - 1
    indices = {chunk.chunk_index for chunk in index.chunks_for("doc-1")}
    assert report.errors[0].chunk_index not in indices


def test_total_embedding_failure_keeps_existing_chunks() -> None:
    pipeline, _, index, embedder = build()
    pipeline.handle(notification("doc-1"))
    before = len(index.chunks_for("doc-1"))
    embedder.fail_on.add("")
    report = pipeline.handle(notification("doc-1"))
    assert report.status == "failed"
    assert report.failed_stage == IngestionStage.EMBEDDED
    assert len(index.chunks_for("doc-1")) == before


def test_missing_document_fails_at_extraction() -> None:
    pipeline, _, _, _ = build()
    report = pipeline.handle(notification("ghost"))
    assert report.status == "failed"
    assert report.failed_stage == IngestionStage.CONTENT_EXTRACTED
    assert report.detail


def test_unidentified_notification_raises_client_error() -> None:
    pipeline, _, _, embedder = build()
    with pytest.raises(ClientInputError):
        pipeline.handle(ChangeNotification.from_http({}, {}))
    assert embedder.calls == []


def test_invalid_chunk_settings_rejected() -> None:
    with pytest.raises(ValueError):
        build(chunk_size=0)
