from __future__ import annotations

from dataclasses import dataclass, field
from types import SimpleNamespace

import pytest

from drive_rag.ingestion.identity import ChangeNotification
from drive_rag.ingestion.pipeline import IngestionPipeline, IngestionStage
from drive_rag.rag.errors import IndexStoreError
from drive_rag.rag.types import Chunk
from drive_rag.tests.helpers import CountingEmbedder, seeded_source
from drive_rag.vectorstore.milvus import MilvusChunkIndex, MilvusConfig


@dataclass
class FakeCollection:
    rows: list[dict] = field(default_factory=list)
    reject_content: str | None = None
    fail_delete: bool = False
    fail_flush_after: int | None = None
    partial_batch: bool = False
    flushes: int = 0

    def upsert(self, rows):
        if self.partial_batch and len(rows) > 1:
            self._store(rows)
            raise RuntimeError("batch timed out")
        if self.reject_content and any(self.reject_content in row["content"] for row in rows):
            raise RuntimeError("row rejected")
        self._store(rows)

    def _store(self, rows):
        for row in rows:
            self.rows = [item for item in self.rows if item["chunk_id"] != row["chunk_id"]]
            self.rows.append(row)

    def delete(self, expr):
        if self.fail_delete:
            raise RuntimeError("connection lost")
        document_id = expr.split('"')[1]
        before = len(self.rows)
        self.rows = [row for row in self.rows if row["document_id"] != document_id]
        return SimpleNamespace(delete_count=before - len(self.rows))

    def flush(self):
        self.flushes += 1
        if self.fail_flush_after is not None and self.flushes > self.fail_flush_after:
            raise RuntimeError("flush timed out")

    def load(self):
        return None

    def query(self, expr, output_fields):
        document_id = expr.split('"')[1]
        return [row for row in self.rows if row["document_id"] == document_id]

    def search(self, data, anns_field, param, limit, output_fields):
        hits = [SimpleNamespace(entity=row, score=row["score"]) for row in self.rows]
        return [hits[:limit]]


def make_index(collection: FakeCollection) -> MilvusChunkIndex:
    index = MilvusChunkIndex.__new__(MilvusChunkIndex)
    index.dimension = 2
    index.config = MilvusConfig(
        uri="http://milvus:19530",
        token=None,
        collection="drive_chunks",
        consistency="Strong",
        index_type="IVF_FLAT",
        nlist=16,
        nprobe=4,
    )
    index.collection = collection
    return index


def chunk(index: int, content: str, tags=("live",)) -> Chunk:
    return Chunk(
        "doc-1", index, content, "tour.txt", folder_path="/Albums", tags=tags
    ).with_embedding([1.0, 0.0])


def test_replace_round_trips_metadata() -> None:
    index = make_index(FakeCollection())
    result = index.replace("doc-1", [chunk(1, "second"), chunk(0, "first")])
    assert result.written == 2
    chunks = index.chunks_for("doc-1")
    assert [item.content for item in chunks] == ["first", "second"]
    assert chunks[0].tags == ("live",)
    assert chunks[0].folder_path == "/Albums"
    assert chunks[0].modified_time is None


def test_replace_falls_back_to_per_row_upserts() -> None:
    collection = FakeCollection(reject_content="bad")
    index = make_index(collection)
    index.replace("doc-1", [chunk(0, "stale")])
    result = index.replace("doc-1", [chunk(0, "good"), chunk(1, "bad row")])
    assert result.deleted == 1
    assert result.written == 1
    assert [error.chunk_index for error in result.errors] == [1]
    assert [row["content"] for row in collection.rows] == ["good"]


def test_purge_failure_raises_index_error() -> None:
    index = make_index(FakeCollection(fail_delete=True))
    with pytest.raises(IndexStoreError) as excinfo:
        index.purge("doc-1")
    assert excinfo.value.context == {"document_id": "doc-1"}


def test_search_ranks_and_thresholds_hits() -> None:
    collection = FakeCollection()
    index = make_index(collection)
    index.replace("doc-1", [chunk(0, "low"), chunk(1, "high"), chunk(2, "mid")])
    for row, score in zip(collection.rows, [0.5, 0.95, 0.8]):
        row["score"] = score
    results = index.search([1.0, 0.0], 0.75, 5)
    assert [result.chunk.content for result in results] == ["high", "mid"]


def test_document_expr_escapes_quotes() -> None:
    assert MilvusChunkIndex._document_expr('a"b') == 'document_id == "a\\"b"'


def test_replace_after_partially_applied_batch_leaves_no_duplicates() -> None:
    collection = FakeCollection(partial_batch=True)
    index = make_index(collection)
    result = index.replace("doc-1", [chunk(0, "first"), chunk(1, "second")])
    assert result.written == 2
    assert result.errors == []
    assert sorted(row["chunk_id"] for row in collection.rows) == ["doc-1:0", "doc-1:1"]


def test_write_failure_raises_index_error() -> None:
    index = make_index(FakeCollection(fail_flush_after=1))
    with pytest.raises(IndexStoreError) as excinfo:
        index.replace("doc-1", [chunk(0, "first")])
    assert excinfo.value.stage == "indexed"
    assert excinfo.value.context == {"document_id": "doc-1"}


def test_write_failure_is_reported_by_ingestion() -> None:
    index = make_index(FakeCollection(fail_flush_after=1))
    pipeline = IngestionPipeline(
        source=seeded_source(), embedder=CountingEmbedder(), index=index, chunk_size=200
    )
    report = pipeline.handle(ChangeNotification.from_http({}, {"fileId": "doc-1"}))
    assert report.status == "failed"
    assert report.failed_stage == IngestionStage.INDEXED
    assert "flush timed out" in report.detail
