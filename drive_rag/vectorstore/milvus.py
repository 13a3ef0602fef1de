from __future__ import annotations

"""Milvus-backed chunk index."""

import json
import logging
from dataclasses import dataclass
from typing import Any, Sequence

from drive_rag.rag.embeddings import EmbeddingConfigError
from drive_rag.rag.errors import IndexStoreError
from drive_rag.rag.types import Chunk, SearchResult
from drive_rag.vectorstore.base import ChunkError, IndexWriteResult, rank_results

logger = logging.getLogger(__name__)

_OUTPUT_FIELDS = [
    "document_id",
    "chunk_index",
    "content",
    "document_name",
    "modified_time",
    "folder_path",
    "tags",
]


class MilvusDependencyError(RuntimeError):
    """Raised when Milvus dependencies are missing."""
    pass


@dataclass
class MilvusConfig:
    """Configuration for Milvus connection and indexing."""
    uri: str
    token: str | None
    collection: str
    consistency: str
    index_type: str
    nlist: int
    nprobe: int
    hnsw_m: int = 16
    hnsw_ef_construction: int = 200
    hnsw_ef: int = 64
    max_content_length: int = 65535


@dataclass
class MilvusChunkIndex:
    """Chunk index stored in a Milvus collection with cosine similarity."""
    dimension: int
    config: MilvusConfig

    def __post_init__(self) -> None:
        """Connect to Milvus and ensure the collection exists."""
        try:
            from pymilvus import connections
        except ImportError as exc:
            raise MilvusDependencyError("pymilvus is required for MilvusChunkIndex") from exc
        if self.dimension <= 0:
            raise EmbeddingConfigError(
                "Embedding dimension must be set before initializing MilvusChunkIndex"
            )
        connections.connect(alias="default", uri=self.config.uri, token=self.config.token)
        self.ensure_collection()

    def ensure_collection(self) -> None:
        """Create collection schema and index when missing."""
        from pymilvus import Collection, CollectionSchema, DataType, FieldSchema, utility

        if utility.has_collection(self.config.collection):
            self.collection = Collection(
                self.config.collection, consistency_level=self.config.consistency
            )
            existing_dim = self._existing_embedding_dim()
            if existing_dim is not None and existing_dim != self.dimension:
                raise EmbeddingConfigError(
                    "Milvus collection embedding dimension mismatch: "
                    f"{existing_dim} (collection) vs {self.dimension} (embedder). "
                    "Update EMBEDDING_DIMENSION or use a new MILVUS_COLLECTION."
                )
            return

        fields = [
            FieldSchema(name="chunk_id", dtype=DataType.VARCHAR, is_primary=True, max_length=512),
            FieldSchema(name="document_id", dtype=DataType.VARCHAR, max_length=256),
            FieldSchema(name="chunk_index", dtype=DataType.INT64),
            FieldSchema(
                name="content",
                dtype=DataType.VARCHAR,
                max_length=self.config.max_content_length,
            ),
            FieldSchema(name="document_name", dtype=DataType.VARCHAR, max_length=1024),
            FieldSchema(name="modified_time", dtype=DataType.VARCHAR, max_length=64),
            FieldSchema(name="folder_path", dtype=DataType.VARCHAR, max_length=1024),
            FieldSchema(name="tags", dtype=DataType.VARCHAR, max_length=4096),
            FieldSchema(name="embedding", dtype=DataType.FLOAT_VECTOR, dim=self.dimension),
        ]
        schema = CollectionSchema(fields=fields, description="Drive document chunks")
        self.collection = Collection(
            self.config.collection,
            schema,
            consistency_level=self.config.consistency,
        )
        self.collection.create_index(field_name="embedding", index_params=self._index_params())

    def _index_params(self) -> dict[str, Any]:
        if self.config.index_type.upper() == "HNSW":
            return {
                "index_type": "HNSW",
                "metric_type": "COSINE",
                "params": {
                    "M": self.config.hnsw_m,
                    "efConstruction": self.config.hnsw_ef_construction,
                },
            }
        return {
            "index_type": self.config.index_type,
            "metric_type": "COSINE",
            "params": {"nlist": self.config.nlist},
        }

    def _search_params(self) -> dict[str, Any]:
        if self.config.index_type.upper() == "HNSW":
            return {"metric_type": "COSINE", "params": {"ef": self.config.hnsw_ef}}
        return {"metric_type": "COSINE", "params": {"nprobe": self.config.nprobe}}

    def _existing_embedding_dim(self) -> int | None:
        """Read embedding dimension from existing collection schema."""
        for field in self.collection.schema.fields:
            if field.name != "embedding":
                continue
            params = getattr(field, "params", None) or {}
            dim = params.get("dim") if isinstance(params, dict) else None
            try:
                return int(dim) if dim is not None else None
            except (TypeError, ValueError):
                return None
        return None

    def replace(self, document_id: str, chunks: Sequence[Chunk]) -> IndexWriteResult:
        """Delete the document's rows, then upsert the new chunk set."""
        result = IndexWriteResult(document_id=document_id)
        result.deleted = self.purge(document_id)
        rows = [self._to_row(chunk) for chunk in chunks]
        if not rows:
            return result
        try:
            self._write_rows(chunks, rows, result)
            self.collection.flush()
        except Exception as exc:
            raise IndexStoreError(
                f"Milvus write failed: {exc}",
                stage="indexed",
                context={"document_id": document_id},
            ) from exc
        return result

    def _write_rows(
        self, chunks: Sequence[Chunk], rows: list[dict[str, Any]], result: IndexWriteResult
    ) -> None:
        # Upsert keeps retries idempotent when a batch was partially applied.
        try:
            self.collection.upsert(rows)
            result.written = len(rows)
            return
        except Exception:
            logger.warning(
                "milvus_batch_upsert_failed",
                extra={"document_id": result.document_id, "rows": len(rows)},
            )
        for chunk, row in zip(chunks, rows):
            try:
                self.collection.upsert([row])
            except Exception as exc:
                result.errors.append(
                    ChunkError(chunk_index=chunk.chunk_index, stage="indexed", detail=str(exc))
                )
                continue
            result.written += 1

    def purge(self, document_id: str) -> int:
        """Delete every row of a document."""
        try:
            outcome = self.collection.delete(self._document_expr(document_id))
            self.collection.flush()
        except Exception as exc:
            raise IndexStoreError(
                f"Milvus delete failed: {exc}",
                stage="delete",
                context={"document_id": document_id},
            ) from exc
        try:
            return int(outcome.delete_count)
        except (AttributeError, TypeError, ValueError):
            return 0

    def search(self, vector: list[float], threshold: float, limit: int) -> list[SearchResult]:
        """Run a cosine similarity search and enforce threshold and cap."""
        if limit <= 0:
            return []
        try:
            self.collection.load()
            hits = self.collection.search(
                data=[vector],
                anns_field="embedding",
                param=self._search_params(),
                limit=limit,
                output_fields=_OUTPUT_FIELDS,
            )
        except Exception as exc:
            raise IndexStoreError(f"Milvus search failed: {exc}", stage="search") from exc
        results = [
            SearchResult(chunk=self._from_entity(hit.entity), score=float(hit.score))
            for hit in hits[0]
        ]
        return rank_results(results, threshold, limit)

    def chunks_for(self, document_id: str) -> list[Chunk]:
        self.collection.load()
        rows = self.collection.query(
            expr=self._document_expr(document_id), output_fields=_OUTPUT_FIELDS
        )
        chunks = [self._from_entity(row) for row in rows]
        return sorted(chunks, key=lambda chunk: chunk.chunk_index)

    def _to_row(self, chunk: Chunk) -> dict[str, Any]:
        return {
            "chunk_id": chunk.key,
            "document_id": chunk.document_id,
            "chunk_index": chunk.chunk_index,
            "content": chunk.content[: self.config.max_content_length],
            "document_name": chunk.document_name,
            "modified_time": chunk.modified_time or "",
            "folder_path": chunk.folder_path or "",
            "tags": json.dumps(list(chunk.tags), ensure_ascii=True),
            "embedding": list(chunk.embedding),
        }

    def _from_entity(self, entity: Any) -> Chunk:
        try:
            tags = json.loads(entity.get("tags") or "[]")
        except json.JSONDecodeError:
            tags = []
        return Chunk(
            document_id=entity.get("document_id"),
            chunk_index=int(entity.get("chunk_index")),
            content=entity.get("content") or "",
            document_name=entity.get("document_name") or "",
            modified_time=entity.get("modified_time") or None,
            folder_path=entity.get("folder_path") or None,
            tags=tuple(str(tag) for tag in tags),
        )

    @staticmethod
    def _document_expr(document_id: str) -> str:
        escaped = document_id.replace("\\", "\\\\").replace('"', '\\"')
        return f'document_id == "{escaped}"'

    def stats(self) -> dict[str, int | str]:
        """Return collection stats."""
        try:
            count = int(self.collection.num_entities)
        except Exception:
            count = 0
        return {
            "backend": "milvus",
            "chunk_count": count,
            "embedding_dimension": self.dimension,
            "collection": self.config.collection,
        }

    def health(self) -> dict[str, str | bool]:
        """Return collection health info."""
        try:
            _ = self.collection.num_entities
        except Exception as exc:
            return {"backend": "milvus", "ok": False, "detail": str(exc)}
        return {"backend": "milvus", "ok": True, "collection": self.config.collection}
