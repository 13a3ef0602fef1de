from __future__ import annotations

from pydantic import BaseModel, Field


class AskRequest(BaseModel):
    question: str | None = None


class SourceModel(BaseModel):
    document_name: str
    chunk_index: int
    similarity: float
    folder_path: str | None = None
    tags: list[str] = Field(default_factory=list)


class AskResponse(BaseModel):
    answer: str
    sources: list[SourceModel]
    provenance: str


class ChunkErrorModel(BaseModel):
    chunk_index: int | None
    stage: str
    detail: str


class WebhookResponse(BaseModel):
    document_id: str
    kind: str
    status: str
    stage: str
    failed_stage: str | None = None
    content_available: bool | None = None
    chunk_count: int
    indexed_count: int
    removed_count: int
    errors: list[ChunkErrorModel] = Field(default_factory=list)
    detail: str | None = None


class StatsResponse(BaseModel):
    backend: str
    chunk_count: int
    document_count: int | None = None
    embedding_dimension: int
    collection: str | None = None


class StatsHealthResponse(BaseModel):
    backend: str
    ok: bool
    detail: str | None = None
    collection: str | None = None


class EmbeddingHealthResponse(BaseModel):
    provider: str
    model: str | None
    configured_dimension: int
    expected_dimension: int | None = None
    ok: bool
    status: str
    detail: str | None = None
    action: str | None = None
