from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from drive_rag.app.settings import settings
from drive_rag.ingestion.pipeline import IngestionPipeline
from drive_rag.loaders.drive import (
    ContentSource,
    ContentSourceError,
    GoogleDriveSource,
    InMemoryContentSource,
)
from drive_rag.metadata.store import IngestionLog
from drive_rag.rag.answerer import DEFAULT_PERSONA, ExtractiveAnswerer, GroundedAnswerer
from drive_rag.rag.embeddings import (
    EmbeddingConfigError,
    EmbeddingConfigReport,
    EmbeddingProvider,
    GeminiEmbedder,
    HashEmbedder,
    OpenAIEmbedder,
    build_embedding_config_report,
)
from drive_rag.rag.faq import (
    DEFAULT_GREETING,
    FAQShortcut,
    FAQStore,
    InMemoryFAQStore,
    SQLFAQStore,
    greeting_filter,
)
from drive_rag.rag.guardrails import DEFAULT_NO_RESULTS
from drive_rag.rag.llm import build_generator
from drive_rag.rag.pipeline import Answerer, QueryPipeline
from drive_rag.rag.retriever import Retriever
from drive_rag.vectorstore.base import ChunkIndex
from drive_rag.vectorstore.inmemory import InMemoryChunkIndex
from drive_rag.vectorstore.milvus import MilvusChunkIndex, MilvusConfig


@lru_cache
def get_embedder() -> EmbeddingProvider:
    provider = settings.embedding_provider.lower().strip()
    if provider == "hash":
        return HashEmbedder(dimension=settings.embedding_dimension)
    if provider == "openai":
        return OpenAIEmbedder(
            api_key=settings.openai_api_key or "",
            model=settings.openai_embedding_model or "",
            dimension=settings.embedding_dimension,
        )
    if provider in {"gemini", "google"}:
        return GeminiEmbedder(
            api_key=settings.gemini_api_key or "",
            model=settings.gemini_embedding_model,
            dimension=settings.embedding_dimension,
        )
    raise EmbeddingConfigError(f"Unsupported embedding provider: {provider}")


@lru_cache
def get_index() -> ChunkIndex:
    embedder = get_embedder()
    backend = settings.vectorstore_backend.lower().strip()
    if backend == "milvus":
        config = MilvusConfig(
            uri=settings.milvus_uri,
            token=settings.milvus_token,
            collection=settings.milvus_collection,
            consistency=settings.milvus_consistency,
            index_type=settings.milvus_index_type,
            nlist=settings.milvus_nlist,
            nprobe=settings.milvus_nprobe,
        )
        return MilvusChunkIndex(dimension=embedder.dimension, config=config)
    return InMemoryChunkIndex(dimension=embedder.dimension)


@lru_cache
def get_content_source() -> ContentSource:
    backend = settings.content_source.lower().strip()
    if backend == "memory":
        return InMemoryContentSource()
    if backend != "drive":
        raise ContentSourceError(f"Unsupported content source: {backend}")
    if settings.google_service_account_json:
        return GoogleDriveSource.from_json(settings.google_service_account_json)
    return GoogleDriveSource(service_account_file=settings.google_service_account_file)


@lru_cache
def get_faq_store() -> FAQStore:
    if settings.faq_db_uri:
        return SQLFAQStore(settings.faq_db_uri)
    if settings.faq_path:
        return InMemoryFAQStore.from_json_file(Path(settings.faq_path))
    return InMemoryFAQStore()


@lru_cache
def get_answerer() -> Answerer:
    if settings.answerer_mode.lower().strip() != "llm":
        return ExtractiveAnswerer()
    generator = build_generator(
        settings.llm_provider,
        api_key_openai=settings.openai_api_key,
        api_key_gemini=settings.gemini_api_key,
        openai_base_url=settings.openai_base_url,
        openai_model=settings.openai_chat_model,
        gemini_model=settings.gemini_chat_model,
        ollama_base_url=settings.ollama_base_url,
        ollama_model=settings.ollama_model,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
        timeout=settings.llm_timeout,
    )
    return GroundedAnswerer(
        generator=generator,
        persona=settings.persona or DEFAULT_PERSONA,
        privileged_role=settings.privileged_role,
        context_max_chars=settings.llm_context_max_chars,
    )


@lru_cache
def get_query_pipeline() -> QueryPipeline:
    retriever = Retriever(
        embedder=get_embedder(),
        index=get_index(),
        threshold=settings.match_threshold,
        max_results=settings.match_count,
        min_query_length=settings.min_question_length,
        short_query_message=settings.short_question_message,
    )
    return QueryPipeline(
        retriever=retriever,
        answerer=get_answerer(),
        faq=FAQShortcut(store=get_faq_store()),
        prefilters=[greeting_filter(settings.greeting_message or DEFAULT_GREETING)],
        no_results_message=settings.no_results_message or DEFAULT_NO_RESULTS,
    )


@lru_cache
def get_ingestion_pipeline() -> IngestionPipeline:
    return IngestionPipeline(
        source=get_content_source(),
        embedder=get_embedder(),
        index=get_index(),
        chunk_size=settings.chunk_size,
        chunk_overlap=settings.chunk_overlap,
    )


@lru_cache
def get_ingestion_log() -> IngestionLog | None:
    if not settings.metadata_db_uri:
        return None
    return IngestionLog(settings.metadata_db_uri)


def get_embedding_config_report() -> EmbeddingConfigReport:
    return build_embedding_config_report(
        settings.embedding_provider, settings.embedding_model, settings.embedding_dimension
    )


def reset_caches() -> None:
    for factory in (
        get_embedder,
        get_index,
        get_content_source,
        get_faq_store,
        get_answerer,
        get_query_pipeline,
        get_ingestion_pipeline,
        get_ingestion_log,
    ):
        factory.cache_clear()
