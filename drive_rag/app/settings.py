from __future__ import annotations

import os
from dataclasses import dataclass

try:
    from dotenv import load_dotenv
except ImportError:  # pragma: no cover - optional in minimal setups
    load_dotenv = None

if load_dotenv is not None:
    load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


@dataclass(frozen=True)
class Settings:
    log_level: str = os.getenv("RAG_LOG_LEVEL", "INFO")
    chunk_size: int = int(os.getenv("RAG_CHUNK_SIZE", "1000"))
    chunk_overlap: int = int(os.getenv("RAG_CHUNK_OVERLAP", "0"))
    match_threshold: float = float(os.getenv("RAG_MATCH_THRESHOLD", "0.75"))
    match_count: int = int(os.getenv("RAG_MATCH_COUNT", "5"))
    min_question_length: int = int(os.getenv("RAG_MIN_QUESTION_LENGTH", "5"))
    vectorstore_backend: str = os.getenv("RAG_VECTORSTORE", "memory")
    embedding_provider: str = os.getenv("EMBEDDING_PROVIDER", "hash")
    embedding_dimension: int = int(os.getenv("EMBEDDING_DIMENSION", "256"))
    openai_api_key: str | None = os.getenv("OPENAI_API_KEY")
    openai_base_url: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    openai_embedding_model: str | None = os.getenv("OPENAI_EMBEDDING_MODEL")
    openai_chat_model: str | None = os.getenv("OPENAI_CHAT_MODEL")
    gemini_api_key: str | None = os.getenv("GEMINI_API_KEY")
    gemini_embedding_model: str = os.getenv("GEMINI_EMBEDDING_MODEL", "models/text-embedding-004")
    gemini_chat_model: str = os.getenv("GEMINI_CHAT_MODEL", "gemini-1.5-flash")
    milvus_uri: str = os.getenv("MILVUS_URI", "http://localhost:19530")
    milvus_token: str | None = os.getenv("MILVUS_TOKEN")
    milvus_collection: str = os.getenv("MILVUS_COLLECTION", "drive_chunks")
    milvus_consistency: str = os.getenv("MILVUS_CONSISTENCY", "Strong")
    milvus_index_type: str = os.getenv("MILVUS_INDEX_TYPE", "IVF_FLAT")
    milvus_nlist: int = int(os.getenv("MILVUS_NLIST", "1024"))
    milvus_nprobe: int = int(os.getenv("MILVUS_NPROBE", "10"))
    answerer_mode: str = os.getenv("RAG_ANSWERER", "extractive")
    llm_provider: str = os.getenv("RAG_LLM_PROVIDER", "gemini")
    llm_max_tokens: int = int(os.getenv("RAG_LLM_MAX_TOKENS", "1000"))
    llm_temperature: float = float(os.getenv("RAG_LLM_TEMPERATURE", "0.2"))
    llm_timeout: float = float(os.getenv("RAG_LLM_TIMEOUT", "60"))
    llm_context_max_chars: int = int(os.getenv("RAG_LLM_CONTEXT_MAX_CHARS", "12000"))
    ollama_base_url: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
    ollama_model: str = os.getenv("OLLAMA_MODEL", "llama3.1")
    persona: str | None = os.getenv("RAG_PERSONA")
    privileged_role: str = os.getenv("RAG_PRIVILEGED_ROLE", "admin")
    content_source: str = os.getenv("RAG_CONTENT_SOURCE", "drive")
    google_service_account_json: str | None = os.getenv("GOOGLE_SERVICE_ACCOUNT_JSON")
    google_service_account_file: str | None = os.getenv("GOOGLE_SERVICE_ACCOUNT_FILE")
    faq_db_uri: str | None = os.getenv("RAG_FAQ_DB_URI")
    faq_path: str | None = os.getenv("RAG_FAQ_PATH")
    metadata_db_uri: str | None = os.getenv("RAG_METADATA_DB_URI")
    webhook_token: str | None = os.getenv("RAG_WEBHOOK_TOKEN")
    metrics_enabled: bool = _env_bool("RAG_METRICS_ENABLED", "true")
    cors_allow_origin: str = os.getenv("RAG_CORS_ALLOW_ORIGIN", "*")
    no_results_message: str | None = os.getenv("RAG_NO_RESULTS_MESSAGE")
    short_question_message: str = os.getenv(
        "RAG_SHORT_QUESTION_MESSAGE", "The question is too short. Please be more specific."
    )
    greeting_message: str | None = os.getenv("RAG_GREETING_MESSAGE")

    @property
    def embedding_model(self) -> str | None:
        provider = self.embedding_provider.lower().strip()
        if provider == "openai":
            return self.openai_embedding_model
        if provider in {"gemini", "google"}:
            return self.gemini_embedding_model
        return None


settings = Settings()
