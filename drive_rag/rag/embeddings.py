from __future__ import annotations

"""Embedding providers and configuration validation."""

import hashlib
import math
import re
from dataclasses import dataclass, field
from typing import Any, Protocol

from drive_rag.rag.errors import CollaboratorError

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)

_OPENAI_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}

_GEMINI_DIMENSIONS = {
    "text-embedding-004": 768,
    "embedding-001": 768,
}


class EmbeddingError(CollaboratorError):
    """Raised when embeddings fail or are invalid."""
    pass


class EmbeddingConfigError(RuntimeError):
    """Raised when embedding configuration is invalid."""
    pass


class EmbeddingProvider(Protocol):
    """Protocol for embedding providers."""
    dimension: int

    def embed(self, text: str) -> list[float]:
        """Return an embedding vector for the provided text."""
        raise NotImplementedError


def validate_vector(vector: list[float], dimension: int) -> list[float]:
    """Validate and normalize embedding vectors."""
    if len(vector) != dimension:
        raise EmbeddingError(
            f"Embedding dimension mismatch: expected {dimension}, got {len(vector)}"
        )
    cleaned: list[float] = []
    for value in vector:
        if not isinstance(value, (int, float)):
            raise EmbeddingError("Embedding contains a non-numeric value")
        if not math.isfinite(value):
            raise EmbeddingError("Embedding contains a non-finite value")
        cleaned.append(float(value))
    return cleaned


@dataclass
class HashEmbedder:
    """Deterministic hash-based embedder for testing or offline use."""
    dimension: int = 256

    def embed(self, text: str) -> list[float]:
        """Embed text using token hashing and L2 normalization."""
        tokens = _TOKEN_RE.findall(text.lower())
        vector = [0.0] * self.dimension
        for token in tokens:
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            vector[digest[0] % self.dimension] += 1.0
        return validate_vector(_l2_normalize(vector), self.dimension)


def _l2_normalize(vector: list[float]) -> list[float]:
    norm = math.sqrt(sum(value * value for value in vector))
    if norm == 0.0:
        return vector
    return [value / norm for value in vector]


def resolve_openai_dimension(model: str) -> int | None:
    """Return expected dimension for OpenAI embedding model."""
    return _OPENAI_DIMENSIONS.get(model)


def resolve_gemini_dimension(model: str) -> int | None:
    """Return expected dimension for Gemini embedding model."""
    return _GEMINI_DIMENSIONS.get(model.removeprefix("models/"))


@dataclass(frozen=True)
class EmbeddingConfigReport:
    """Validation report for embedding settings."""
    provider: str
    model: str | None
    configured_dimension: int
    expected_dimension: int | None
    ok: bool
    status: str
    detail: str | None = None
    action: str | None = None


def build_embedding_config_report(
    provider: str, model: str | None, dimension: int
) -> EmbeddingConfigReport:
    """Build a validation report for embedding settings."""
    normalized = provider.lower().strip() or "hash"
    if normalized in {"google", "gemini"}:
        normalized = "gemini"

    def report(ok: bool, status: str, expected: int | None = None, detail=None, action=None):
        return EmbeddingConfigReport(
            provider=normalized,
            model=model if normalized != "hash" else None,
            configured_dimension=dimension,
            expected_dimension=expected,
            ok=ok,
            status=status,
            detail=detail,
            action=action,
        )

    if normalized == "hash":
        if dimension <= 0:
            return report(
                False,
                "error",
                detail="EMBEDDING_DIMENSION must be greater than zero for hash embeddings.",
                action="Set EMBEDDING_DIMENSION to a positive integer.",
            )
        return report(True, "ok", expected=dimension)

    if normalized not in {"openai", "gemini"}:
        return report(
            False,
            "error",
            detail="Unsupported embedding provider.",
            action="Set EMBEDDING_PROVIDER to hash, openai, or gemini.",
        )

    env_prefix = normalized.upper()
    if not model:
        return report(
            False,
            "error",
            detail=f"{env_prefix}_EMBEDDING_MODEL is required for {normalized} embeddings.",
            action=f"Set {env_prefix}_EMBEDDING_MODEL in .env.",
        )
    if normalized == "openai":
        expected = resolve_openai_dimension(model)
    else:
        expected = resolve_gemini_dimension(model)
    if dimension <= 0:
        return report(
            False,
            "error",
            expected=expected,
            detail="EMBEDDING_DIMENSION must be set for the configured model.",
            action=f"Set EMBEDDING_DIMENSION to {expected}." if expected else None,
        )
    if expected is not None and dimension != expected:
        return report(
            False,
            "error",
            expected=expected,
            detail="EMBEDDING_DIMENSION does not match the model dimension.",
            action=f"Set EMBEDDING_DIMENSION to {expected}.",
        )
    if expected is None:
        return report(
            True,
            "warning",
            detail="Model dimension cannot be auto-validated. Confirm EMBEDDING_DIMENSION manually.",
        )
    return report(True, "ok", expected=expected)


@dataclass
class OpenAIEmbedder:
    """Embedding provider using OpenAI embeddings API."""
    api_key: str
    model: str
    dimension: int
    client: Any = field(init=False, repr=False)

    def __post_init__(self) -> None:
        """Validate OpenAI configuration and create a client."""
        if not self.api_key:
            raise EmbeddingConfigError("OPENAI_API_KEY is required for OpenAIEmbedder")
        if not self.model:
            raise EmbeddingConfigError("OPENAI_EMBEDDING_MODEL is required for OpenAIEmbedder")
        resolved = resolve_openai_dimension(self.model)
        if self.dimension <= 0:
            if resolved is None:
                raise EmbeddingConfigError(
                    "EMBEDDING_DIMENSION must be set for OpenAI embeddings when model is unknown"
                )
            self.dimension = resolved
        elif resolved is not None and self.dimension != resolved:
            raise EmbeddingConfigError(
                f"EMBEDDING_DIMENSION should be {resolved} for model {self.model}"
            )
        try:
            from openai import OpenAI
        except ImportError as exc:
            raise EmbeddingConfigError("openai package is required for OpenAIEmbedder") from exc
        self.client = OpenAI(api_key=self.api_key)

    def embed(self, text: str) -> list[float]:
        """Embed text using the OpenAI embeddings API."""
        try:
            response = self.client.embeddings.create(model=self.model, input=text)
        except Exception as exc:
            raise EmbeddingError(f"OpenAI embedding request failed: {exc}") from exc
        return validate_vector(list(response.data[0].embedding), self.dimension)


@dataclass
class GeminiEmbedder:
    """Embedding provider using Gemini embeddings API."""
    api_key: str
    model: str
    dimension: int
    client: Any = field(init=False, repr=False)

    def __post_init__(self) -> None:
        """Validate Gemini configuration and create a client."""
        if not self.api_key:
            raise EmbeddingConfigError("GEMINI_API_KEY is required for GeminiEmbedder")
        if not self.model:
            raise EmbeddingConfigError("GEMINI_EMBEDDING_MODEL is required for GeminiEmbedder")
        if self.dimension <= 0:
            resolved = resolve_gemini_dimension(self.model)
            if resolved is None:
                raise EmbeddingConfigError("EMBEDDING_DIMENSION must be set for Gemini embeddings")
            self.dimension = resolved
        try:
            import google.generativeai as genai
        except ImportError as exc:
            raise EmbeddingConfigError(
                "google-generativeai package is required for GeminiEmbedder"
            ) from exc
        genai.configure(api_key=self.api_key)
        self.client = genai

    def embed(self, text: str) -> list[float]:
        """Embed text using the Gemini embeddings API."""
        try:
            result = self.client.embed_content(model=self.model, content=text)
        except Exception as exc:
            raise EmbeddingError(f"Gemini embedding request failed: {exc}") from exc
        embedding = None
        if isinstance(result, dict):
            embedding = result.get("embedding")
        if embedding is None:
            embedding = getattr(result, "embedding", None)
        if embedding is None:
            raise EmbeddingError("Gemini embedding response missing embedding vector")
        return validate_vector(list(embedding), self.dimension)
