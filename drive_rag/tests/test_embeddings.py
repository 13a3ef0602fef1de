from __future__ import annotations

import math

import pytest

from drive_rag.rag.embeddings import (
    EmbeddingConfigError,
    EmbeddingError,
    HashEmbedder,
    OpenAIEmbedder,
    build_embedding_config_report,
    resolve_gemini_dimension,
    validate_vector,
)


def test_hash_embedder_is_deterministic_and_normalized() -> None:
    embedder = HashEmbedder(dimension=32)
    first = embedder.embed("Summer tour in Milan")
    assert first == embedder.embed("summer TOUR in milan")
    assert len(first) == 32
    assert math.isclose(sum(value * value for value in first), 1.0, rel_tol=1e-9)


def test_hash_embedder_blank_text_is_zero_vector() -> None:
    assert HashEmbedder(dimension=8).embed("   ") == [0.0] * 8


def test_validate_vector_rejects_bad_values() -> None:
    with pytest.raises(EmbeddingError):
        validate_vector([1.0, 2.0], 3)
    with pytest.raises(EmbeddingError):
        validate_vector([1.0, float("nan")], 2)


def test_gemini_dimension_accepts_models_prefix() -> None:
    assert resolve_gemini_dimension("models/text-embedding-004") == 768
    assert resolve_gemini_dimension("custom-model") is None


def test_openai_embedder_requires_key() -> None:
    with pytest.raises(EmbeddingConfigError):
        OpenAIEmbedder(api_key="", model="text-embedding-3-small", dimension=1536)


def test_config_report_for_hash_provider() -> None:
    report = build_embedding_config_report("hash", None, 256)
    assert report.ok is True
    assert report.status == "ok"
    assert report.model is None


def test_config_report_flags_dimension_mismatch() -> None:
    report = build_embedding_config_report("gemini", "models/text-embedding-004", 256)
    assert report.ok is False
    assert report.expected_dimension == 768
    assert report.action == "Set EMBEDDING_DIMENSION to 768."


def test_config_report_warns_for_unknown_model() -> None:
    report = build_embedding_config_report("openai", "in-house-embedder", 512)
    assert report.ok is True
    assert report.status == "warning"


def test_config_report_rejects_unknown_provider() -> None:
    assert build_embedding_config_report("cohere", "x", 10).ok is False
