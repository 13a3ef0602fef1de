from __future__ import annotations

"""Shared pytest fixtures and test environment defaults."""

import os
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ["RAG_ANSWERER"] = "extractive"
os.environ["RAG_CONTENT_SOURCE"] = "memory"
os.environ["RAG_VECTORSTORE"] = "memory"
os.environ["EMBEDDING_PROVIDER"] = "hash"
os.environ["EMBEDDING_DIMENSION"] = "256"
os.environ.setdefault("RAG_METRICS_ENABLED", "true")
for name in (
    "OPENAI_API_KEY",
    "GEMINI_API_KEY",
    "RAG_WEBHOOK_TOKEN",
    "RAG_FAQ_DB_URI",
    "RAG_FAQ_PATH",
    "RAG_METADATA_DB_URI",
):
    os.environ.pop(name, None)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
