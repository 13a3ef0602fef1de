from __future__ import annotations

from dataclasses import dataclass

from drive_rag.rag.types import SearchResult


DEFAULT_NO_RESULTS = (
    "I couldn't find any documents relevant to your question. Try rephrasing it."
)


@dataclass(frozen=True)
class GuardrailResult:
    allowed: bool
    reason: str


def require_results(results: list[SearchResult]) -> GuardrailResult:
    if not results:
        return GuardrailResult(allowed=False, reason="no_results")
    if all(not result.chunk.content.strip() for result in results):
        return GuardrailResult(allowed=False, reason="empty_context")
    return GuardrailResult(allowed=True, reason="ok")
