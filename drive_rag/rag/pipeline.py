from __future__ import annotations

"""Query pipeline: short-circuit answers, retrieval and grounded synthesis."""

import logging
from dataclasses import dataclass, field
from typing import Protocol

from drive_rag.loaders.chunking import normalize_text
from drive_rag.rag.answerer import SynthesizedAnswer
from drive_rag.rag.errors import ClientInputError
from drive_rag.rag.faq import FAQShortcut, PreFilter, greeting_filter, match_prefilters
from drive_rag.rag.guardrails import DEFAULT_NO_RESULTS, require_results
from drive_rag.rag.retriever import Retriever
from drive_rag.rag.types import SearchResult, SourceDescriptor

logger = logging.getLogger(__name__)


class Answerer(Protocol):
    async def synthesize(self, question: str, results: list[SearchResult]) -> SynthesizedAnswer:
        raise NotImplementedError


@dataclass
class QueryResponse:
    answer: str
    sources: list[SourceDescriptor]
    provenance: str


@dataclass
class QueryPipeline:
    retriever: Retriever
    answerer: Answerer
    faq: FAQShortcut | None = None
    prefilters: list[PreFilter] = field(default_factory=lambda: [greeting_filter()])
    no_results_message: str = DEFAULT_NO_RESULTS

    async def answer(self, question: str | None) -> QueryResponse:
        """Answer a question, cheapest path first.

        Pre-filters and the FAQ lookup run before any embedding or generation
        call; the answerer only sees non-empty retrieval results.
        """
        cleaned = normalize_text(question or "")
        if not cleaned:
            raise ClientInputError("Question is missing")

        shortcut = match_prefilters(cleaned, self.prefilters)
        if shortcut is not None:
            logger.info("prefilter_hit", extra={"prefilter": shortcut.name})
            return QueryResponse(answer=shortcut.answer, sources=[], provenance=shortcut.provenance)

        cleaned = self.retriever.validate(cleaned)
        if self.faq is not None:
            hit = self.faq.lookup(cleaned)
            if hit is not None:
                return QueryResponse(answer=hit.answer, sources=[], provenance=hit.provenance)

        results = self.retriever.retrieve(cleaned)
        guardrail = require_results(results)
        if not guardrail.allowed:
            logger.info("query_no_results", extra={"question": cleaned, "reason": guardrail.reason})
            return QueryResponse(answer=self.no_results_message, sources=[], provenance="no_results")

        synthesized = await self.answerer.synthesize(cleaned, results)
        return QueryResponse(
            answer=synthesized.answer, sources=synthesized.sources, provenance="rag"
        )
