from __future__ import annotations

"""Answer synthesis from retrieved chunks."""

import logging
from dataclasses import dataclass

from drive_rag.rag.citations import build_sources
from drive_rag.rag.llm import TextGenerator
from drive_rag.rag.types import SearchResult, SourceDescriptor

logger = logging.getLogger(__name__)

_BLOCK_SEPARATOR = "\n\n"

DEFAULT_PERSONA = (
    "You are an expert assistant in music and discography, with management skills "
    "and experience in digital publishing and social media marketing, audio, video, "
    "lighting and effects, and artist management. You understand the current stage "
    "of the project and share responsibility for it with the admin."
)


@dataclass(frozen=True)
class SynthesizedAnswer:
    answer: str
    sources: list[SourceDescriptor]


def build_context_block(results: list[SearchResult], max_chars: int) -> str:
    """Render results in retrieval order: metadata lines, then content."""
    blocks: list[str] = []
    total = 0
    for result in results:
        chunk = result.chunk
        lines = [f"File: {chunk.document_name} (Chunk {chunk.chunk_index})"]
        if chunk.folder_path:
            lines.append(f"Folder: {chunk.folder_path}")
        if chunk.tags:
            lines.append(f"Tags: {', '.join(chunk.tags)}")
        header = "\n".join(lines) + "\nContent: "
        content = chunk.content.strip()
        block = header + content
        separator = len(_BLOCK_SEPARATOR) if blocks else 0
        if total + separator + len(block) > max_chars:
            remaining = max_chars - total - separator
            if remaining <= len(header):
                break
            block = header + content[: remaining - len(header)]
        blocks.append(block)
        total += separator + len(block)
        if total >= max_chars:
            break
    return _BLOCK_SEPARATOR.join(blocks)


def build_prompt(
    question: str,
    context_block: str,
    persona: str = DEFAULT_PERSONA,
    privileged_role: str = "admin",
) -> str:
    """Combine persona, grounding rules, documents and the question."""
    return (
        f"{persona}\n"
        f"If the user identifies as {privileged_role}, collaborate with them on the "
        "evolution of the project and answer any kind of question, even outside the "
        "scope of the project. For every other user, answer the question accurately, "
        "in detail and professionally, based ONLY and exclusively on the documents "
        "provided below.\n"
        f"RELEVANT DOCUMENTS:\n{context_block}\n\n"
        f"USER QUESTION: {question}\n\n"
        "ANSWER:"
    )


@dataclass
class GroundedAnswerer:
    """Ask a generative model to answer from the retrieved documents only."""
    generator: TextGenerator
    persona: str = DEFAULT_PERSONA
    privileged_role: str = "admin"
    context_max_chars: int = 12000

    async def synthesize(self, question: str, results: list[SearchResult]) -> SynthesizedAnswer:
        """Generate one grounded answer; sources follow retrieval order."""
        if not results:
            raise ValueError("Cannot synthesize an answer without retrieval results")
        context_block = build_context_block(results, self.context_max_chars)
        prompt = build_prompt(question, context_block, self.persona, self.privileged_role)
        answer = await self.generator.generate(prompt)
        logger.info(
            "answer_generated",
            extra={
                "model": self.generator.model,
                "sources": len(results),
                "prompt_length": len(prompt),
                "answer_length": len(answer),
            },
        )
        return SynthesizedAnswer(answer=answer, sources=build_sources(results))


@dataclass
class ExtractiveAnswerer:
    """Return a short extract from the highest scoring chunk."""
    max_chars: int = 480

    async def synthesize(self, question: str, results: list[SearchResult]) -> SynthesizedAnswer:
        """Answer with a snippet of the best chunk, without a model call."""
        if not results:
            raise ValueError("Cannot synthesize an answer without retrieval results")
        best = results[0].chunk
        snippet = self._truncate(best.content.strip())
        return SynthesizedAnswer(
            answer=f"From {best.document_name}: {snippet}",
            sources=build_sources(results),
        )

    def _truncate(self, text: str) -> str:
        """Trim text to the max character budget without cutting words."""
        if len(text) <= self.max_chars:
            return text
        return text[: self.max_chars].rsplit(" ", 1)[0] + "..."
