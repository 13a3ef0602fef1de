from __future__ import annotations

"""Test doubles shared across test modules."""

from dataclasses import dataclass, field

from drive_rag.loaders.drive import FileMetadata, InMemoryContentSource
from drive_rag.rag.answerer import SynthesizedAnswer
from drive_rag.rag.citations import build_sources
from drive_rag.rag.embeddings import EmbeddingError, HashEmbedder
from drive_rag.rag.types import SearchResult


@dataclass
class CountingEmbedder:
    """Hash embedder that records calls and fails on chosen texts."""
    dimension: int = 64
    fail_on: set[str] = field(default_factory=set)
    calls: list[str] = field(default_factory=list)

    def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if any(marker in text for marker in self.fail_on):
            raise EmbeddingError("embedding backend unavailable", stage="embedded")
        return HashEmbedder(dimension=self.dimension).embed(text)


@dataclass
class RecordingAnswerer:
    calls: list[tuple[str, list[SearchResult]]] = field(default_factory=list)

    async def synthesize(self, question: str, results: list[SearchResult]) -> SynthesizedAnswer:
        self.calls.append((question, results))
        return SynthesizedAnswer(answer=f"answer to {question}", sources=build_sources(results))


@dataclass
class StaticGenerator:
    reply: str = "generated"
    model: str = "static"
    prompts: list[str] = field(default_factory=list)

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.reply


def text_file(name: str, parents: tuple[str, ...] = (), tags: str = "") -> FileMetadata:
    properties = {"tags": tags} if tags else {}
    return FileMetadata(
        name=name,
        mime_type="text/plain",
        modified_time="2024-05-01T10:00:00Z",
        parent_ids=parents,
        properties=properties,
    )


def seeded_source() -> InMemoryContentSource:
    source = InMemoryContentSource(folders={"folder-1": "Albums"})
    source.put(
        "doc-1",
        text_file("tour.txt", parents=("folder-1",), tags="tour, 2024"),
        content=b"The summer tour starts in Milan on June 12 with twelve concert dates.",
    )
    return source
