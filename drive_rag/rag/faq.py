from __future__ import annotations

"""Short-circuit answers: canned pre-filters and curated FAQ lookup."""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from drive_rag.rag.errors import CollaboratorError
from drive_rag.rag.types import FAQEntry

logger = logging.getLogger(__name__)

FAQ_MARKER = "(FAQ) "
DEFAULT_GREETING = (
    "Hi! I'm here to answer your questions about the documents. How can I help you?"
)


class FAQStoreError(CollaboratorError):
    """Raised when the FAQ store cannot be queried."""
    pass


@dataclass(frozen=True)
class PreFilter:
    """Pattern that answers a question with a fixed response."""
    name: str
    pattern: re.Pattern[str]
    response: str

    def matches(self, question: str) -> bool:
        return self.pattern.search(question) is not None


@dataclass(frozen=True)
class ShortcutAnswer:
    answer: str
    provenance: str
    name: str


def greeting_filter(response: str = DEFAULT_GREETING) -> PreFilter:
    return PreFilter(
        name="greeting",
        pattern=re.compile(r"\b(ciao|salve|hello)\b", re.IGNORECASE),
        response=response,
    )


def match_prefilters(question: str, prefilters: list[PreFilter]) -> ShortcutAnswer | None:
    """Return the response of the first matching pre-filter."""
    for prefilter in prefilters:
        if prefilter.matches(question):
            return ShortcutAnswer(
                answer=prefilter.response, provenance="greeting", name=prefilter.name
            )
    return None


class FAQStore(Protocol):
    def find(self, query: str) -> FAQEntry | None:
        """Return the first entry whose question contains ``query``."""
        raise NotImplementedError


@dataclass
class InMemoryFAQStore:
    """FAQ entries held in curation order."""
    entries: list[FAQEntry] = field(default_factory=list)

    @classmethod
    def from_json_file(cls, path: Path) -> "InMemoryFAQStore":
        """Load ``[{"question": ..., "answer": ...}]`` from a JSON file."""
        data = json.loads(path.read_text(encoding="utf-8"))
        entries = [
            FAQEntry(question=str(item["question"]), answer=str(item["answer"]))
            for item in data
            if isinstance(item, dict) and item.get("question") and item.get("answer")
        ]
        return cls(entries=entries)

    def find(self, query: str) -> FAQEntry | None:
        needle = query.casefold()
        for entry in self.entries:
            if needle in entry.question.casefold():
                return entry
        return None


class SQLFAQStore:
    """FAQ entries stored in a SQL ``faqs`` table."""
    def __init__(self, connection_uri: str) -> None:
        """Initialize the FAQ store and ensure the table exists."""
        try:
            from sqlalchemy import Column, Integer, MetaData, Table, Text, create_engine
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise FAQStoreError("sqlalchemy is required to use the SQL FAQ store") from exc

        self._engine = create_engine(connection_uri)
        self._metadata = MetaData()
        self._table = Table(
            "faqs",
            self._metadata,
            Column("id", Integer, primary_key=True, autoincrement=True),
            Column("question", Text, nullable=False),
            Column("answer", Text, nullable=False),
        )
        self._metadata.create_all(self._engine)

    def add(self, entry: FAQEntry) -> None:
        """Append an entry at the end of the curation order."""
        with self._engine.begin() as conn:
            conn.execute(self._table.insert().values(question=entry.question, answer=entry.answer))

    def find(self, query: str) -> FAQEntry | None:
        from sqlalchemy import select
        from sqlalchemy.exc import SQLAlchemyError

        pattern = f"%{_escape_like(query)}%"
        statement = (
            select(self._table.c.question, self._table.c.answer)
            .where(self._table.c.question.ilike(pattern, escape="\\"))
            .order_by(self._table.c.id)
            .limit(1)
        )
        try:
            with self._engine.connect() as conn:
                row = conn.execute(statement).first()
        except SQLAlchemyError as exc:
            raise FAQStoreError(f"FAQ lookup failed: {exc}", stage="faq") from exc
        if row is None:
            return None
        return FAQEntry(question=row.question, answer=row.answer)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass
class FAQShortcut:
    """Answer from curated FAQs before any model is involved."""
    store: FAQStore
    marker: str = FAQ_MARKER

    def lookup(self, question: str) -> ShortcutAnswer | None:
        """Return the first matching FAQ answer tagged with the FAQ marker."""
        try:
            entry = self.store.find(question)
        except FAQStoreError as exc:
            logger.warning("faq_lookup_failed", extra={"question": question, "detail": str(exc)})
            return None
        if entry is None:
            return None
        logger.info("faq_hit", extra={"question": question, "faq_question": entry.question})
        return ShortcutAnswer(answer=f"{self.marker}{entry.answer}", provenance="faq", name="faq")
