from __future__ import annotations

"""Mime-type dispatch from source documents to raw text."""

import logging
from dataclasses import dataclass, field
from typing import Protocol

from drive_rag.loaders.drive import ContentSource, ContentSourceError
from drive_rag.rag.errors import ExtractionError
from drive_rag.rag.types import DocumentInfo

logger = logging.getLogger(__name__)

PLAIN_TEXT_MIME_TYPES = frozenset({"text/plain", "text/markdown", "text/csv"})

EXPORT_MIME_TYPES = {
    "application/vnd.google-apps.document": "text/plain",
    "application/vnd.google-apps.presentation": "text/plain",
    "application/vnd.google-apps.spreadsheet": "text/csv",
}


@dataclass(frozen=True)
class ExtractionResult:
    """Extracted text and whether the format was supported."""
    text: str
    available: bool
    strategy: str


class ExtractionStrategy(Protocol):
    name: str

    def supports(self, mime_type: str) -> bool:
        raise NotImplementedError

    def extract(self, source: ContentSource, info: DocumentInfo) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class PlainTextStrategy:
    """Use the raw file bytes of text documents verbatim."""
    mime_types: frozenset[str] = PLAIN_TEXT_MIME_TYPES
    name: str = "plain_text"

    def supports(self, mime_type: str) -> bool:
        base = _base_mime(mime_type)
        return base in self.mime_types or base.startswith("text/")

    def extract(self, source: ContentSource, info: DocumentInfo) -> str:
        data = source.download(info.document_id)
        return data.decode("utf-8", errors="ignore")


@dataclass(frozen=True)
class ExportStrategy:
    """Ask the source to export native documents to a text format."""
    targets: dict[str, str] = field(default_factory=lambda: dict(EXPORT_MIME_TYPES))
    name: str = "export"

    def supports(self, mime_type: str) -> bool:
        return _base_mime(mime_type) in self.targets

    def extract(self, source: ContentSource, info: DocumentInfo) -> str:
        target = self.targets[_base_mime(info.mime_type)]
        return source.export(info.document_id, target)


def default_strategies() -> list[ExtractionStrategy]:
    return [PlainTextStrategy(), ExportStrategy()]


@dataclass
class ContentExtractor:
    """Dispatch a document to the first strategy supporting its mime type."""
    source: ContentSource
    strategies: list[ExtractionStrategy] = field(default_factory=default_strategies)

    def extract(self, info: DocumentInfo) -> ExtractionResult:
        """Return the document text, or empty text for unsupported formats."""
        for strategy in self.strategies:
            if not strategy.supports(info.mime_type):
                continue
            try:
                text = strategy.extract(self.source, info)
            except ContentSourceError as exc:
                raise ExtractionError(
                    str(exc),
                    stage="content_extracted",
                    context={"document_id": info.document_id, "mime_type": info.mime_type},
                ) from exc
            return ExtractionResult(text=text or "", available=True, strategy=strategy.name)
        logger.warning(
            "extraction_unsupported_format",
            extra={"document_id": info.document_id, "mime_type": info.mime_type},
        )
        return ExtractionResult(text="", available=False, strategy="skip")


def load_document_info(source: ContentSource, document_id: str) -> DocumentInfo:
    """Fetch file metadata and derive folder path and tags."""
    metadata = source.get_metadata(document_id)
    folder_path = None
    if metadata.parent_ids:
        parent_id = metadata.parent_ids[0]
        try:
            folder_path = f"/{source.get_folder_name(parent_id)}"
        except ContentSourceError as exc:
            logger.warning(
                "folder_lookup_failed",
                extra={"document_id": document_id, "parent_id": parent_id, "detail": str(exc)},
            )
    return DocumentInfo(
        document_id=document_id,
        name=metadata.name,
        mime_type=metadata.mime_type,
        modified_time=metadata.modified_time,
        folder_path=folder_path,
        tags=parse_tags(metadata.properties.get("tags", "")),
    )


def parse_tags(raw: str) -> tuple[str, ...]:
    """Split a comma-separated tag property, dropping blanks and duplicates."""
    tags: list[str] = []
    for value in raw.split(","):
        tag = value.strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tuple(tags)


def _base_mime(mime_type: str) -> str:
    return mime_type.split(";", 1)[0].strip().lower()
