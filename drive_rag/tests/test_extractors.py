from __future__ import annotations

import pytest

from drive_rag.loaders.drive import ContentSourceError, FileMetadata, InMemoryContentSource
from drive_rag.loaders.extractors import ContentExtractor, load_document_info, parse_tags
from drive_rag.rag.errors import ExtractionError
from drive_rag.tests.helpers import text_file


def test_plain_text_is_downloaded_verbatim() -> None:
    source = InMemoryContentSource()
    source.put("doc-1", text_file("a.txt"), content="Caffè e musica".encode("utf-8"))
    info = load_document_info(source, "doc-1")
    result = ContentExtractor(source=source).extract(info)
    assert result.available is True
    assert result.strategy == "plain_text"
    assert result.text == "Caffè e musica"


def test_google_docs_are_exported_as_text() -> None:
    source = InMemoryContentSource()
    metadata = FileMetadata(name="Setlist", mime_type="application/vnd.google-apps.document")
    source.put("doc-2", metadata, exports={"text/plain": "Opening song"})
    result = ContentExtractor(source=source).extract(load_document_info(source, "doc-2"))
    assert result.text == "Opening song"
    assert result.strategy == "export"


def test_spreadsheets_are_exported_as_csv() -> None:
    source = InMemoryContentSource()
    metadata = FileMetadata(name="Budget", mime_type="application/vnd.google-apps.spreadsheet")
    source.put("doc-3", metadata, exports={"text/csv": "item,cost\nlights,100"})
    result = ContentExtractor(source=source).extract(load_document_info(source, "doc-3"))
    assert "lights,100" in result.text


def test_unsupported_format_yields_no_content() -> None:
    source = InMemoryContentSource()
    source.put("img", FileMetadata(name="cover.png", mime_type="image/png"), content=b"\x89PNG")
    result = ContentExtractor(source=source).extract(load_document_info(source, "img"))
    assert result.text == ""
    assert result.available is False
    assert result.strategy == "skip"


def test_source_failure_becomes_extraction_error() -> None:
    source = InMemoryContentSource()
    metadata = FileMetadata(name="Setlist", mime_type="application/vnd.google-apps.document")
    source.put("doc-4", metadata)
    with pytest.raises(ExtractionError) as excinfo:
        ContentExtractor(source=source).extract(load_document_info(source, "doc-4"))
    assert excinfo.value.context["document_id"] == "doc-4"


def test_document_without_parents_has_no_folder_path() -> None:
    source = InMemoryContentSource()
    source.put("doc-5", text_file("orphan.txt"))
    assert load_document_info(source, "doc-5").folder_path is None


def test_folder_path_and_tags_are_derived() -> None:
    source = InMemoryContentSource(folders={"f1": "Press"})
    source.put("doc-6", text_file("kit.txt", parents=("f1",), tags="press, kit,press"))
    info = load_document_info(source, "doc-6")
    assert info.folder_path == "/Press"
    assert info.tags == ("press", "kit")


def test_failed_folder_lookup_leaves_folder_path_empty() -> None:
    source = InMemoryContentSource()
    source.put("doc-7", text_file("lost.txt", parents=("missing",)))
    assert load_document_info(source, "doc-7").folder_path is None


def test_missing_document_metadata_raises() -> None:
    with pytest.raises(ContentSourceError):
        load_document_info(InMemoryContentSource(), "nope")


def test_parse_tags_drops_blanks() -> None:
    assert parse_tags(" , a,, b ") == ("a", "b")
    assert parse_tags("") == ()
