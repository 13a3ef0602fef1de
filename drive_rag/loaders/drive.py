from __future__ import annotations

"""Content sources: Google Drive and an in-memory stand-in."""

import io
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from drive_rag.rag.errors import CollaboratorError

logger = logging.getLogger(__name__)

DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive.readonly"]
_METADATA_FIELDS = "id,name,mimeType,modifiedTime,parents,properties"


class ContentSourceError(CollaboratorError):
    """Raised when the content source cannot serve a request."""
    pass


@dataclass(frozen=True)
class FileMetadata:
    """File attributes as reported by the content source."""
    name: str
    mime_type: str
    modified_time: str | None = None
    parent_ids: tuple[str, ...] = ()
    properties: dict[str, str] = field(default_factory=dict)


class ContentSource(Protocol):
    """Protocol for document stores the ingestion pipeline reads from."""

    def get_metadata(self, document_id: str) -> FileMetadata:
        raise NotImplementedError

    def get_folder_name(self, folder_id: str) -> str:
        raise NotImplementedError

    def download(self, document_id: str) -> bytes:
        raise NotImplementedError

    def export(self, document_id: str, mime_type: str) -> str:
        raise NotImplementedError


@dataclass
class GoogleDriveSource:
    """Content source backed by the Google Drive v3 API."""
    service_account_info: dict[str, Any] | None = None
    service_account_file: str | None = None
    service: Any = field(default=None, repr=False)

    def __post_init__(self) -> None:
        """Build the Drive service unless one was injected."""
        if self.service is not None:
            return
        if not (self.service_account_info or self.service_account_file):
            raise ContentSourceError(
                "GOOGLE_SERVICE_ACCOUNT_JSON or GOOGLE_SERVICE_ACCOUNT_FILE is required for Drive"
            )
        try:
            from google.oauth2 import service_account
            from googleapiclient.discovery import build
        except ImportError as exc:
            raise ContentSourceError(
                "google-api-python-client and google-auth are required for GoogleDriveSource"
            ) from exc
        if self.service_account_info:
            credentials = service_account.Credentials.from_service_account_info(
                self.service_account_info, scopes=DRIVE_SCOPES
            )
        else:
            credentials = service_account.Credentials.from_service_account_file(
                str(self.service_account_file), scopes=DRIVE_SCOPES
            )
        self.service = build("drive", "v3", credentials=credentials, cache_discovery=False)

    @classmethod
    def from_json(cls, raw: str) -> "GoogleDriveSource":
        """Build a source from a service account JSON string."""
        try:
            info = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ContentSourceError("GOOGLE_SERVICE_ACCOUNT_JSON is not valid JSON") from exc
        return cls(service_account_info=info)

    def get_metadata(self, document_id: str) -> FileMetadata:
        data = self._execute(
            self.service.files().get(
                fileId=document_id,
                fields=_METADATA_FIELDS,
                supportsAllDrives=True,
            ),
            "metadata",
            document_id,
        )
        properties = data.get("properties") or {}
        return FileMetadata(
            name=str(data.get("name") or document_id),
            mime_type=str(data.get("mimeType") or "application/octet-stream"),
            modified_time=data.get("modifiedTime"),
            parent_ids=tuple(data.get("parents") or ()),
            properties={str(key): str(value) for key, value in properties.items()},
        )

    def get_folder_name(self, folder_id: str) -> str:
        data = self._execute(
            self.service.files().get(fileId=folder_id, fields="name", supportsAllDrives=True),
            "folder",
            folder_id,
        )
        name = data.get("name")
        if not name:
            raise ContentSourceError(
                "Folder has no name", stage="folder", context={"folder_id": folder_id}
            )
        return str(name)

    def download(self, document_id: str) -> bytes:
        try:
            from googleapiclient.http import MediaIoBaseDownload
        except ImportError as exc:
            raise ContentSourceError("google-api-python-client is required for downloads") from exc
        request = self.service.files().get_media(fileId=document_id, supportsAllDrives=True)
        buffer = io.BytesIO()
        downloader = MediaIoBaseDownload(buffer, request)
        done = False
        try:
            while not done:
                status, done = downloader.next_chunk()
                if status:
                    logger.debug(
                        "drive_download_progress",
                        extra={"document_id": document_id, "progress": int(status.progress() * 100)},
                    )
        except Exception as exc:
            raise ContentSourceError(
                f"Failed to download file: {exc}",
                stage="download",
                context={"document_id": document_id},
            ) from exc
        return buffer.getvalue()

    def export(self, document_id: str, mime_type: str) -> str:
        data = self._execute(
            self.service.files().export(fileId=document_id, mimeType=mime_type),
            "export",
            document_id,
        )
        if isinstance(data, (bytes, bytearray)):
            return bytes(data).decode("utf-8", errors="ignore")
        return str(data or "")

    def _execute(self, request: Any, stage: str, document_id: str) -> Any:
        """Execute a Drive request, wrapping transport and API failures."""
        try:
            return request.execute()
        except Exception as exc:
            raise ContentSourceError(
                f"Drive {stage} request failed: {exc}",
                stage=stage,
                context={"document_id": document_id},
            ) from exc


@dataclass
class StoredFile:
    metadata: FileMetadata
    content: bytes = b""
    exports: dict[str, str] = field(default_factory=dict)


@dataclass
class InMemoryContentSource:
    """Dictionary-backed content source for local runs and tests."""
    files: dict[str, StoredFile] = field(default_factory=dict)
    folders: dict[str, str] = field(default_factory=dict)

    def put(
        self,
        document_id: str,
        metadata: FileMetadata,
        content: bytes = b"",
        exports: dict[str, str] | None = None,
    ) -> None:
        """Add or replace a stored file."""
        self.files[document_id] = StoredFile(
            metadata=metadata, content=content, exports=dict(exports or {})
        )

    def get_metadata(self, document_id: str) -> FileMetadata:
        return self._get(document_id, "metadata").metadata

    def get_folder_name(self, folder_id: str) -> str:
        try:
            return self.folders[folder_id]
        except KeyError as exc:
            raise ContentSourceError(
                "Folder not found", stage="folder", context={"folder_id": folder_id}
            ) from exc

    def download(self, document_id: str) -> bytes:
        return self._get(document_id, "download").content

    def export(self, document_id: str, mime_type: str) -> str:
        stored = self._get(document_id, "export")
        if mime_type not in stored.exports:
            raise ContentSourceError(
                f"Export to {mime_type} not available",
                stage="export",
                context={"document_id": document_id},
            )
        return stored.exports[mime_type]

    def _get(self, document_id: str, stage: str) -> StoredFile:
        try:
            return self.files[document_id]
        except KeyError as exc:
            raise ContentSourceError(
                "File not found", stage=stage, context={"document_id": document_id}
            ) from exc
