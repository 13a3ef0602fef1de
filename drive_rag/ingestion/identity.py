from __future__ import annotations

"""Resolve inbound change notifications to a document id and event kind.

Three notification shapes are recognized, tried in order: a Drive push
notification carrying ``X-Goog-Resource-Uri`` (the file id is parsed from the
``/files/<id>`` path), one carrying only ``X-Goog-Resource-Id``, and a JSON
body with ``fileId``/``file_id``/``id``. Removal is detected from an explicit
state flag only; the source is never probed for existence.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol
from urllib.parse import unquote, urlparse

from drive_rag.rag.errors import ClientInputError
from drive_rag.rag.types import ChangeEvent, EventKind

REMOVED_STATES = frozenset({"remove", "removed", "trash", "trashed", "delete", "deleted"})

_FILES_PATH_RE = re.compile(r"/files/([^/?#]+)")


@dataclass(frozen=True)
class ChangeNotification:
    """Transport-neutral view of an inbound notification."""
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None

    @classmethod
    def from_http(cls, headers: Mapping[str, str], body: Any = None) -> "ChangeNotification":
        """Build a notification with lower-cased header names."""
        return cls(headers={key.lower(): value for key, value in headers.items()}, body=body)

    def header(self, name: str) -> str | None:
        value = self.headers.get(name.lower())
        if value is None:
            return None
        value = value.strip()
        return value or None


class IdentityResolver(Protocol):
    name: str

    def resolve(self, notification: ChangeNotification) -> ChangeEvent | None:
        """Return the change event, or None when the shape does not apply."""
        raise NotImplementedError


def _kind_from_state(state: str | None) -> EventKind:
    if state and state.strip().lower() in REMOVED_STATES:
        return EventKind.REMOVED
    return EventKind.CHANGED


@dataclass(frozen=True)
class ResourceUriResolver:
    """Parse the file id out of the ``X-Goog-Resource-Uri`` header."""
    name: str = "resource_uri"

    def resolve(self, notification: ChangeNotification) -> ChangeEvent | None:
        uri = notification.header("x-goog-resource-uri")
        if not uri:
            return None
        match = _FILES_PATH_RE.search(urlparse(uri).path)
        if not match:
            return None
        return ChangeEvent(
            document_id=unquote(match.group(1)),
            kind=_kind_from_state(notification.header("x-goog-resource-state")),
        )


@dataclass(frozen=True)
class ResourceIdResolver:
    """Use the ``X-Goog-Resource-Id`` header as the document id."""
    name: str = "resource_id"

    def resolve(self, notification: ChangeNotification) -> ChangeEvent | None:
        resource_id = notification.header("x-goog-resource-id")
        if not resource_id:
            return None
        return ChangeEvent(
            document_id=resource_id,
            kind=_kind_from_state(notification.header("x-goog-resource-state")),
        )


@dataclass(frozen=True)
class JsonBodyResolver:
    """Read the document id and state from a JSON notification body."""
    id_keys: tuple[str, ...] = ("fileId", "file_id", "id")
    name: str = "json_body"

    def resolve(self, notification: ChangeNotification) -> ChangeEvent | None:
        body = notification.body
        if not isinstance(body, dict):
            return None
        document_id = None
        for key in self.id_keys:
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                document_id = value.strip()
                break
        if document_id is None:
            return None
        if body.get("removed") is True or body.get("trashed") is True:
            kind = EventKind.REMOVED
        else:
            state = body.get("state")
            kind = _kind_from_state(state if isinstance(state, str) else None)
        return ChangeEvent(document_id=document_id, kind=kind)


def default_resolvers() -> list[IdentityResolver]:
    return [ResourceUriResolver(), ResourceIdResolver(), JsonBodyResolver()]


@dataclass
class CompositeIdentityResolver:
    """Try each resolver in order and return the first resolved event."""
    resolvers: list[IdentityResolver] = field(default_factory=default_resolvers)

    def resolve(self, notification: ChangeNotification) -> ChangeEvent:
        for resolver in self.resolvers:
            event = resolver.resolve(notification)
            if event is not None:
                return event
        raise ClientInputError("Change notification does not identify a document")
