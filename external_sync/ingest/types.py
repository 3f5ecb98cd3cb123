from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime
from typing import Any, Mapping

KIND_PROJECT = "project"
KIND_SERVICE = "service"
KIND_POST = "post"


def format_http_date(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


def parse_http_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class Source:
    """Snapshot of a configured source, read once per sync."""

    id: str
    name: str
    base_url: str | None
    source_type: str = "auto"
    etag: str | None = None
    last_modified: datetime | None = None

    @property
    def validators(self) -> ConditionalValidators:
        return ConditionalValidators(etag=self.etag, last_modified=self.last_modified)


@dataclass(frozen=True)
class ConditionalValidators:
    etag: str | None = None
    last_modified: datetime | None = None

    def request_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self.etag:
            headers["If-None-Match"] = self.etag
        if self.last_modified is not None:
            headers["If-Modified-Since"] = format_http_date(self.last_modified)
        return headers

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> ConditionalValidators:
        return cls(
            etag=headers.get("ETag") or None,
            last_modified=parse_http_date(headers.get("Last-Modified")),
        )


@dataclass(frozen=True)
class ExtractedItem:
    source_id: str
    kind: str
    title: str
    url: str
    hash: str
    summary: str | None = None
    content: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    published_at: datetime | None = None
    visible: bool = True

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["published_at"] = (
            self.published_at.isoformat() if self.published_at else None
        )
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> ExtractedItem:
        published_at = payload.get("published_at")
        return cls(
            source_id=str(payload["source_id"]),
            kind=str(payload["kind"]),
            title=str(payload["title"]),
            url=str(payload["url"]),
            hash=str(payload["hash"]),
            summary=payload.get("summary"),
            content=payload.get("content"),
            metadata=dict(payload.get("metadata") or {}),
            published_at=datetime.fromisoformat(published_at) if published_at else None,
            visible=bool(payload.get("visible", True)),
        )


@dataclass
class SyncResult:
    items: list[ExtractedItem]
    fetched_at: datetime
    etag: str | None = None
    last_modified: datetime | None = None
