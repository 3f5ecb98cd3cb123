from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from external_sync.ingest.types import Source


@dataclass
class SourceRecord:
    id: str
    name: str
    base_url: str
    source_type: str = "auto"
    enabled: bool = True
    etag: str | None = None
    last_modified: datetime | None = None
    last_synced_at: datetime | None = None

    def snapshot(self, base_url: str | None = None) -> Source:
        return Source(
            id=self.id,
            name=self.name,
            base_url=base_url if base_url is not None else self.base_url,
            source_type=self.source_type,
            etag=self.etag,
            last_modified=self.last_modified,
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "base_url": self.base_url,
            "source_type": self.source_type,
            "enabled": self.enabled,
            "etag": self.etag,
            "last_modified": _iso(self.last_modified),
            "last_synced_at": _iso(self.last_synced_at),
        }


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
