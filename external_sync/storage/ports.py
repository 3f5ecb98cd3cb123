from __future__ import annotations

from datetime import datetime
from typing import Protocol, Sequence

from external_sync.ingest.types import ExtractedItem
from external_sync.storage.records import SourceRecord


class SourceStore(Protocol):
    """
    Reads configured sources and records the validators of their last sync.
    """

    async def list(self) -> list[SourceRecord]:
        ...

    async def get(self, source_id: str) -> SourceRecord:
        ...

    async def update_sync_state(
        self,
        source_id: str,
        etag: str | None,
        last_modified: datetime | None,
        synced_at: datetime,
    ) -> None:
        ...


class ItemStore(Protocol):
    """
    Upserts extracted items keyed by (source_id, hash).
    """

    async def upsert(self, items: Sequence[ExtractedItem]) -> None:
        ...

    async def list(self, source_id: str) -> list[ExtractedItem]:
        ...
