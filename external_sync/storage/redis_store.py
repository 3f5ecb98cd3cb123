"""Redis-backed source and item stores.

Layout, under ``Settings.key_prefix``:

* ``sources``            set of source ids
* ``source:<id>``        hash of source fields
* ``items:<source_id>``  hash of item hash -> item JSON
"""

from __future__ import annotations

from datetime import datetime
import json
from typing import Iterable, Sequence
import uuid

import redis.asyncio as redis

from external_sync.config import Settings, SourceSeed
from external_sync.ingest.types import ExtractedItem
from external_sync.monitoring.logging_utils import get_event_logger
from external_sync.storage.records import SourceRecord

log_event = get_event_logger("store")


class SourceNotFound(KeyError):
    pass


def _decode_bytes(value: object | None) -> str:
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray)):
        return value.decode()
    return str(value)


def _decode_datetime(value: object | None) -> datetime | None:
    text = _decode_bytes(value)
    if not text:
        return None
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _encode_datetime(value: datetime | None) -> str:
    return value.isoformat() if value else ""


class RedisSourceStore:
    def __init__(self, redis_client: redis.Redis, prefix: str | None = None) -> None:
        self.redis = redis_client
        self.prefix = Settings.key_prefix if prefix is None else prefix

    @property
    def ids_key(self) -> str:
        return f"{self.prefix}sources"

    def source_key(self, source_id: str) -> str:
        return f"{self.prefix}source:{source_id}"

    async def list(self) -> list[SourceRecord]:
        ids = await self.redis.smembers(self.ids_key)
        records = []
        for raw_id in ids:
            raw = await self.redis.hgetall(self.source_key(_decode_bytes(raw_id)))
            if raw:
                records.append(self._from_hash(raw))
        return sorted(records, key=lambda record: (record.name.lower(), record.id))

    async def get(self, source_id: str) -> SourceRecord:
        raw = await self.redis.hgetall(self.source_key(source_id))
        if not raw:
            raise SourceNotFound(source_id)
        return self._from_hash(raw)

    async def find_by_base_url(self, base_url: str) -> SourceRecord | None:
        wanted = base_url.strip().lower()
        for record in await self.list():
            if record.base_url.strip().lower() == wanted:
                return record
        return None

    async def create(
        self,
        name: str,
        base_url: str,
        source_type: str = "auto",
        enabled: bool = True,
    ) -> SourceRecord:
        record = SourceRecord(
            id=str(uuid.uuid4()),
            name=name,
            base_url=base_url,
            source_type=source_type or "auto",
            enabled=enabled,
        )
        await self._save(record)
        log_event("source", id=record.id, name=record.name, base_url=record.base_url)
        return record

    async def ensure_defaults(self, seeds: Iterable[SourceSeed]) -> list[SourceRecord]:
        created = []
        for seed in seeds:
            name = seed.name.strip()
            base_url = seed.base_url.strip()
            if not name or not base_url:
                continue
            if await self.find_by_base_url(base_url) is not None:
                continue
            created.append(
                await self.create(
                    name, base_url, seed.source_type.strip() or "auto", seed.enabled
                )
            )
        return created

    async def update_sync_state(
        self,
        source_id: str,
        etag: str | None,
        last_modified: datetime | None,
        synced_at: datetime,
    ) -> None:
        key = self.source_key(source_id)
        if not await self.redis.exists(key):
            raise SourceNotFound(source_id)
        await self.redis.hset(
            key,
            mapping={
                "etag": etag or "",
                "last_modified": _encode_datetime(last_modified),
                "last_synced_at": _encode_datetime(synced_at),
            },
        )

    async def _save(self, record: SourceRecord) -> None:
        await self.redis.sadd(self.ids_key, record.id)
        await self.redis.hset(
            self.source_key(record.id),
            mapping={
                "id": record.id,
                "name": record.name,
                "base_url": record.base_url,
                "source_type": record.source_type,
                "enabled": 1 if record.enabled else 0,
                "etag": record.etag or "",
                "last_modified": _encode_datetime(record.last_modified),
                "last_synced_at": _encode_datetime(record.last_synced_at),
            },
        )

    @staticmethod
    def _from_hash(raw: dict) -> SourceRecord:
        return SourceRecord(
            id=_decode_bytes(raw.get(b"id")),
            name=_decode_bytes(raw.get(b"name")),
            base_url=_decode_bytes(raw.get(b"base_url")),
            source_type=_decode_bytes(raw.get(b"source_type")) or "auto",
            enabled=raw.get(b"enabled", b"1") == b"1",
            etag=_decode_bytes(raw.get(b"etag")) or None,
            last_modified=_decode_datetime(raw.get(b"last_modified")),
            last_synced_at=_decode_datetime(raw.get(b"last_synced_at")),
        )


class RedisItemStore:
    def __init__(self, redis_client: redis.Redis, prefix: str | None = None) -> None:
        self.redis = redis_client
        self.prefix = Settings.key_prefix if prefix is None else prefix

    def items_key(self, source_id: str) -> str:
        return f"{self.prefix}items:{source_id}"

    async def upsert(self, items: Sequence[ExtractedItem]) -> None:
        if not items:
            return
        by_source: dict[str, dict[str, str]] = {}
        for item in items:
            by_source.setdefault(item.source_id, {})[item.hash] = json.dumps(
                item.to_dict()
            )
        pipe = self.redis.pipeline()
        for source_id, mapping in by_source.items():
            pipe.hset(self.items_key(source_id), mapping=mapping)
        await pipe.execute()

    async def list(self, source_id: str) -> list[ExtractedItem]:
        raw = await self.redis.hgetall(self.items_key(source_id))
        items = [ExtractedItem.from_dict(json.loads(value)) for value in raw.values()]
        return sorted(items, key=lambda item: (item.url, item.title, item.hash))
