"""Storage subpackage: persistence for sources and extracted items."""

from external_sync.storage.ports import ItemStore, SourceStore
from external_sync.storage.records import SourceRecord
from external_sync.storage.redis_store import RedisItemStore, RedisSourceStore, SourceNotFound

__all__ = [
    "ItemStore",
    "SourceStore",
    "SourceRecord",
    "RedisItemStore",
    "RedisSourceStore",
    "SourceNotFound",
]
