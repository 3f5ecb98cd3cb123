"""External sync package."""

from external_sync.ingest import (
    ConditionalValidators,
    ExtractedItem,
    FetchExhausted,
    HostNotAllowed,
    MissingBaseURL,
    NotModified,
    RobotsDisallowed,
    SitemapUnavailable,
    Source,
    SyncError,
    SyncResult,
    SyncService,
    open_service,
)
from external_sync.pipeline import SourceOutcome, run_sync, summarize, sync_source
from external_sync.storage import RedisItemStore, RedisSourceStore, SourceNotFound, SourceRecord

__all__ = [
    # ingest
    "ConditionalValidators",
    "ExtractedItem",
    "FetchExhausted",
    "HostNotAllowed",
    "MissingBaseURL",
    "NotModified",
    "RobotsDisallowed",
    "SitemapUnavailable",
    "Source",
    "SyncError",
    "SyncResult",
    "SyncService",
    "open_service",
    # pipeline
    "SourceOutcome",
    "run_sync",
    "summarize",
    "sync_source",
    # storage
    "RedisItemStore",
    "RedisSourceStore",
    "SourceNotFound",
    "SourceRecord",
]
