"""Ingest subpackage: sitemap-driven sync of external sources."""

from external_sync.ingest.allowlist import (
    ensure_host_allowed,
    is_host_allowed,
    normalize_allowlist,
    normalize_base_url,
)
from external_sync.ingest.errors import (
    FetchExhausted,
    HostNotAllowed,
    MissingBaseURL,
    NotModified,
    RobotsDisallowed,
    SitemapUnavailable,
    SyncError,
)
from external_sync.ingest.extract import compute_hash, extract_items, infer_kind
from external_sync.ingest.fetcher import Fetcher, FetchResponse, open_session
from external_sync.ingest.ratelimit import RateLimiter
from external_sync.ingest.robots import RobotsGate, parse_robots
from external_sync.ingest.service import SyncService, open_service
from external_sync.ingest.sitemap import SitemapPayload, SitemapResolver, parse_sitemap_document
from external_sync.ingest.types import (
    ConditionalValidators,
    ExtractedItem,
    Source,
    SyncResult,
)

__all__ = [
    # allowlist
    "ensure_host_allowed",
    "is_host_allowed",
    "normalize_allowlist",
    "normalize_base_url",
    # errors
    "FetchExhausted",
    "HostNotAllowed",
    "MissingBaseURL",
    "NotModified",
    "RobotsDisallowed",
    "SitemapUnavailable",
    "SyncError",
    # extract
    "compute_hash",
    "extract_items",
    "infer_kind",
    # fetcher
    "Fetcher",
    "FetchResponse",
    "open_session",
    # ratelimit
    "RateLimiter",
    # robots
    "RobotsGate",
    "parse_robots",
    # service
    "SyncService",
    "open_service",
    # sitemap
    "SitemapPayload",
    "SitemapResolver",
    "parse_sitemap_document",
    # types
    "ConditionalValidators",
    "ExtractedItem",
    "Source",
    "SyncResult",
]
