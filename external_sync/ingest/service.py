from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Iterable

import aiohttp

from external_sync.config import Settings
from external_sync.ingest.allowlist import (
    ensure_host_allowed,
    is_host_allowed,
    normalize_allowlist,
    parse_host,
)
from external_sync.ingest.errors import MissingBaseURL, SyncError
from external_sync.ingest.extract import extract_items
from external_sync.ingest.fetcher import Fetcher, open_session
from external_sync.ingest.ratelimit import RateLimiter
from external_sync.ingest.sitemap import SitemapResolver
from external_sync.ingest.types import ExtractedItem, Source, SyncResult
from external_sync.monitoring.logging_utils import get_event_logger
from external_sync.monitoring.metrics import record_page

log_event = get_event_logger("sync")


class SyncService:
    """Sitemap-driven sync of one source at a time.

    One instance owns the rate limiter and robots cache, so every sync run
    through it shares the same politeness budget. Pages of a single sync
    are fetched one after another, in sitemap order.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        allowlist: Iterable[str] | None = None,
        *,
        rate_limit_rpm: int | None = None,
        user_agent: str | None = None,
        max_pages: int | None = None,
        attempts: int | None = None,
        max_body_bytes: int | None = None,
    ) -> None:
        self.allowlist = normalize_allowlist(
            Settings.domain_allowlist if allowlist is None else allowlist
        )
        self.max_pages = max_pages if max_pages and max_pages > 0 else Settings.max_pages
        self.limiter = RateLimiter(rate_limit_rpm or Settings.rate_limit_rpm)
        self.fetcher = Fetcher(
            session,
            self.limiter,
            self.allowlist,
            user_agent=user_agent,
            attempts=attempts,
            max_body_bytes=max_body_bytes,
        )
        self.sitemaps = SitemapResolver(self.fetcher, self.allowlist, self.max_pages)

    @property
    def user_agent(self) -> str:
        return self.fetcher.user_agent

    async def sync(self, source: Source) -> SyncResult:
        """Crawl ``source`` and return the items found on its sitemap pages.

        Raises ``NotModified`` when the sitemap answers 304 for the stored
        validators, and a ``SyncError`` for source-level failures.
        """
        if not source.base_url:
            raise MissingBaseURL(f"source {source.id} has no base url")
        ensure_host_allowed(parse_host(source.base_url), self.allowlist)

        sitemap = await self.sitemaps.resolve(source)
        items = await self._fetch_pages(source, sitemap.urls)
        log_event("sync", source=source.id, urls=len(sitemap.urls), items=len(items))
        return SyncResult(
            items=items,
            etag=sitemap.validators.etag,
            last_modified=sitemap.validators.last_modified,
            fetched_at=datetime.now(timezone.utc),
        )

    async def _fetch_pages(self, source: Source, urls: list[str]) -> list[ExtractedItem]:
        seen: set[str] = set()
        items: list[ExtractedItem] = []
        for page_url in urls[: self.max_pages]:
            if len(items) >= self.max_pages:
                break
            host = parse_host(page_url)
            if not is_host_allowed(host, self.allowlist):
                log_event("skip", url=page_url, reason="host_not_allowed")
                continue
            try:
                response = await self.fetcher.fetch(page_url)
            except SyncError as exc:
                log_event("skip", url=page_url, reason=type(exc).__name__)
                continue
            if response.status != 200:
                log_event("skip", url=page_url, status=response.status)
                continue
            record_page(host)
            for item in extract_items(source, page_url, response.body):
                if item.hash in seen:
                    continue
                seen.add(item.hash)
                items.append(item)
                if len(items) >= self.max_pages:
                    break
        return items


@asynccontextmanager
async def open_service(**kwargs) -> AsyncIterator[SyncService]:
    async with open_session() as session:
        yield SyncService(session, **kwargs)
