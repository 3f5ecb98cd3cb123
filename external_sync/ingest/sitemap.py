from dataclasses import dataclass
from typing import Iterable
from urllib.parse import urljoin, urlparse
import xml.etree.ElementTree as ElementTree

from external_sync.ingest.allowlist import is_host_allowed, normalize_allowlist
from external_sync.ingest.errors import (
    FetchExhausted,
    NotModified,
    RobotsDisallowed,
    SitemapUnavailable,
    SyncError,
)
from external_sync.ingest.fetcher import Fetcher
from external_sync.ingest.types import ConditionalValidators, Source
from external_sync.monitoring.logging_utils import get_event_logger

log_event = get_event_logger("sitemap")

DEFAULT_SITEMAP_PATHS = ("/sitemap-index.xml", "/sitemap.xml")
SITEMAP_INDEX = "sitemapindex"
URLSET = "urlset"
_ENTRY_TAGS = {SITEMAP_INDEX: "sitemap", URLSET: "url"}


@dataclass
class SitemapPayload:
    urls: list[str]
    validators: ConditionalValidators


def tag_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def parse_sitemap_document(body: bytes | str) -> tuple[str, list[str]]:
    """Return the document kind and the ``<loc>`` of each top-level entry.

    Raises ``ElementTree.ParseError`` for malformed XML and ``ValueError``
    for a root element that is neither ``sitemapindex`` nor ``urlset``.
    """
    root = ElementTree.fromstring(body)
    kind = tag_name(root.tag)
    entry_tag = _ENTRY_TAGS.get(kind)
    if entry_tag is None:
        raise ValueError(f"unsupported sitemap root {kind}")
    locs: list[str] = []
    for entry in root:
        if tag_name(entry.tag) != entry_tag:
            continue
        for child in entry:
            if tag_name(child.tag) == "loc" and child.text and child.text.strip():
                locs.append(child.text.strip())
                break
    return kind, locs


class SitemapResolver:
    def __init__(
        self,
        fetcher: Fetcher,
        allowlist: Iterable[str],
        max_pages: int,
        paths: Iterable[str] = DEFAULT_SITEMAP_PATHS,
    ) -> None:
        self.fetcher = fetcher
        self.allowlist = normalize_allowlist(allowlist)
        self.max_pages = max_pages
        self.paths = tuple(paths)

    async def resolve(self, source: Source) -> SitemapPayload:
        base_url = source.base_url or ""
        validators = source.validators
        failures: list[Exception] = []
        for path in self.paths:
            target = urljoin(base_url, path)
            try:
                payload = await self._retrieve(target, validators)
            except NotModified:
                # A 304 on any candidate stands for the whole source.
                log_event("not_modified", url=target)
                raise
            except SyncError as exc:
                log_event("skip", url=target, reason=type(exc).__name__)
                failures.append(exc)
                continue
            log_event("sitemap", url=target, urls=len(payload.urls))
            return payload
        raise _resolution_error(base_url, failures)

    async def _retrieve(
        self, target: str, validators: ConditionalValidators
    ) -> SitemapPayload:
        response = await self.fetcher.fetch(target, validators)
        if response.not_modified:
            raise NotModified(target)
        if not response.ok:
            raise SitemapUnavailable(target)
        try:
            urls = await self._collect(target, response.body, nested=False)
        except (ElementTree.ParseError, ValueError) as exc:
            raise SitemapUnavailable(target) from exc
        if not urls:
            raise SitemapUnavailable(target)
        return SitemapPayload(urls=urls, validators=response.validators)

    async def _collect(self, target: str, body: bytes, nested: bool) -> list[str]:
        kind, locs = parse_sitemap_document(body)
        urls: list[str] = []
        if kind == URLSET:
            for loc in locs:
                page_url = self._resolve_loc(target, loc)
                if page_url is None:
                    continue
                urls.append(page_url)
                if len(urls) >= self.max_pages:
                    break
            return urls

        if nested:
            # Only one level of index nesting is followed.
            log_event("skip", url=target, reason="nested_index")
            return urls
        for loc in locs:
            nested_url = self._resolve_loc(target, loc)
            if nested_url is None:
                continue
            try:
                nested_urls = await self._retrieve_nested(nested_url)
            except (SyncError, ElementTree.ParseError, ValueError) as exc:
                log_event("skip", url=nested_url, reason=type(exc).__name__)
                continue
            urls.extend(nested_urls[: self.max_pages - len(urls)])
            if len(urls) >= self.max_pages:
                break
        return urls

    async def _retrieve_nested(self, target: str) -> list[str]:
        response = await self.fetcher.fetch(target)
        if not response.ok:
            raise SitemapUnavailable(target)
        return await self._collect(target, response.body, nested=True)

    def _resolve_loc(self, base: str, loc: str) -> str | None:
        absolute = urljoin(base, loc)
        parsed = urlparse(absolute)
        if parsed.scheme not in {"http", "https"}:
            return None
        if not is_host_allowed(parsed.hostname or "", self.allowlist):
            log_event("skip", url=absolute, reason="host_not_allowed")
            return None
        return absolute


def _resolution_error(base_url: str, failures: list[Exception]) -> SyncError:
    for error_type in (RobotsDisallowed, FetchExhausted):
        if failures and all(isinstance(exc, error_type) for exc in failures):
            return failures[-1]
    return SitemapUnavailable(base_url, failures)
