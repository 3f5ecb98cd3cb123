"""Failures raised by the sync engine.

Everything that propagates out of ``SyncService.sync`` is a ``SyncError``
except ``NotModified``, which marks an expected no-op and must be handled
on its own.
"""


class SyncError(Exception):
    """Base class for source-level sync failures."""


class MissingBaseURL(SyncError):
    """The source has no base URL to crawl."""


class HostNotAllowed(SyncError):
    def __init__(self, host: str) -> None:
        super().__init__(f"host {host or '<empty>'} not in allowlist")
        self.host = host


class RobotsDisallowed(SyncError):
    def __init__(self, url: str) -> None:
        super().__init__(f"robots disallow {url}")
        self.url = url


class FetchExhausted(SyncError):
    def __init__(self, url: str, attempts: int) -> None:
        super().__init__(f"failed to fetch {url} after {attempts} attempt(s)")
        self.url = url
        self.attempts = attempts


class SitemapUnavailable(SyncError):
    def __init__(self, base_url: str, errors: list[Exception] | None = None) -> None:
        super().__init__(f"no sitemap available for {base_url}")
        self.base_url = base_url
        self.errors = errors or []


class NotModified(Exception):
    """The source's sitemap has not changed since the stored validators."""
