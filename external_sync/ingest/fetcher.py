import asyncio
from dataclasses import dataclass
from typing import Iterable
from urllib.parse import urljoin

import aiohttp

from external_sync.config import Settings
from external_sync.ingest.allowlist import ensure_host_allowed, normalize_allowlist, parse_host
from external_sync.ingest.errors import FetchExhausted
from external_sync.ingest.ratelimit import RateLimiter
from external_sync.ingest.robots import RobotsGate
from external_sync.ingest.types import ConditionalValidators
from external_sync.monitoring.logging_utils import get_event_logger
from external_sync.monitoring.metrics import record_fetch

log_event = get_event_logger("fetcher")

READ_CHUNK_BYTES = 64 * 1024
MAX_REDIRECTS = 5
REDIRECT_STATUSES = {301, 302, 303, 307, 308}


@dataclass
class FetchResponse:
    url: str
    status: int
    body: bytes
    validators: ConditionalValidators
    location: str | None = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def not_modified(self) -> bool:
        return self.status == 304

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


def open_session(timeout_ms: int | None = None) -> aiohttp.ClientSession:
    timeout_s = (timeout_ms or Settings.http_timeout_ms) / 1000
    return aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout_s))


async def read_capped(response: aiohttp.ClientResponse, max_bytes: int) -> bytes:
    chunks: list[bytes] = []
    size = 0
    async for chunk in response.content.iter_chunked(READ_CHUNK_BYTES):
        remaining = max_bytes - size
        if len(chunk) >= remaining:
            chunks.append(chunk[:remaining])
            break
        chunks.append(chunk)
        size += len(chunk)
    return b"".join(chunks)


class Fetcher:
    """Conditional GET with bounded retries behind the shared rate limiter.

    Redirects are followed by hand so every hop is checked against the
    allowlist (and robots.txt, unless skipped) before it is requested.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        limiter: RateLimiter,
        allowlist: Iterable[str],
        *,
        user_agent: str | None = None,
        attempts: int | None = None,
        max_body_bytes: int | None = None,
    ) -> None:
        self.session = session
        self.limiter = limiter
        self.allowlist = normalize_allowlist(allowlist)
        self.user_agent = (user_agent or "").strip() or Settings.user_agent
        self.attempts = max(1, attempts or Settings.fetch_attempts)
        self.max_body_bytes = max_body_bytes or Settings.max_body_bytes
        self.robots = RobotsGate(self, self.user_agent)

    async def fetch(
        self,
        url: str,
        validators: ConditionalValidators | None = None,
        skip_robots: bool = False,
    ) -> FetchResponse:
        response = await self._fetch_once(url, validators, skip_robots)
        for _ in range(MAX_REDIRECTS):
            if response.status not in REDIRECT_STATUSES or not response.location:
                return response
            target = urljoin(response.url, response.location)
            log_event("redirect", url=response.url, to=target)
            response = await self._fetch_once(target, validators, skip_robots)
        return response

    async def _fetch_once(
        self,
        url: str,
        validators: ConditionalValidators | None,
        skip_robots: bool,
    ) -> FetchResponse:
        host = parse_host(url)
        ensure_host_allowed(host, self.allowlist)
        if not skip_robots:
            await self.robots.ensure_allowed(url)

        headers = {"User-Agent": self.user_agent}
        if validators is not None:
            headers.update(validators.request_headers())

        last_error: Exception | None = None
        for attempt in range(1, self.attempts + 1):
            await self.limiter.wait()
            try:
                async with self.session.get(
                    url, headers=headers, allow_redirects=False
                ) as response:
                    body = await read_capped(response, self.max_body_bytes)
                    result = FetchResponse(
                        url=url,
                        status=response.status,
                        body=body,
                        validators=ConditionalValidators.from_headers(response.headers),
                        location=response.headers.get("Location"),
                    )
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                last_error = exc
                record_fetch(host, "retry")
                log_event(
                    "retry", url=url, attempt=attempt, error=type(exc).__name__
                )
                continue
            record_fetch(host, "ok")
            return result

        record_fetch(host, "exhausted")
        raise FetchExhausted(url, self.attempts) from last_error
