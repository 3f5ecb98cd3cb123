import asyncio
from typing import TYPE_CHECKING
from urllib.parse import urlparse

from protego import Protego

from external_sync.ingest.errors import RobotsDisallowed
from external_sync.monitoring.logging_utils import get_event_logger

if TYPE_CHECKING:
    from external_sync.ingest.fetcher import Fetcher

log_event = get_event_logger("robots")

DISALLOW_ALL = "User-agent: *\nDisallow: /\n"


def parse_robots(status: int, robots_txt: str) -> Protego | None:
    """Build a ruleset from a robots.txt response.

    Returns ``None`` when no rules apply: the file is absent (404) or the
    server answered with another 4xx. 5xx responses disallow everything.
    Rules are matched longest-path-first with ``*`` and ``$`` wildcards.
    """
    if 200 <= status < 300:
        return Protego.parse(robots_txt)
    if status >= 500:
        return Protego.parse(DISALLOW_ALL)
    return None


class RobotsGate:
    """Per-host robots.txt cache owned by one engine instance.

    Entries are never expired; a host's rules are fetched once for the
    lifetime of the gate.
    """

    def __init__(self, fetcher: "Fetcher", user_agent: str) -> None:
        self._fetcher = fetcher
        self.user_agent = user_agent
        self._rules: dict[str, Protego | None] = {}
        self._lock = asyncio.Lock()

    async def ensure_allowed(self, url: str) -> None:
        parsed = urlparse(url)
        host = parsed.netloc.lower()
        async with self._lock:
            cached = host in self._rules
            rules = self._rules.get(host)
        if not cached:
            fetched = await self._load(parsed.scheme or "https", host)
            async with self._lock:
                rules = self._rules.setdefault(host, fetched)
        if rules is None:
            return
        if not rules.can_fetch(url, self.user_agent):
            log_event("deny", url=url, reason="robots")
            raise RobotsDisallowed(url)

    async def _load(self, scheme: str, host: str) -> Protego | None:
        robots_url = f"{scheme}://{host}/robots.txt"
        response = await self._fetcher.fetch(robots_url, skip_robots=True)
        log_event("robots", host=host, status=response.status)
        return parse_robots(response.status, response.text())

    def cached_hosts(self) -> list[str]:
        return sorted(self._rules)
