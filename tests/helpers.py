from dataclasses import dataclass, field
from typing import Callable

from aiohttp import web
from aiohttp.test_utils import TestServer

from external_sync.ingest.ratelimit import RateLimiter

FAST_RPM = 600_000

Handler = Callable[[web.Request], web.Response]


@dataclass
class RecordedRequest:
    path: str
    headers: dict[str, str] = field(default_factory=dict)


class FakeSite:
    """Local HTTP server whose routes are plain path -> handler callables."""

    def __init__(self) -> None:
        self.routes: dict[str, Handler] = {}
        self.requests: list[RecordedRequest] = []
        app = web.Application()
        app.router.add_route("GET", "/{tail:.*}", self._handle)
        self.server = TestServer(app)

    async def start(self) -> "FakeSite":
        await self.server.start_server()
        return self

    async def close(self) -> None:
        await self.server.close()

    @property
    def host(self) -> str:
        return self.server.host

    def url(self, path: str = "/") -> str:
        return str(self.server.make_url(path))

    def route(
        self,
        path: str,
        body: str | bytes = "",
        status: int = 200,
        headers: dict[str, str] | None = None,
    ) -> None:
        def handler(request: web.Request) -> web.Response:
            payload = body.encode() if isinstance(body, str) else body
            return web.Response(status=status, body=payload, headers=headers)

        self.routes[path] = handler

    def hits(self, path: str) -> int:
        return sum(1 for request in self.requests if request.path == path)

    def last_request(self, path: str) -> RecordedRequest:
        return [request for request in self.requests if request.path == path][-1]

    async def _handle(self, request: web.Request) -> web.Response:
        self.requests.append(RecordedRequest(path=request.path, headers=dict(request.headers)))
        handler = self.routes.get(request.path)
        if handler is None:
            return web.Response(status=404)
        return handler(request)


class CountingLimiter(RateLimiter):
    def __init__(self, requests_per_minute: int = FAST_RPM) -> None:
        super().__init__(requests_per_minute)
        self.waits = 0

    async def wait(self) -> None:
        self.waits += 1
        await super().wait()


def urlset(*locs: str) -> str:
    entries = "".join(f"<url><loc>{loc}</loc></url>" for loc in locs)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
        f"{entries}</urlset>"
    )


def sitemap_index(*locs: str) -> str:
    entries = "".join(f"<sitemap><loc>{loc}</loc></sitemap>" for loc in locs)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
        f"{entries}</sitemapindex>"
    )


def json_ld_page(*blocks: str) -> str:
    scripts = "".join(
        f'<script type="application/ld+json">{block}</script>' for block in blocks
    )
    return f"<!DOCTYPE html><html><head>{scripts}</head><body></body></html>"


class FakeRedis:
    """In-memory stand-in for the few redis.asyncio calls the stores make."""

    def __init__(self) -> None:
        self.hashes: dict[str, dict[bytes, bytes]] = {}
        self.sets: dict[str, set[bytes]] = {}

    @staticmethod
    def _encode(value: object) -> bytes:
        if isinstance(value, bytes):
            return value
        return str(value).encode()

    async def sadd(self, key: str, *values: object) -> int:
        members = self.sets.setdefault(key, set())
        before = len(members)
        members.update(self._encode(value) for value in values)
        return len(members) - before

    async def smembers(self, key: str) -> set[bytes]:
        return set(self.sets.get(key, set()))

    async def hset(self, key: str, mapping: dict[str, object]) -> int:
        target = self.hashes.setdefault(key, {})
        for field_name, value in mapping.items():
            target[self._encode(field_name)] = self._encode(value)
        return len(mapping)

    async def hgetall(self, key: str) -> dict[bytes, bytes]:
        return dict(self.hashes.get(key, {}))

    async def exists(self, key: str) -> int:
        return int(key in self.hashes or key in self.sets)

    def pipeline(self) -> "FakePipeline":
        return FakePipeline(self)


class FakePipeline:
    def __init__(self, redis_client: FakeRedis) -> None:
        self.redis = redis_client
        self.calls: list[tuple[str, dict[str, object]]] = []

    def hset(self, key: str, mapping: dict[str, object]) -> "FakePipeline":
        self.calls.append((key, mapping))
        return self

    async def execute(self) -> list[int]:
        return [await self.redis.hset(key, mapping=mapping) for key, mapping in self.calls]
