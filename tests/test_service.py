import json
import unittest

import aiohttp
from aiohttp import web

from external_sync.ingest.errors import HostNotAllowed, MissingBaseURL, NotModified
from external_sync.ingest.service import SyncService
from external_sync.ingest.types import Source
from tests.helpers import FAST_RPM, FakeSite, json_ld_page, urlset

PROJECT_BLOCK = json.dumps(
    {
        "@context": "https://schema.org",
        "@type": "CreativeWork",
        "name": "Test Project",
        "headline": "A summary",
        "about": "Detailed body",
        "datePublished": "2024-02-10",
        "image": "https://example.com/image.png",
    }
)


class SyncServiceTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.site = await FakeSite().start()
        self.site.route("/robots.txt", "User-agent: *\nAllow: /\n")
        self.session = aiohttp.ClientSession()

    async def asyncTearDown(self):
        await self.session.close()
        await self.site.close()

    def service(self, **kwargs) -> SyncService:
        kwargs.setdefault("rate_limit_rpm", FAST_RPM)
        kwargs.setdefault("attempts", 2)
        return SyncService(self.session, [self.site.host], **kwargs)

    def source(self, **kwargs) -> Source:
        return Source(id="src-1", name="Test", base_url=self.site.url("/"), **kwargs)

    def serve_sitemap(self, *locs: str, etag: str = '"abc123"') -> None:
        body = urlset(*locs)

        def handler(request: web.Request) -> web.Response:
            if request.headers.get("If-None-Match") == etag:
                return web.Response(status=304)
            return web.Response(
                body=body.encode(),
                headers={"ETag": etag, "Last-Modified": "Sat, 10 Feb 2024 12:00:00 GMT"},
            )

        self.site.routes["/sitemap.xml"] = handler

    async def test_sync_then_not_modified(self):
        self.serve_sitemap(self.site.url("/project/test/"))
        self.site.route("/project/test/", json_ld_page(PROJECT_BLOCK))
        service = self.service()

        result = await service.sync(self.source())

        self.assertEqual(len(result.items), 1)
        item = result.items[0]
        self.assertEqual(item.kind, "project")
        self.assertEqual(item.title, "Test Project")
        self.assertEqual(item.summary, "A summary")
        self.assertEqual(item.content, "Detailed body")
        self.assertEqual(item.metadata["image"], "https://example.com/image.png")
        self.assertEqual(result.etag, '"abc123"')
        self.assertEqual(result.last_modified.year, 2024)
        self.assertIsNotNone(result.fetched_at.tzinfo)

        with self.assertRaises(NotModified):
            await service.sync(self.source(etag=result.etag))
        self.assertEqual(self.site.hits("/project/test/"), 1)

    async def test_page_fetches_never_exceed_cap(self):
        pages = [f"/blog/{n}" for n in range(6)]
        self.serve_sitemap(*pages)
        for n, path in enumerate(pages):
            self.site.route(path, json_ld_page(json.dumps({"name": f"Post {n}"})))

        result = await self.service(max_pages=2).sync(self.source())

        fetched = sum(self.site.hits(path) for path in pages)
        self.assertEqual(fetched, 2)
        self.assertEqual([item.title for item in result.items], ["Post 0", "Post 1"])
        self.assertTrue(all(item.kind == "post" for item in result.items))

    async def test_bad_pages_are_skipped(self):
        self.serve_sitemap("/missing", "/garbage", "/private/x", "/service/design")
        self.site.route("/robots.txt", "User-agent: *\nDisallow: /private\n")
        self.site.route("/garbage", json_ld_page("{oops"))
        self.site.route(
            "/service/design",
            json_ld_page(
                json.dumps({"name": "Design", "description": "We design"}),
                json.dumps({"name": "Design", "description": "We design"}),
            ),
        )

        result = await self.service().sync(self.source())

        self.assertEqual([item.title for item in result.items], ["Design"])
        self.assertEqual(result.items[0].kind, "service")
        self.assertEqual(self.site.hits("/private/x"), 0)

    async def test_hostile_page_does_not_abort_sync(self):
        self.serve_sitemap("/bad", "/project/ok")
        self.site.route("/bad", json_ld_page("[" * 200_000 + "]" * 200_000))
        self.site.route("/project/ok", json_ld_page(json.dumps({"name": "Survivor"})))

        result = await self.service().sync(self.source())

        self.assertEqual([item.title for item in result.items], ["Survivor"])
        self.assertEqual(self.site.hits("/bad"), 1)

    async def test_source_host_outside_allowlist_makes_no_request(self):
        service = SyncService(self.session, ["example.org"], rate_limit_rpm=FAST_RPM)
        with self.assertRaises(HostNotAllowed):
            await service.sync(self.source())
        self.assertEqual(self.site.requests, [])

    async def test_missing_base_url(self):
        with self.assertRaises(MissingBaseURL):
            await self.service().sync(Source(id="x", name="x", base_url=None))
        self.assertEqual(self.site.requests, [])

    async def test_user_agent_defaults_when_blank(self):
        service = self.service(user_agent="   ")
        self.assertTrue(service.user_agent)
        self.assertTrue(service.limiter.allow())
