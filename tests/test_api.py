from datetime import datetime, timezone
import unittest

from fastapi.testclient import TestClient

from api.sync import app
from external_sync.ingest.errors import NotModified, SitemapUnavailable
from external_sync.ingest.types import ExtractedItem, SyncResult
from external_sync.storage.redis_store import RedisItemStore, RedisSourceStore
from tests.helpers import FakeRedis


class StubService:
    def __init__(self, outcome):
        self.outcome = outcome

    async def sync(self, source):
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


class SyncApiTests(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(app)
        self.client.__enter__()
        redis_client = FakeRedis()
        app.state.sources = RedisSourceStore(redis_client, prefix="t:")
        app.state.items = RedisItemStore(redis_client, prefix="t:")

    def tearDown(self):
        self.client.__exit__(None, None, None)

    def create_source(self, enabled: bool = True):
        return self.client.portal.call(
            app.state.sources.create, "Site", "https://site.example/", "auto", enabled
        )

    def test_health(self):
        self.assertEqual(self.client.get("/health").json(), {"status": "ok"})

    def test_sync_persists_items(self):
        record = self.create_source()
        item = ExtractedItem(
            source_id=record.id, kind="post", title="Hello", url="https://site.example/p", hash="h"
        )
        app.state.service = StubService(
            SyncResult(
                items=[item], fetched_at=datetime.now(timezone.utc), etag='"e"'
            )
        )

        response = self.client.post(f"/sources/{record.id}/sync")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["itemsUpserted"], 1)
        self.assertEqual(response.json()["etag"], '"e"')
        items = self.client.get(f"/sources/{record.id}/items").json()
        self.assertEqual(items["count"], 1)
        self.assertEqual(items["results"][0]["title"], "Hello")
        sources = self.client.get("/sources").json()
        self.assertEqual(sources["results"][0]["etag"], '"e"')

    def test_not_modified_is_not_an_error(self):
        record = self.create_source()
        app.state.service = StubService(NotModified("x"))
        response = self.client.post(f"/sources/{record.id}/sync")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"message": "no changes", "itemsUpserted": 0})

    def test_failures_map_to_status_codes(self):
        app.state.service = StubService(SitemapUnavailable("https://site.example/"))
        self.assertEqual(self.client.post("/sources/missing/sync").status_code, 404)
        self.assertEqual(self.client.get("/sources/missing/items").status_code, 404)

        disabled = self.create_source(enabled=False)
        self.assertEqual(self.client.post(f"/sources/{disabled.id}/sync").status_code, 400)

        enabled = self.create_source()
        self.assertEqual(self.client.post(f"/sources/{enabled.id}/sync").status_code, 502)
