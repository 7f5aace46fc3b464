import json
import random
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from aiohttp import FormData
from aiohttp.test_utils import AioHTTPTestCase

from inspovault.api import LIBRARY, create_app
from inspovault.errors import StoreUnreachableError


class InspoApiTests(AioHTTPTestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)
        self.db_path = str(Path(self.temp_dir.name) / "inspovault.db")
        super().setUp()

    async def get_application(self):
        return create_app(db_path=self.db_path, rng=random.Random(3))

    async def _create(self, **fields):
        resp = await self.client.post("/inspo/items", json=fields)
        self.assertEqual(resp.status, 201)
        return await resp.json()

    async def test_health_reports_db_path(self):
        resp = await self.client.get("/inspo/health")

        self.assertEqual(resp.status, 200)
        self.assertEqual(await resp.json(), {"ok": True, "db_path": self.db_path})

    async def test_create_list_update_delete(self):
        created = await self._create(title="Dashboard", tags=["ui", "minimal"], urls=["https://a.example"])
        item_id = created["id"]

        resp = await self.client.get("/inspo/items")
        snapshot = await resp.json()
        self.assertEqual([i["id"] for i in snapshot["items"]], [item_id])
        self.assertEqual(snapshot["tags"], ["minimal", "ui"])
        self.assertFalse(snapshot["busy"])

        resp = await self.client.put(f"/inspo/items/{item_id}", json={"title": "Dashboard v2", "tags": ["ui"]})
        self.assertEqual(resp.status, 200)
        self.assertEqual((await resp.json())["title"], "Dashboard v2")

        resp = await self.client.get("/inspo/tags")
        self.assertEqual(await resp.json(), {"items": ["ui"]})

        resp = await self.client.delete(f"/inspo/items/{item_id}")
        self.assertEqual(resp.status, 200)
        self.assertEqual(await resp.json(), {"deleted": item_id, "collected_tags": 1})
        self.assertEqual(self.app[LIBRARY].items, [])

    async def test_create_without_title_is_bad_request(self):
        resp = await self.client.post("/inspo/items", json={"notes": "no title"})

        self.assertEqual(resp.status, 400)
        self.assertIn("title", (await resp.json())["error"])

    async def test_non_list_tags_are_bad_request(self):
        resp = await self.client.post("/inspo/items", json={"title": "x", "tags": 5})

        self.assertEqual(resp.status, 400)
        self.assertIn("tags", (await resp.json())["error"])
        self.assertEqual(self.app[LIBRARY].items, [])

    async def test_update_response_keeps_stored_created_at(self):
        await self._create(id="old", title="Old", createdAt="2020-01-01T00:00:00+00:00")

        resp = await self.client.put("/inspo/items/old", json={"title": "Old v2"})

        self.assertEqual(resp.status, 200)
        body = await resp.json()
        self.assertEqual(body["createdAt"], "2020-01-01T00:00:00+00:00")
        self.assertEqual(body["title"], "Old v2")

    async def test_non_object_body_is_bad_request(self):
        resp = await self.client.post("/inspo/items", data="[1, 2]", headers={"Content-Type": "application/json"})
        self.assertEqual(resp.status, 400)

        resp = await self.client.post("/inspo/items", data="{broken", headers={"Content-Type": "application/json"})
        self.assertEqual(resp.status, 400)

    async def test_update_and_delete_unknown_item_are_not_found(self):
        resp = await self.client.put("/inspo/items/ghost", json={"title": "Ghost"})
        self.assertEqual(resp.status, 404)

        resp = await self.client.delete("/inspo/items/ghost")
        self.assertEqual(resp.status, 404)

    async def test_duplicate_id_is_conflict(self):
        await self._create(id="same", title="First")

        resp = await self.client.post("/inspo/items", json={"id": "same", "title": "Second"})

        self.assertEqual(resp.status, 409)

    async def test_unreachable_store_is_service_unavailable(self):
        library = self.app[LIBRARY]
        with mock.patch.object(library.repository, "create", side_effect=StoreUnreachableError("database is locked")):
            resp = await self.client.post("/inspo/items", json={"title": "Lost"})

        self.assertEqual(resp.status, 503)

    async def test_filters(self):
        await self._create(id="a", title="Modern Dashboard", tags=["ui"])
        await self._create(id="b", title="Product Page", tags=["minimal"])
        await self._create(id="c", title="Page Builder", tags=["ui"])

        resp = await self.client.post("/inspo/filter/tag", json={"tag": "ui"})
        snapshot = await resp.json()
        self.assertEqual(sorted(i["id"] for i in snapshot["filteredItems"]), ["a", "c"])

        resp = await self.client.post("/inspo/filter/search", json={"search": "page"})
        snapshot = await resp.json()
        self.assertEqual(snapshot["activeFilter"], {"tag": "ui", "search": "page"})
        self.assertEqual([i["id"] for i in snapshot["filteredItems"]], ["c"])

        resp = await self.client.post("/inspo/filter/clear", json={})
        snapshot = await resp.json()
        self.assertEqual(snapshot["activeFilter"], {})
        self.assertEqual(len(snapshot["filteredItems"]), 3)

    async def test_filter_rejects_non_string_values(self):
        resp = await self.client.post("/inspo/filter/tag", json={"tag": 5})
        self.assertEqual(resp.status, 400)

        resp = await self.client.post("/inspo/filter/search", json={"search": ["x"]})
        self.assertEqual(resp.status, 400)

    async def test_export_sets_attachment_filename(self):
        await self._create(id="a", title="Exported", tags=["ui"])

        resp = await self.client.get("/inspo/export")

        self.assertEqual(resp.status, 200)
        self.assertRegex(
            resp.headers["Content-Disposition"],
            r'^attachment; filename="inspo-library-export-\d{4}-\d{2}-\d{2}\.json"$',
        )
        body = json.loads(await resp.text())
        self.assertEqual([i["id"] for i in body], ["a"])

    async def test_import_from_json_body(self):
        content = json.dumps([{"id": "i1", "title": "One", "tags": ["t"]}, {"id": "i2", "title": "Two"}])

        resp = await self.client.post("/inspo/import", json={"content": content})

        self.assertEqual(resp.status, 200)
        self.assertEqual(await resp.json(), {"imported": 2})
        self.assertEqual(sorted(i["id"] for i in self.app[LIBRARY].items), ["i1", "i2"])

    async def test_import_from_multipart_upload(self):
        form = FormData()
        form.add_field(
            "file",
            json.dumps([{"id": "up", "title": "Uploaded"}]).encode("utf-8"),
            filename="inspo-library-export-2024-01-01.json",
            content_type="application/json",
        )

        resp = await self.client.post("/inspo/import", data=form)

        self.assertEqual(resp.status, 200)
        self.assertEqual(await resp.json(), {"imported": 1})

    async def test_import_malformed_file_is_bad_request(self):
        resp = await self.client.post("/inspo/import", json={"content": '{"not": "a list"}'})

        self.assertEqual(resp.status, 400)
        self.assertEqual(self.app[LIBRARY].items, [])

    async def test_import_with_bad_tags_writes_nothing(self):
        content = json.dumps([{"id": "i1", "title": "One"}, {"id": "i2", "title": "Two", "tags": 5}])

        resp = await self.client.post("/inspo/import", json={"content": content})

        self.assertEqual(resp.status, 400)
        self.assertIn("record 1", (await resp.json())["error"])
        self.assertEqual(await self.app[LIBRARY].repository.fetch_all(), [])

    async def test_demo_data_and_tidy(self):
        resp = await self.client.post("/inspo/demo", json={})
        self.assertEqual(resp.status, 201)
        self.assertEqual(len((await resp.json())["items"]), 5)

        resp = await self.client.post("/inspo/tags/tidy", json={})
        self.assertEqual(await resp.json(), {"removed": 0})

    async def test_settings_round_trip(self):
        resp = await self.client.get("/inspo/settings")
        self.assertEqual(
            await resp.json(),
            {"write_mode": "transactional", "shuffle": True, "search_debounce_ms": 300},
        )

        resp = await self.client.put("/inspo/settings", json={"write_mode": "best_effort", "shuffle": False})
        settings = await resp.json()

        self.assertEqual(settings["write_mode"], "best_effort")
        self.assertFalse(settings["shuffle"])
        self.assertEqual(self.app[LIBRARY].repository.write_mode, "best_effort")

    async def test_settings_store_failure_is_service_unavailable(self):
        library = self.app[LIBRARY]
        with mock.patch.object(library.repository, "save_settings", side_effect=StoreUnreachableError("disk full")):
            resp = await self.client.put("/inspo/settings", json={"shuffle": False})

        self.assertEqual(resp.status, 503)
        self.assertEqual(await resp.json(), {"error": "disk full"})
        self.assertTrue(library.settings["shuffle"])


if __name__ == "__main__":
    unittest.main()
