"""Tests for the FastAPI routes.

The repository dependency is overridden with one backed by ``FakeGitHub`` and
a stub resolver, so the routes run end to end without network calls.
"""

import json
from unittest import TestCase, mock

from fastapi.testclient import TestClient

from feedkeeper.app_server import app, get_repository
from feedkeeper.main.config import ConfigurationError
from feedkeeper.main.schema import construct_feed_url
from feedkeeper.main.tools.channel_resolver import ResolvedChannel
from feedkeeper.main.tools.registry import FeedRepository, serialize
from tests.fake_github import FakeGitHub
from tests.test_registry import CHANNEL_A, CHANNEL_C, STORE, StubResolver


class TestAPI(TestCase):
    def setUp(self) -> None:
        self.github = FakeGitHub(serialize(STORE))
        resolver = StubResolver({"@androidauthority": ResolvedChannel(CHANNEL_C, "Android Authority")})

        async def override():
            yield FeedRepository(self.github.store(), resolver)

        app.dependency_overrides[get_repository] = override
        self.addCleanup(app.dependency_overrides.clear)
        self.client = TestClient(app)

    def test_routes_exist(self) -> None:
        paths = {route.path for route in app.routes}
        for path in ("/listFeeds", "/rawContent", "/addFeed", "/deleteFeeds",
                     "/notificationTarget", "/simplifyFeeds"):
            self.assertIn(path, paths)

    def test_list_feeds(self) -> None:
        response = self.client.get("/listFeeds")
        self.assertEqual(response.status_code, 200)
        self.assertEqual({item["channel_id"] for item in response.json()}, set(STORE))

    def test_raw_content(self) -> None:
        response = self.client.get("/rawContent")
        self.assertEqual(response.json(), {"content": serialize(STORE)})

    def test_add_and_delete(self) -> None:
        response = self.client.post("/addFeed", params={"user_input": "@androidauthority"})
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["new_item"]["url"], construct_feed_url(CHANNEL_C))

        response = self.client.post("/deleteFeeds", json={"urls": [construct_feed_url(CHANNEL_C)]})
        self.assertEqual(response.json(), {"success": True})
        self.assertEqual(json.loads(self.github.content), STORE)

    def test_replace_raw_content_validation(self) -> None:
        response = self.client.put("/rawContent", json={"content": '{"bad-key": {"name":"x","discordChannel":"0"}}'})
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.json()["success"])
        self.assertEqual(self.github.writes, [])

    def test_update_notification_target(self) -> None:
        response = self.client.post(
            "/notificationTarget",
            json={"channel_id": CHANNEL_A, "target": "#general-123456789012345678"},
        )
        self.assertTrue(response.json()["success"])
        self.assertEqual(json.loads(self.github.content)[CHANNEL_A]["discordChannel"], "123456789012345678")

    def test_store_read_failure_is_bad_gateway(self) -> None:
        self.github.read_status = 500
        response = self.client.get("/listFeeds")
        self.assertEqual(response.status_code, 502)

    def test_simplify_feeds(self) -> None:
        with mock.patch(
            "feedkeeper.feed_utils.simplify_feeds", new=mock.AsyncMock(return_value=["Merge them"])
        ) as simplify:
            response = self.client.post("/simplifyFeeds")
        self.assertEqual(response.json(), {"suggestions": ["Merge them"]})
        self.assertEqual(sorted(simplify.await_args.args[0]), sorted(construct_feed_url(c) for c in STORE))


class TestAPIConfiguration(TestCase):
    def test_missing_configuration_is_server_error(self) -> None:
        with mock.patch(
            "feedkeeper.feed_utils.load_config",
            side_effect=ConfigurationError("Missing GitHub configuration. Please set GITHUB_TOKEN."),
        ):
            response = TestClient(app).get("/listFeeds")
        self.assertEqual(response.status_code, 500)
        self.assertIn("GITHUB_TOKEN", response.json()["detail"])
