"""Tests for the GitHub file store, run against an in-memory contents API."""

import json
from unittest import IsolatedAsyncioTestCase, TestCase

import httpx

from feedkeeper.main.store import GitHubFileStore, StoreReadError, parse_feed_data
from tests.fake_github import CONFIG, FakeGitHub, sha_of

CHANNEL = "UC_x5XG1OV2P6uZZ5FSM9Ttw"
VALID = json.dumps({CHANNEL: {"name": "Google for Developers", "discordChannel": "0"}})


class TestFetchFile(IsolatedAsyncioTestCase):
    async def test_missing_file_is_empty_store(self) -> None:
        snapshot = await FakeGitHub().store().fetch_file()
        self.assertEqual(snapshot.content, "{}")
        self.assertIsNone(snapshot.revision)
        self.assertEqual(snapshot.data, {})

    async def test_reads_content_and_sha(self) -> None:
        snapshot = await FakeGitHub(VALID).store().fetch_file()
        self.assertEqual(snapshot.content, VALID)
        self.assertEqual(snapshot.revision, sha_of(VALID))
        self.assertEqual(snapshot.data[CHANNEL]["name"], "Google for Developers")

    async def test_malformed_json_reads_as_empty_mapping(self) -> None:
        snapshot = await FakeGitHub("{not json").store().fetch_file()
        self.assertEqual(snapshot.data, {})
        self.assertEqual(snapshot.content, "{not json")
        self.assertEqual(snapshot.revision, sha_of("{not json"))

    async def test_wrong_shape_reads_as_empty_mapping(self) -> None:
        for content in ("[]", '{"UC": {"name": "x"}}', '{"a": "b"}'):
            with self.subTest(content=content):
                snapshot = await FakeGitHub(content).store().fetch_file()
                self.assertEqual(snapshot.data, {})

    async def test_empty_file_reads_as_empty_object(self) -> None:
        snapshot = await FakeGitHub("").store().fetch_file()
        self.assertEqual(snapshot.content, "{}")
        self.assertEqual(snapshot.data, {})

    async def test_server_error_raises(self) -> None:
        fake = FakeGitHub(VALID)
        fake.read_status = 500
        with self.assertRaises(StoreReadError) as ctx:
            await fake.store().fetch_file()
        self.assertEqual(ctx.exception.status_code, 500)

    async def test_transport_error_raises(self) -> None:
        def boom(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        store = GitHubFileStore(CONFIG, client=httpx.AsyncClient(transport=httpx.MockTransport(boom)))
        with self.assertRaises(StoreReadError):
            await store.fetch_file()

    async def test_directory_listing_raises(self) -> None:
        fake = FakeGitHub(VALID)
        fake.read_payload = [{"name": "feed.json", "type": "file", "sha": "abc"}]
        with self.assertRaises(StoreReadError):
            await fake.store().fetch_file()

    async def test_file_too_large_for_contents_api_raises(self) -> None:
        fake = FakeGitHub(VALID)
        fake.read_payload = {"content": "", "encoding": "none", "sha": fake.sha}
        with self.assertRaises(StoreReadError) as ctx:
            await fake.store().fetch_file()
        self.assertIn("none", str(ctx.exception))


class TestWriteFile(IsolatedAsyncioTestCase):
    async def test_create_omits_sha(self) -> None:
        fake = FakeGitHub()
        result = await fake.store().write_file("{}", "Create feed.json", None)
        self.assertTrue(result.success)
        self.assertNotIn("sha", fake.writes[0])
        self.assertEqual(fake.writes[0]["branch"], "main")
        self.assertEqual(fake.writes[0]["message"], "Create feed.json")
        self.assertEqual(fake.content, "{}")
        self.assertEqual(result.revision, sha_of("{}"))

    async def test_update_with_current_sha(self) -> None:
        fake = FakeGitHub(VALID)
        store = fake.store()
        snapshot = await store.fetch_file()
        result = await store.compare_and_swap(snapshot.revision, "{}", "Clear feeds")
        self.assertTrue(result.success)
        self.assertEqual(fake.content, "{}")

    async def test_stale_sha_is_a_conflict(self) -> None:
        fake = FakeGitHub(VALID)
        result = await fake.store().write_file("{}", "Clear feeds", "0" * 40)
        self.assertFalse(result.success)
        self.assertTrue(result.conflict)
        self.assertIn("409", result.message)
        self.assertEqual(fake.content, VALID)

    async def test_create_over_existing_file_is_a_conflict(self) -> None:
        fake = FakeGitHub(VALID)
        result = await fake.store().write_file("{}", "Create feed.json", None)
        self.assertFalse(result.success)
        self.assertTrue(result.conflict)
        self.assertEqual(fake.content, VALID)

    async def test_server_error_is_reported_not_raised(self) -> None:
        fake = FakeGitHub(VALID)
        fake.write_status = 500
        result = await fake.store().write_file("{}", "Clear feeds", fake.sha)
        self.assertFalse(result.success)
        self.assertFalse(result.conflict)
        self.assertEqual(result.message, "GitHub API error (500) updating file: Server Error")

    async def test_unicode_content_round_trips(self) -> None:
        fake = FakeGitHub()
        content = json.dumps({CHANNEL: {"name": "Café ☕", "discordChannel": "0"}}, ensure_ascii=False)
        store = fake.store()
        await store.write_file(content, "Add", None)
        snapshot = await store.fetch_file()
        self.assertEqual(snapshot.content, content)


class TestParseFeedData(TestCase):
    def test_valid_document(self) -> None:
        self.assertEqual(parse_feed_data(VALID), json.loads(VALID))

    def test_null_entry(self) -> None:
        self.assertEqual(parse_feed_data(json.dumps({CHANNEL: None})), {})
