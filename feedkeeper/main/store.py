"""GitHub-backed storage for ``feed.json``.

The file lives in a GitHub repository and is read and written through the
contents API.  Every read returns the blob SHA alongside the text; every write
sends that SHA back so GitHub rejects the commit if somebody else changed the
file in the meantime.  There is no local cache: callers fetch, mutate and
write back in one go.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from feedkeeper.main.config import StoreConfig
from feedkeeper.main.schema import FeedData, is_valid_store

logger = logging.getLogger(__name__)

EMPTY_CONTENT = "{}"
_ACCEPT = "application/vnd.github.v3+json"


class StoreReadError(Exception):
    """The file could not be read for a reason other than "it does not exist"."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class FileSnapshot:
    """Text of the file as last committed plus the SHA it was read at."""

    content: str
    revision: Optional[str]
    data: FeedData = field(default_factory=dict)


@dataclass
class WriteResult:
    success: bool
    message: Optional[str] = None
    revision: Optional[str] = None
    conflict: bool = False


def parse_feed_data(content: str) -> FeedData:
    """Parse *content* leniently; anything that is not a feed object becomes ``{}``."""
    try:
        data = json.loads(content or EMPTY_CONTENT)
    except (json.JSONDecodeError, ValueError) as exc:
        logger.warning("feed.json is not valid JSON, treating it as empty: %s", exc)
        return {}
    if not is_valid_store(data):
        logger.warning("feed.json does not have the expected object format, treating it as empty")
        return {}
    return data


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.reason_phrase or "Unknown error"
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return response.reason_phrase or "Unknown error"


class GitHubFileStore:
    """Read and compare-and-swap a single file in a GitHub repository."""

    def __init__(self, config: StoreConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._client = client
        self._owns_client = client is None

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout)
        return self._client

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"token {self.config.token}",
            "Accept": _ACCEPT,
        }

    async def fetch_file(self) -> FileSnapshot:
        """Return the current file content and its SHA.

        A missing file is a valid empty store (``revision`` is ``None``).  Any
        other failure raises ``StoreReadError``.
        """
        client = await self._get_http_client()
        try:
            response = await client.get(
                self.config.contents_url,
                params={"ref": self.config.branch},
                headers=self._headers(),
            )
        except httpx.HTTPError as exc:
            logger.error("Error fetching %s from GitHub: %s", self.config.file_path, exc)
            raise StoreReadError(f"Could not reach GitHub: {exc}") from exc

        if response.status_code == 404:
            logger.info("%s not found on branch %s, starting empty", self.config.file_path, self.config.branch)
            return FileSnapshot(content=EMPTY_CONTENT, revision=None, data={})

        if response.is_error:
            message = _error_message(response)
            logger.error("GitHub API error (%s) reading %s: %s", response.status_code, self.config.file_path, message)
            raise StoreReadError(
                f"GitHub API error ({response.status_code}): {message}",
                status_code=response.status_code,
            )

        try:
            payload: Dict[str, Any] = response.json()
        except ValueError as exc:
            logger.error("GitHub returned non-JSON for %s: %s", self.config.file_path, exc)
            raise StoreReadError(f"Unexpected response from GitHub: {exc}") from exc
        if not isinstance(payload, dict):
            # A list means the configured path is a directory.
            logger.error("GitHub contents for %s is not a file", self.config.file_path)
            raise StoreReadError(
                f"Unexpected response from GitHub: {self.config.file_path} is not a file"
            )
        encoding = payload.get("encoding")
        if encoding not in (None, "base64"):
            # Files over 1 MB come back with encoding "none" and no content.
            logger.error("GitHub returned %s encoding for %s", encoding, self.config.file_path)
            raise StoreReadError(
                f"Unexpected response from GitHub: {self.config.file_path} "
                f"content not returned (encoding {encoding!r})"
            )

        try:
            encoded = payload.get("content") or ""
            sha = payload["sha"]
            content = base64.b64decode(encoded).decode("utf-8")
        except (ValueError, KeyError, TypeError, binascii.Error) as exc:
            logger.error("Unexpected GitHub contents payload for %s: %s", self.config.file_path, exc)
            raise StoreReadError(f"Unexpected response from GitHub: {exc}") from exc

        if not content.strip():
            content = EMPTY_CONTENT
        return FileSnapshot(content=content, revision=sha, data=parse_feed_data(content))

    async def write_file(
        self, content: str, commit_message: str, expected_revision: Optional[str]
    ) -> WriteResult:
        """Commit *content* as the whole new file.

        ``expected_revision`` is the SHA from the last ``fetch_file``; ``None``
        creates the file.  Failures come back as ``WriteResult`` and are never
        raised.
        """
        body: Dict[str, str] = {
            "message": commit_message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": self.config.branch,
        }
        if expected_revision:
            body["sha"] = expected_revision

        client = await self._get_http_client()
        try:
            response = await client.put(self.config.contents_url, json=body, headers=self._headers())
        except httpx.HTTPError as exc:
            logger.error("Error updating %s on GitHub: %s", self.config.file_path, exc)
            return WriteResult(success=False, message=f"Could not reach GitHub: {exc}")

        if response.is_error:
            message = _error_message(response)
            conflict = response.status_code == 409 or (
                response.status_code == 422 and "sha" in message.lower()
            )
            logger.error("GitHub API error response (%s): %s", response.status_code, message)
            if conflict:
                message = (
                    f"GitHub API error ({response.status_code}) updating file: {message}. "
                    "The file changed since it was loaded; reload and try again."
                )
            else:
                message = f"GitHub API error ({response.status_code}) updating file: {message}"
            return WriteResult(success=False, message=message, conflict=conflict)

        new_revision = None
        try:
            new_revision = (response.json().get("content") or {}).get("sha")
        except (ValueError, AttributeError):
            logger.warning("GitHub accepted the update but returned no content sha")
        logger.info("Committed %s: %s", self.config.file_path, commit_message)
        return WriteResult(success=True, revision=new_revision)

    async def compare_and_swap(
        self, expected_revision: Optional[str], new_content: str, commit_message: str
    ) -> WriteResult:
        """Replace the file only if it is still at *expected_revision*."""
        return await self.write_file(new_content, commit_message, expected_revision)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GitHubFileStore":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
