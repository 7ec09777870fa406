"""High-level feed registry API.

``FeedRepository`` exposes the channel-centric operations the dashboard
needs and expresses each of them as one read-modify-write cycle against the
GitHub file store:

* ``list_feeds`` / ``get_raw_content`` – read-only views of ``feed.json``.
* ``add_feed`` – resolve user input to a channel and add it.
* ``delete_feeds`` – remove channels by feed URL.
* ``replace_raw_content`` – validate and commit a hand-edited document.
* ``update_notification_target`` – change one channel's Discord channel.

Mutations return a dict with ``success`` and, on failure, ``message``; they
never raise for bad input or a rejected write.  Read-only operations let
``StoreReadError`` propagate so an unreachable store is never mistaken for an
empty one.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from feedkeeper.main.schema import (
    SchemaError,
    UNSET_TARGET,
    construct_feed_url,
    extract_channel_id,
    parse_notification_target,
    validate_store,
)
from feedkeeper.main.store import FileSnapshot, GitHubFileStore, StoreReadError
from feedkeeper.main.tools.channel_resolver import ChannelResolver

logger = logging.getLogger(__name__)

PLACEHOLDER_NAME = "New Channel (please edit)"


@dataclass
class DisplayItem:
    channel_id: str
    url: str
    name: str
    discord_channel: str

    @classmethod
    def from_entry(cls, channel_id: str, entry: Dict[str, str]) -> "DisplayItem":
        return cls(
            channel_id=channel_id,
            url=construct_feed_url(channel_id),
            name=entry["name"],
            discord_channel=entry["discordChannel"],
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            "channel_id": self.channel_id,
            "url": self.url,
            "name": self.name,
            "discord_channel": self.discord_channel,
        }


def serialize(data: Dict[str, Dict[str, str]]) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def _failure(message: str) -> Dict[str, Any]:
    return {"success": False, "message": message}


class FeedRepository:
    def __init__(self, store: GitHubFileStore, resolver: ChannelResolver):
        self.store = store
        self.resolver = resolver

    async def _snapshot(self) -> FileSnapshot:
        return await self.store.fetch_file()

    async def _commit(
        self, snapshot: FileSnapshot, content: str, commit_message: str
    ) -> Optional[str]:
        """Write *content* at the snapshot's revision; return an error message or ``None``."""
        result = await self.store.compare_and_swap(snapshot.revision, content, commit_message)
        if result.success:
            return None
        if result.conflict:
            logger.warning("Write conflict on %r: %s", commit_message, result.message)
        return result.message or "Failed to update feed data."

    async def list_feeds(self) -> List[DisplayItem]:
        snapshot = await self._snapshot()
        return [DisplayItem.from_entry(cid, entry) for cid, entry in snapshot.data.items()]

    async def get_raw_content(self) -> str:
        snapshot = await self._snapshot()
        return snapshot.content

    async def add_feed(self, user_input: str) -> Dict[str, Any]:
        """Resolve *user_input* to a channel and add it with an unset Discord channel."""
        user_input = (user_input or "").strip()
        if not user_input:
            return _failure("Please provide a YouTube feed URL, channel URL, handle or channel ID.")

        resolved = await self.resolver.resolve(user_input)
        if resolved is None:
            return _failure(
                f"Could not find a YouTube channel ID for {user_input!r}. "
                "Try the channel page URL, an @handle or the channel's feed URL."
            )
        channel_id = resolved.channel_id

        try:
            snapshot = await self._snapshot()
        except StoreReadError as exc:
            return _failure(str(exc))
        if channel_id in snapshot.data:
            return _failure(f"Feed for channel ID {channel_id} already exists.")

        entry = {"name": resolved.name or PLACEHOLDER_NAME, "discordChannel": UNSET_TARGET}
        data = dict(snapshot.data)
        data[channel_id] = entry
        error = await self._commit(
            snapshot, serialize(data), f"Add feed for channel {channel_id} ({entry['name']})"
        )
        if error:
            return _failure(error)
        item = DisplayItem.from_entry(channel_id, entry)
        logger.info("Added feed %s", item.url)
        return {"success": True, "new_item": item.to_dict()}

    async def delete_feeds(self, urls: List[str]) -> Dict[str, Any]:
        """Remove every channel referenced by *urls*; unknown URLs are skipped."""
        try:
            snapshot = await self._snapshot()
        except StoreReadError as exc:
            return _failure(str(exc))

        data = dict(snapshot.data)
        removed = []
        for url in urls or []:
            channel_id = extract_channel_id(url)
            if channel_id and channel_id in data:
                del data[channel_id]
                removed.append(channel_id)
        if not removed:
            logger.info("delete_feeds: none of %d URL(s) matched a stored channel", len(urls or []))
            return {"success": True}

        error = await self._commit(
            snapshot, serialize(data), "Delete feed(s) for channel(s) " + ", ".join(removed)
        )
        if error:
            return _failure(error)
        logger.info("Deleted %d feed(s)", len(removed))
        return {"success": True}

    async def replace_raw_content(self, new_content: str) -> Dict[str, Any]:
        """Validate *new_content* as a whole ``feed.json`` and commit it verbatim."""
        try:
            validate_store(json.loads(new_content))
        except SchemaError as exc:
            return _failure(str(exc))
        except ValueError as exc:
            return _failure(f"Invalid JSON content. Could not parse: {exc}")

        try:
            snapshot = await self._snapshot()
        except StoreReadError as exc:
            return _failure(str(exc))
        error = await self._commit(snapshot, new_content, "Update feed.json via raw editor")
        if error:
            return _failure(error)
        return {"success": True}

    async def update_notification_target(self, channel_id: str, raw_input: str) -> Dict[str, Any]:
        """Set the Discord channel for *channel_id* from ``"0"``, an ID or ``#name-id``."""
        target = parse_notification_target(raw_input)
        if target is None:
            return _failure(
                f"Invalid Discord channel {raw_input!r}. "
                'Use "0", a numeric channel ID, or the "#name-id" form.'
            )

        try:
            snapshot = await self._snapshot()
        except StoreReadError as exc:
            return _failure(str(exc))
        if channel_id not in snapshot.data:
            return _failure(f"Channel ID {channel_id} is not in the feed list.")

        data = dict(snapshot.data)
        entry = dict(data[channel_id], discordChannel=target)
        data[channel_id] = entry
        error = await self._commit(
            snapshot, serialize(data), f"Update Discord channel for {channel_id} to {target}"
        )
        if error:
            return _failure(error)
        return {"success": True, "updated_item": DisplayItem.from_entry(channel_id, entry).to_dict()}
