"""FastMCP server exposing the feed list as tools.

Available tools:
* ``list_feeds() -> str`` – JSON list of stored channels.
* ``add_feed(user_input: str) -> str`` – add a channel from a URL, handle or ID.
* ``delete_feeds(urls: list[str]) -> str`` – remove channels by feed URL.
* ``update_notification_target(channel_id: str, target: str) -> str`` – set the Discord channel.
* ``simplify_feeds() -> str`` – LLM suggestions for consolidating the list.
"""

import json
import logging
from typing import List

from fastmcp import FastMCP

from feedkeeper.feed_utils import configure_logging, load_config, open_repository, simplify_registered_feeds

mcp = FastMCP("FeedKeeper")
logger = logging.getLogger(__name__)


def _describe(result: dict, success_message: str) -> str:
    if result.get("success"):
        return success_message
    return f"Failed: {result.get('message') or 'unknown error'}"


@mcp.tool
async def list_feeds() -> str:
    """Return all stored channels as a JSON string."""
    async with open_repository() as repository:
        items = await repository.list_feeds()
    if not items:
        return "No feeds registered."
    return json.dumps([item.to_dict() for item in items])


@mcp.tool
async def add_feed(user_input: str) -> str:
    """Resolve *user_input* to a YouTube channel and add its feed."""
    async with open_repository() as repository:
        result = await repository.add_feed(user_input)
    new_item = result.get("new_item") or {}
    return _describe(result, f"Feed added: {new_item.get('url')} ({new_item.get('name')})")


@mcp.tool
async def delete_feeds(urls: List[str]) -> str:
    """Remove the channels behind *urls*; URLs that match nothing are ignored."""
    async with open_repository() as repository:
        result = await repository.delete_feeds(urls)
    return _describe(result, "Feeds deleted.")


@mcp.tool
async def update_notification_target(channel_id: str, target: str) -> str:
    """Set the Discord channel that receives alerts for *channel_id*."""
    async with open_repository() as repository:
        result = await repository.update_notification_target(channel_id, target)
    updated = result.get("updated_item") or {}
    return _describe(result, f"Discord channel for {channel_id} set to {updated.get('discord_channel')}.")


@mcp.tool
async def simplify_feeds() -> str:
    """Ask the LLM how the current feed list could be simplified."""
    async with open_repository() as repository:
        suggestions = await simplify_registered_feeds(repository)
    return "\n".join(f"- {s}" for s in suggestions)


def main() -> None:
    """Entry point – start the FastMCP server on stdio transport."""
    configure_logging()
    load_config()
    logger.info("FeedKeeper FastMCP server starting (stdio transport)")
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
