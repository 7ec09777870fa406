"""Shared wiring for FeedKeeper.

Both the FastAPI HTTP server (``feedkeeper/app_server.py``) and the FastMCP
tool server (``feedkeeper/server.py``) need a ``FeedRepository`` talking to the
configured GitHub file.  This module builds one per request and closes its
HTTP clients afterwards so the two servers share the same setup.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import AsyncIterator, List

from feedkeeper.main.config import StoreConfig
from feedkeeper.main.store import GitHubFileStore
from feedkeeper.main.tools.channel_resolver import YouTubePageResolver
from feedkeeper.main.tools.registry import FeedRepository
from feedkeeper.main.tools.simplifier import simplify_feeds

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format=LOG_FORMAT,
    )


@lru_cache(maxsize=1)
def load_config() -> StoreConfig:
    """Read and validate the store configuration once per process."""
    return StoreConfig.from_env()


@asynccontextmanager
async def open_repository() -> AsyncIterator[FeedRepository]:
    store = GitHubFileStore(load_config())
    resolver = YouTubePageResolver()
    try:
        yield FeedRepository(store, resolver)
    finally:
        await resolver.aclose()
        await store.aclose()


async def simplify_registered_feeds(repository: FeedRepository) -> List[str]:
    """Run the suggestion engine over every stored feed URL."""
    items = await repository.list_feeds()
    return await simplify_feeds([item.url for item in items])
