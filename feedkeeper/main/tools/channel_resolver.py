"""Turn whatever the user pasted into a YouTube channel ID.

Accepted input: a channel feed URL, a channel URL (``/channel/``, ``/@handle``,
``/c/``, ``/user/``), a bare ``@handle``, a video URL or a raw ``UC...`` ID.

Resolution is tried in order and stops at the first hit:

1. A feed URL already carries ``channel_id`` in its query string.
2. Anything else is normalised to a page URL, the page is fetched and the
   channel ID is scraped from the markup.  Patterns are tried from the most
   to the least reliable: canonical ``<link>``, ``og:url``, ``itemprop`` meta
   tags, JSON fields embedded in scripts and, for video pages, the uploader
   metadata.

Scraping third-party HTML is brittle, so the repository only depends on the
``ChannelResolver`` interface; a YouTube Data API client can replace
``YouTubePageResolver`` without touching it.
"""

from __future__ import annotations

import abc
import json
import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional
from urllib.parse import urlparse

import feedparser
import httpx
from bs4 import BeautifulSoup

from feedkeeper.main.schema import (
    CHANNEL_ID_PATTERN,
    channel_id_from_feed_url,
    construct_feed_url,
    is_channel_id,
)

logger = logging.getLogger(__name__)

YOUTUBE_BASE_URL = "https://www.youtube.com"
_HEADERS = {
    "User-Agent": "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36",
    "Accept-Language": "en-US,en;q=0.9",
}
# Skips the EU consent interstitial, which carries none of the metadata below.
_COOKIES = {"CONSENT": "YES+cb"}

_CHANNEL_URL_RE = re.compile(rf"/channel/({CHANNEL_ID_PATTERN})")
_EXTERNAL_ID_RE = re.compile(rf'"externalId"\s*:\s*"({CHANNEL_ID_PATTERN})"')
_OWNER_URL_RE = re.compile(rf'"ownerProfileUrl"\s*:\s*"[^"]*/channel/({CHANNEL_ID_PATTERN})"')
_CHANNEL_ID_JSON_RE = re.compile(rf'"channelId"\s*:\s*"({CHANNEL_ID_PATTERN})"')
_BROWSE_ID_RE = re.compile(rf'"browseId"\s*:\s*"({CHANNEL_ID_PATTERN})"')
_AUTHOR_JSON_RE = re.compile(r'"author"\s*:\s*"((?:[^"\\]|\\.)*)"')
_TITLE_SUFFIX = " - YouTube"

_VIDEO_HOSTS = {"youtu.be", "www.youtu.be"}
_PAGE_HOSTS = {"youtube.com", "www.youtube.com", "m.youtube.com"} | _VIDEO_HOSTS
_VIDEO_PATH_PREFIXES = ("/watch", "/shorts/", "/live/", "/embed/")


@dataclass
class ResolvedChannel:
    channel_id: str
    name: Optional[str] = None


class ChannelResolver(abc.ABC):
    """Resolve free-form user input to a channel."""

    @abc.abstractmethod
    async def resolve(self, user_input: str) -> Optional[ResolvedChannel]:
        """Return the channel for *user_input*, or ``None`` if it cannot be resolved."""


def normalize_page_url(user_input: str) -> str:
    """Turn a handle, path, raw ID or scheme-less URL into a fetchable URL."""
    value = user_input.strip()
    if value.startswith(("http://", "https://")):
        return value
    if is_channel_id(value):
        return f"{YOUTUBE_BASE_URL}/channel/{value}"
    if value.startswith("@"):
        return f"{YOUTUBE_BASE_URL}/{value}"
    lowered = value.lower()
    if lowered.startswith(("youtube.com", "www.youtube.com", "m.youtube.com", "youtu.be")):
        return f"https://{value}"
    if value.startswith("/"):
        return f"{YOUTUBE_BASE_URL}{value}"
    if "/" in value:
        return f"{YOUTUBE_BASE_URL}/{value}"
    return f"{YOUTUBE_BASE_URL}/@{value}"


def is_youtube_url(url: str) -> bool:
    """Only YouTube pages are ever fetched."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and (parsed.hostname or "") in _PAGE_HOSTS


def is_video_url(url: str) -> bool:
    parsed = urlparse(url)
    if (parsed.hostname or "") in _VIDEO_HOSTS:
        return True
    return parsed.path.startswith(_VIDEO_PATH_PREFIXES)


# ---------------------------------------------------------------------------
# Channel ID patterns, most reliable first
# ---------------------------------------------------------------------------

def _from_canonical_link(soup: BeautifulSoup, html: str) -> Optional[str]:
    link = soup.find("link", rel="canonical")
    match = _CHANNEL_URL_RE.search(link.get("href") or "") if link else None
    return match.group(1) if match else None


def _from_og_url(soup: BeautifulSoup, html: str) -> Optional[str]:
    meta = soup.find("meta", attrs={"property": "og:url"})
    match = _CHANNEL_URL_RE.search(meta.get("content") or "") if meta else None
    return match.group(1) if match else None


def _from_itemprop_meta(soup: BeautifulSoup, html: str) -> Optional[str]:
    for prop in ("channelId", "identifier"):
        meta = soup.find("meta", attrs={"itemprop": prop})
        value = (meta.get("content") or "") if meta else ""
        if is_channel_id(value):
            return value
    return None


def _from_external_id(soup: BeautifulSoup, html: str) -> Optional[str]:
    match = _EXTERNAL_ID_RE.search(html)
    return match.group(1) if match else None


def _from_video_author(soup: BeautifulSoup, html: str) -> Optional[str]:
    author = soup.find(attrs={"itemprop": "author"})
    if author:
        link = author.find("link", attrs={"itemprop": "url"})
        match = _CHANNEL_URL_RE.search(link.get("href") or "") if link else None
        if match:
            return match.group(1)
    match = _OWNER_URL_RE.search(html)
    return match.group(1) if match else None


def _from_channel_id_json(soup: BeautifulSoup, html: str) -> Optional[str]:
    match = _CHANNEL_ID_JSON_RE.search(html)
    return match.group(1) if match else None


def _from_browse_id(soup: BeautifulSoup, html: str) -> Optional[str]:
    match = _BROWSE_ID_RE.search(html)
    return match.group(1) if match else None


_ID_PATTERNS: List[Callable[[BeautifulSoup, str], Optional[str]]] = [
    _from_canonical_link,
    _from_og_url,
    _from_itemprop_meta,
    _from_external_id,
    _from_video_author,
    _from_channel_id_json,
    _from_browse_id,
]


# ---------------------------------------------------------------------------
# Display name patterns
# ---------------------------------------------------------------------------

def _meta_content(soup: BeautifulSoup, **attrs: str) -> Optional[str]:
    meta = soup.find("meta", attrs=attrs)
    value = (meta.get("content") or "").strip() if meta else ""
    return value or None


def _author_name(soup: BeautifulSoup, html: str) -> Optional[str]:
    author = soup.find(attrs={"itemprop": "author"})
    if author:
        link = author.find("link", attrs={"itemprop": "name"})
        value = (link.get("content") or "").strip() if link else ""
        if value:
            return value
    match = _AUTHOR_JSON_RE.search(html)
    if match:
        try:
            return json.loads(f'"{match.group(1)}"').strip() or None
        except ValueError:
            return None
    return None


def _page_title(soup: BeautifulSoup) -> Optional[str]:
    if not soup.title or not soup.title.string:
        return None
    title = soup.title.string.strip()
    if title.endswith(_TITLE_SUFFIX):
        title = title[: -len(_TITLE_SUFFIX)].strip()
    return title or None


def scrape_channel(html: str, page_url: str) -> Optional[ResolvedChannel]:
    """Extract a channel ID (and, if present, its name) from a YouTube page."""
    soup = BeautifulSoup(html, "html.parser")
    channel_id = None
    for pattern in _ID_PATTERNS:
        channel_id = pattern(soup, html)
        if channel_id:
            logger.debug("Channel ID %s found via %s on %s", channel_id, pattern.__name__, page_url)
            break
    if not channel_id:
        return None

    if is_video_url(page_url):
        # og:title and <title> carry the video title on watch pages.
        name = _author_name(soup, html)
    else:
        name = (
            _meta_content(soup, property="og:title")
            or _meta_content(soup, name="title")
            or _page_title(soup)
        )
    return ResolvedChannel(channel_id=channel_id, name=name)


class YouTubePageResolver(ChannelResolver):
    """Resolve channels by fetching YouTube pages and scraping them."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = 10.0):
        self._client = client
        self._owns_client = client is None
        self.timeout = timeout

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers=_HEADERS,
                cookies=_COOKIES,
            )
        return self._client

    async def _fetch(self, url: str) -> Optional[httpx.Response]:
        client = await self._get_http_client()
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("Failed to fetch %s: %s", url, exc)
            return None
        return response

    async def feed_title(self, channel_id: str) -> Optional[str]:
        """Channel name from the Atom feed, if the feed can be read."""
        response = await self._fetch(construct_feed_url(channel_id))
        if response is None:
            return None
        parsed = feedparser.parse(response.content)
        title = (parsed.feed.get("title") or "").strip() if getattr(parsed, "feed", None) else ""
        return title or None

    async def resolve(self, user_input: str) -> Optional[ResolvedChannel]:
        value = (user_input or "").strip()
        if not value:
            return None

        channel_id = channel_id_from_feed_url(value)
        if channel_id:
            logger.info("Channel ID %s taken from feed URL", channel_id)
            return ResolvedChannel(channel_id=channel_id, name=await self.feed_title(channel_id))

        page_url = normalize_page_url(value)
        if not is_youtube_url(page_url):
            logger.warning("Refusing to fetch non-YouTube URL %s", page_url)
            return None
        response = await self._fetch(page_url)
        if response is not None:
            resolved = scrape_channel(response.text, page_url)
            if resolved:
                logger.info("Resolved %s to channel %s", value, resolved.channel_id)
                return resolved
            logger.info("No channel ID found on %s", page_url)

        if is_channel_id(value):
            # The ID itself is authoritative; only the name is lost.
            return ResolvedChannel(channel_id=value, name=await self.feed_title(value))
        return None

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
