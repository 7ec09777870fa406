"""Shape of ``feed.json`` and the small parsers that go with it.

The file is a JSON object keyed by YouTube channel ID::

    {
      "UCxxxxxxxxxxxxxxxxxxxxxx": {"name": "Some Channel", "discordChannel": "0"}
    }

Two levels of checking live here:

* ``is_valid_store`` – the lenient check applied on every read.  Only the
  object shape and the two string fields are enforced.
* ``validate_store`` – the strict check applied before a raw replacement is
  committed.  Keys must be channel IDs and ``discordChannel`` must be a
  Discord snowflake or ``"0"``.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Optional
from urllib.parse import parse_qs, urlparse

CHANNEL_ID_PATTERN = r"UC[A-Za-z0-9_-]{22}"
# Whole-string checks go through fullmatch; $ would accept a trailing newline.
CHANNEL_ID_RE = re.compile(CHANNEL_ID_PATTERN)

FEED_URL_TEMPLATE = "https://www.youtube.com/feeds/videos.xml?channel_id={channel_id}"
FEED_PATH = "/feeds/videos.xml"

UNSET_TARGET = "0"
_TARGET_RE = re.compile(r"0|[0-9]{17,19}")
_DISPLAY_TARGET_RE = re.compile(r"#.+-([0-9]{17,19})")

_CHANNEL_PATH_RE = re.compile(rf"^/channel/({CHANNEL_ID_PATTERN})(?:/|\Z)")
_YOUTUBE_HOSTS = {"youtube.com", "www.youtube.com", "m.youtube.com"}

FeedData = Dict[str, Dict[str, str]]


class SchemaError(ValueError):
    """A document does not have the ``feed.json`` shape."""


def is_channel_id(value: str) -> bool:
    return bool(CHANNEL_ID_RE.fullmatch(value or ""))


def construct_feed_url(channel_id: str) -> str:
    return FEED_URL_TEMPLATE.format(channel_id=channel_id)


def channel_id_from_feed_url(url: str) -> Optional[str]:
    """Return the ``channel_id`` query parameter of a YouTube feed URL."""
    try:
        parsed = urlparse((url or "").strip())
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or parsed.hostname not in _YOUTUBE_HOSTS:
        return None
    if parsed.path != FEED_PATH:
        return None
    values = parse_qs(parsed.query).get("channel_id") or []
    if values and is_channel_id(values[0]):
        return values[0]
    return None


def extract_channel_id(url: str) -> Optional[str]:
    """Best-effort channel ID from a feed URL, a ``/channel/UC...`` URL or a raw ID.

    Handles and video URLs need a page fetch and are left to the resolver.
    """
    value = (url or "").strip()
    if is_channel_id(value):
        return value
    channel_id = channel_id_from_feed_url(value)
    if channel_id:
        return channel_id
    try:
        parsed = urlparse(value if "://" in value else f"https://{value}")
    except ValueError:
        return None
    if parsed.hostname in _YOUTUBE_HOSTS:
        match = _CHANNEL_PATH_RE.match(parsed.path)
        if match:
            return match.group(1)
    return None


def parse_notification_target(raw_input: str) -> Optional[str]:
    """Return the numeric Discord channel ID in *raw_input*, or ``None``.

    Accepted forms: ``"0"``, a bare 17-19 digit ID, or ``#<label>-<id>``.
    """
    value = (raw_input or "").strip()
    if _TARGET_RE.fullmatch(value):
        return value
    match = _DISPLAY_TARGET_RE.fullmatch(value)
    if match:
        return match.group(1)
    return None


def is_valid_target(value: str) -> bool:
    return bool(_TARGET_RE.fullmatch(value))


def _entry_has_fields(entry: Any) -> bool:
    return (
        isinstance(entry, dict)
        and isinstance(entry.get("name"), str)
        and isinstance(entry.get("discordChannel"), str)
    )


def is_valid_store(data: Any) -> bool:
    """Lenient read-side check: an object whose values carry both string fields."""
    if not isinstance(data, dict):
        return False
    return all(_entry_has_fields(entry) for entry in data.values())


def validate_store(data: Any) -> FeedData:
    """Strictly validate a whole document, raising ``SchemaError`` on the first problem."""
    if not isinstance(data, dict):
        raise SchemaError("Invalid JSON structure. Must be an object keyed by channel ID.")
    for key, entry in data.items():
        if not is_channel_id(key):
            raise SchemaError(
                f'Invalid channel ID "{key}". Keys must look like UC followed by 22 characters.'
            )
        if not _entry_has_fields(entry) or set(entry) != {"name", "discordChannel"}:
            raise SchemaError(
                f'Invalid structure for channel ID "{key}". Each entry must be an object '
                'with exactly "name" and "discordChannel" strings.'
            )
        if not is_valid_target(entry["discordChannel"]):
            raise SchemaError(
                f'Invalid discordChannel for channel ID "{key}". '
                'Use "0" or a numeric Discord channel ID.'
            )
    return data
