import asyncio
import json
import logging
import os
import random
from typing import List, Optional

import aiohttp
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

API_URL = "https://api.groq.com/openai/v1/chat/completions"
DEFAULT_MODEL = "openai/gpt-oss-120b"
MAX_ATTEMPTS = 2

NO_FEEDS_MESSAGE = "No feed URLs provided to simplify."
ERROR_MESSAGE = "An error occurred while simplifying feeds."

SYSTEM_PROMPT = (
    "You are an expert in analyzing YouTube feed URLs and identifying opportunities for simplification. "
    "Analyze the list of feed URLs you are given and suggest simplifications. Consider: "
    "Are there any feeds that seem to be duplicates or provide very similar content? "
    "Can any feeds be consolidated into a single feed? "
    "Are there any feeds that are no longer active or relevant? "
    "Be clear and concise."
    """ Respond only with JSON using this format:
    {
        "suggestions": [
            "suggestion 1",
            "suggestion 2"
        ]
    }"""
)


class SimplifierError(Exception):
    """Base exception for suggestion failures."""
    pass


class RetryableError(SimplifierError):
    """Rate limits, timeouts and server errors."""
    pass


class NonRetryableError(SimplifierError):
    """Auth, validation and malformed responses."""
    pass


async def _backoff(attempt: int) -> None:
    await asyncio.sleep((2 ** attempt) + random.random())


def _build_prompt(feed_urls: List[str]) -> str:
    lines = "\n".join(f"- {url}" for url in feed_urls)
    return f"Given the following list of feed URLs:\n{lines}"


async def request_suggestions(feed_urls: List[str], api_key: str, model: Optional[str] = None) -> List[str]:
    """Ask the LLM for suggestions about *feed_urls*.

    Raises ``RetryableError`` or ``NonRetryableError``; ``simplify_feeds`` is
    the non-raising wrapper callers should use.
    """
    headers = {"Authorization": f"Bearer {api_key}"}
    payload = {
        "model": model or os.getenv("GROQ_MODEL", DEFAULT_MODEL),
        "messages": [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": _build_prompt(feed_urls)},
        ],
        "response_format": {"type": "json_object"},
    }

    try:
        timeout = aiohttp.ClientTimeout(total=30)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(API_URL, headers=headers, json=payload) as response:
                if response.status == 429:
                    raise RetryableError("Rate limit hit (429)")
                if response.status >= 500:
                    raise RetryableError(f"Server error {response.status}")
                if response.status in (401, 403):
                    raise NonRetryableError(f"Authentication error {response.status}")
                if response.status >= 400:
                    raise NonRetryableError(f"Client error {response.status}")

                try:
                    data = await response.json()
                except (json.JSONDecodeError, ValueError, aiohttp.ContentTypeError):
                    raise NonRetryableError("Invalid JSON response")
    except asyncio.TimeoutError:
        raise RetryableError("Request timeout")
    except aiohttp.ClientError as e:
        raise RetryableError(f"Network error: {e}")

    try:
        content_str = data["choices"][0]["message"]["content"]
        parsed = json.loads(content_str)
    except (KeyError, IndexError, TypeError, json.JSONDecodeError) as e:
        raise NonRetryableError(f"Unexpected response structure: {e}")

    suggestions = parsed.get("suggestions") if isinstance(parsed, dict) else None
    if not isinstance(suggestions, list):
        raise NonRetryableError("Response has no suggestions list")
    suggestions = [str(s).strip() for s in suggestions if str(s).strip()]
    if not suggestions:
        raise NonRetryableError("Response has an empty suggestions list")
    return suggestions


async def simplify_feeds(feed_urls: List[str]) -> List[str]:
    """Return simplification suggestions for *feed_urls*.

    Never raises and never returns an empty list: empty input and failures
    yield a single explanatory message.
    """
    if not feed_urls:
        return [NO_FEEDS_MESSAGE]

    api_key = os.getenv("GROQ_API_KEY")
    if not api_key:
        logger.error("GROQ_API_KEY environment variable not set")
        return [ERROR_MESSAGE]

    for attempt in range(MAX_ATTEMPTS):
        try:
            return await request_suggestions(feed_urls, api_key)
        except RetryableError as exc:
            logger.warning("Simplify attempt %d failed: %s", attempt + 1, exc)
            if attempt + 1 < MAX_ATTEMPTS:
                await _backoff(attempt)
        except NonRetryableError as exc:
            logger.error("Error simplifying feeds: %s", exc)
            break
    return [ERROR_MESSAGE]
