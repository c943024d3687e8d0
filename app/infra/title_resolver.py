"""
============================================================================
Project Sim Steward v1.0.0
Title Resolver - Display Titles for Incident Links
============================================================================

Reliability Level: STANDARD (display-only collaborator)
Input Constraints: http(s) URL
Side Effects: Outbound HTTP GET requests

SUPPORTED SOURCES:
- YouTube (watch, youtu.be, shorts, embed) via the public oEmbed endpoint
- Reddit discussion threads via the public .json listing
- Anything else resolves to nothing

RETRY POLICY:
- GET only (idempotent)
- Retry on transport errors, 429 and 5xx; other 4xx fail immediately
- Other httpx errors (redirect loops, bad content encoding) fail immediately
- Exponential backoff with jitter, capped by the request deadline
- No attempt starts after the deadline has expired

The resolver never raises: every failure resolves to None.

============================================================================
"""

import asyncio
import logging
import random
from typing import Any, Optional, Tuple
from urllib.parse import urlencode, urlparse

import httpx

from app.infra.deadline import DeadlineExceeded, RequestDeadline
from app.observability.metrics import record_title_resolution

# Configure module logger
logger = logging.getLogger(__name__)


# ============================================================================
# CONSTANTS
# ============================================================================

YOUTUBE_OEMBED_URL = "https://www.youtube.com/oembed"
REDDIT_BASE_URL = "https://www.reddit.com"

YOUTUBE_HOSTS = frozenset({
    "youtube.com", "www.youtube.com", "m.youtube.com", "music.youtube.com",
    "youtu.be", "www.youtu.be",
})
REDDIT_HOSTS = frozenset({
    "reddit.com", "www.reddit.com", "old.reddit.com", "new.reddit.com",
    "np.reddit.com",
})

SOURCE_YOUTUBE = "youtube"
SOURCE_REDDIT = "reddit"
SOURCE_UNSUPPORTED = "unsupported"

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_SECONDS = 0.5
DEFAULT_BACKOFF_MULTIPLIER = 2.0
DEFAULT_MAX_DELAY_SECONDS = 4.0
DEFAULT_ATTEMPT_TIMEOUT_SECONDS = 5.0

USER_AGENT = "sim-steward/1.0"

MAX_TITLE_LENGTH = 300


# ============================================================================
# URL HELPERS
# ============================================================================

def build_lookup(url: Optional[str]) -> Tuple[str, Optional[str]]:
    """
    Map an incident link to (source, lookup_url).

    Returns:
        (SOURCE_UNSUPPORTED, None) for hosts without a title API
    """
    if not url:
        return SOURCE_UNSUPPORTED, None

    parsed = urlparse(url.strip())
    host = (parsed.hostname or "").lower()

    if host in YOUTUBE_HOSTS:
        query = urlencode({"url": url.strip(), "format": "json"})
        return SOURCE_YOUTUBE, f"{YOUTUBE_OEMBED_URL}?{query}"

    if host in REDDIT_HOSTS and "/comments/" in parsed.path:
        path = parsed.path.rstrip("/")
        return SOURCE_REDDIT, f"{REDDIT_BASE_URL}{path}.json"

    return SOURCE_UNSUPPORTED, None


def extract_title(source: str, data: Any) -> Optional[str]:
    """Pull the display title out of a YouTube or Reddit JSON response."""
    title: Any = None
    if source == SOURCE_YOUTUBE and isinstance(data, dict):
        title = data.get("title")
    elif source == SOURCE_REDDIT:
        # Listing: [post_listing, comment_listing]
        try:
            title = data[0]["data"]["children"][0]["data"]["title"]
        except (KeyError, IndexError, TypeError):
            title = None

    if isinstance(title, str) and title.strip():
        return title.strip()[:MAX_TITLE_LENGTH]
    return None


# ============================================================================
# TITLE RESOLVER
# ============================================================================

class TitleResolver:
    """
    Resolves a display title for an incident link.

    Reliability Level: STANDARD
    Input Constraints: All numeric params must be positive
    Side Effects: HTTP GET with bounded retry and backoff

    USAGE:
        resolver = TitleResolver()
        title = await resolver.resolve(url, deadline, correlation_id)
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY_SECONDS,
        backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
        max_delay: float = DEFAULT_MAX_DELAY_SECONDS,
        attempt_timeout: float = DEFAULT_ATTEMPT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._backoff_multiplier = backoff_multiplier
        self._max_delay = max_delay
        self._attempt_timeout = attempt_timeout
        self._transport = transport

    def _calculate_delay(self, attempt: int) -> float:
        """
        Calculate delay with exponential backoff and jitter.

        Reliability Level: STANDARD
        Input Constraints: attempt >= 0
        Side Effects: None
        """
        delay = self._base_delay * (self._backoff_multiplier ** attempt)
        delay = min(delay, self._max_delay)
        # Add jitter (0-25% of delay)
        jitter = delay * random.uniform(0, 0.25)
        return delay + jitter

    async def _async_sleep(self, seconds: float) -> None:
        """Async sleep wrapper for testing."""
        await asyncio.sleep(seconds)

    async def resolve(
        self,
        url: Optional[str],
        deadline: RequestDeadline,
        correlation_id: str = "UNKNOWN",
    ) -> Optional[str]:
        """
        Resolve a display title, or None.

        Reliability Level: STANDARD
        Input Constraints: Shared request deadline
        Side Effects: Up to max_attempts HTTP GET requests
        """
        source, lookup_url = build_lookup(url)
        if lookup_url is None:
            record_title_resolution(source, "skipped")
            return None

        last_error = None

        async with httpx.AsyncClient(
            timeout=self._attempt_timeout,
            transport=self._transport,
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
        ) as client:
            for attempt in range(self._max_attempts):
                if deadline.expired:
                    last_error = "deadline expired"
                    break

                try:
                    response = await deadline.run(client.get(lookup_url))
                except DeadlineExceeded:
                    last_error = "deadline expired"
                    break
                except httpx.TransportError as e:
                    last_error = f"{type(e).__name__}: {str(e)[:100]}"
                    logger.warning(
                        f"[TITLE-RETRY] Transport error | "
                        f"source={source} | "
                        f"attempt={attempt + 1}/{self._max_attempts} | "
                        f"error={last_error} | "
                        f"correlation_id={correlation_id}"
                    )
                except httpx.HTTPError as e:
                    # Redirect loops and undecodable bodies will not recover on retry
                    last_error = f"{type(e).__name__}: {str(e)[:100]}"
                    break
                else:
                    if response.status_code == 200:
                        try:
                            title = extract_title(source, response.json())
                        except ValueError:
                            title = None
                        outcome = "resolved" if title else "empty"
                        record_title_resolution(source, outcome)
                        logger.info(
                            f"[TITLE-RESOLVED] source={source} | "
                            f"found={title is not None} | "
                            f"attempts={attempt + 1} | "
                            f"correlation_id={correlation_id}"
                        )
                        return title

                    if response.status_code != 429 and response.status_code < 500:
                        record_title_resolution(source, "rejected")
                        logger.warning(
                            f"[TITLE-REJECTED] source={source} | "
                            f"status={response.status_code} | "
                            f"correlation_id={correlation_id}"
                        )
                        return None

                    last_error = f"status {response.status_code}"
                    logger.warning(
                        f"[TITLE-RETRY] source={source} | "
                        f"status={response.status_code} | "
                        f"attempt={attempt + 1}/{self._max_attempts} | "
                        f"correlation_id={correlation_id}"
                    )

                # Wait before retry (except on last attempt)
                if attempt < self._max_attempts - 1:
                    delay = min(self._calculate_delay(attempt), deadline.remaining())
                    if delay <= 0:
                        last_error = "deadline expired"
                        break
                    await self._async_sleep(delay)

        outcome = "timeout" if last_error == "deadline expired" else "failed"
        record_title_resolution(source, outcome)
        logger.warning(
            f"[TITLE-FAILED] source={source} | "
            f"last_error={last_error} | "
            f"correlation_id={correlation_id}"
        )
        return None
