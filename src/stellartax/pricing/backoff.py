"""Shared GET-with-backoff for the price APIs.

Price providers never raise: an unusable answer is None, and the caller turns a
missing price into MissingPriceError when it builds the book.
"""

import asyncio
import logging

import httpx

from stellartax.infra.http.rate_limited_client import RateLimitedClient

logger = logging.getLogger(__name__)

MAX_RETRIES = 3


async def get_json(
    http: RateLimitedClient,
    url: str,
    params: dict[str, str],
    label: str,
) -> dict | None:
    """JSON body of a 200 response; 429 and transport errors are retried with exponential waits."""
    for attempt in range(MAX_RETRIES):
        try:
            response = await http.get(url, params=params)
        except httpx.HTTPError:
            logger.exception("%s request failed (attempt %d)", label, attempt + 1)
            if attempt < MAX_RETRIES - 1:
                await asyncio.sleep(2 ** attempt)
            continue

        if response.status_code == 429:
            wait = 2 ** (attempt + 1)  # 2, 4, 8 seconds
            logger.info("%s rate limited, waiting %ds...", label, wait)
            await asyncio.sleep(wait)
            continue
        if response.status_code != 200:
            logger.warning("%s returned %d", label, response.status_code)
            return None
        return response.json()

    logger.warning("%s exhausted retries", label)
    return None
