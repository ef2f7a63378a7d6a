# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Source page fetcher.

Browser-like request headers, hard timeout, bounded redirects.  Errors are
translated into the PostMedia taxonomy here so callers never see httpx types.
"""

from __future__ import annotations

import logging

import httpx

from .errors import ContentNotFoundError, FetchError, UpstreamTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

MAX_REDIRECTS = 5

BROWSER_HEADERS = {
    "User-Agent": DEFAULT_USER_AGENT,
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,"
        "image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7"
    ),
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "max-age=0",
    "Sec-Ch-Ua": '"Not_A Brand";v="8", "Chromium";v="120", "Google Chrome";v="120"',
    "Sec-Ch-Ua-Mobile": "?0",
    "Sec-Ch-Ua-Platform": '"macOS"',
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Upgrade-Insecure-Requests": "1",
    "Viewport-Width": "1920",
}


class PageFetcher:
    """Fetch raw page HTML.  One shared ``httpx.AsyncClient`` per fetcher."""

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(
            headers=BROWSER_HEADERS,
            follow_redirects=True,
            max_redirects=MAX_REDIRECTS,
            timeout=timeout,
        )

    async def fetch(self, url: str) -> str:
        try:
            resp = await self._client.get(url, timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(f"Fetching {url} timed out after {self.timeout:g}s", stage="fetch") from e
        except httpx.HTTPError as e:
            raise FetchError(f"Fetching {url} failed: {e}") from e

        if resp.status_code == 404:
            raise ContentNotFoundError("The post could not be found. It may be private or deleted.")
        if resp.status_code >= 400:
            raise FetchError(f"Source responded with HTTP {resp.status_code}", status_code=resp.status_code)

        logger.debug("Fetched %s (%d bytes)", url, len(resp.content))
        return resp.text

    async def aclose(self) -> None:
        await self._client.aclose()
