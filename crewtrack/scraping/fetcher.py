"""HTTP fetch of the results page. One attempt per call, no retries."""
from __future__ import annotations

import logging
from typing import Optional

import httpx

from crewtrack.exceptions import FetchError

log = logging.getLogger(__name__)


class Fetcher:
    def __init__(
        self,
        source_url: str,
        timeout: float = 20.0,
        user_agent: str = "crew-tracker/1.1",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.source_url = (source_url or "").strip()
        self.timeout = timeout
        self.user_agent = user_agent
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _client_get(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                headers={"User-Agent": self.user_agent},
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch(self) -> Optional[str]:
        """
        Raw markup of the source page, or None when no source is configured.
        Raises FetchError on a non-2xx status or a transport failure.
        """
        if not self.source_url:
            return None
        client = await self._client_get()
        try:
            r = await client.get(self.source_url)
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            code = e.response.status_code
            raise FetchError(f"fetch failed: {code}", url=self.source_url, status_code=code) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FetchError(f"fetch failed: {e!r}", url=self.source_url) from e
        log.debug("Fetched %s (%d bytes)", self.source_url, len(r.content))
        return r.text
