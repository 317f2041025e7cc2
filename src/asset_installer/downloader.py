"""HTTP downloads for catalog metadata and library files."""

from __future__ import annotations

import logging

import httpx

from asset_installer.errors import ResourceDownloadError
from asset_installer.types import CancellationToken

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
USER_AGENT = "asset-installer"


class HttpDownloader:
    """Downloads resources with httpx.

    Satisfies the Downloader protocol structurally.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the downloader.

        Args:
            timeout: Request timeout in seconds.
            transport: Optional transport, e.g. httpx.MockTransport in tests.
        """
        self.timeout = timeout
        self.transport = transport

    async def get_bytes(self, url: str, token: CancellationToken | None = None) -> bytes:
        """Download a resource.

        Args:
            url: Resource URL.
            token: Optional cancellation token, checked before the request.

        Returns:
            Response body.

        Raises:
            ResourceDownloadError: On connection errors or non-2xx responses.
        """
        if token is not None:
            token.raise_if_cancelled()

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self.transport,
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
            ) as client:
                resp = await client.get(url)
                resp.raise_for_status()
                return resp.content
        except httpx.HTTPStatusError as exc:
            logger.debug("GET %s returned %s", url, exc.response.status_code)
            raise ResourceDownloadError(url, f"HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            logger.debug("GET %s failed: %s", url, exc)
            raise ResourceDownloadError(url, str(exc)) from exc
