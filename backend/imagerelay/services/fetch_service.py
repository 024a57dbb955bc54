import logging
from typing import Optional

import httpx

from imagerelay.core.config import Settings
from imagerelay.core.errors import TransportError, UpstreamFetchError
from imagerelay.models.image import FetchedImage

logger = logging.getLogger(__name__)

class ImageFetcher:
    BODY_SNIPPET_CHARS = 500
    DEFAULT_CONTENT_TYPE = "application/octet-stream"

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = httpx.Timeout(settings.HTTP_TIMEOUT_SECONDS)
        # Swapped for httpx.MockTransport in tests
        self.transport = transport

    async def fetch(self, url: str) -> FetchedImage:
        """
        GET the url and return its bytes with the upstream content type.
        Non-2xx responses raise UpstreamFetchError carrying the upstream status.
        """
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self.transport,
                follow_redirects=True,
            ) as client:
                response = await client.get(url)
        except httpx.TimeoutException as e:
            logger.error(f"Timed out fetching image from {url}: {e}")
            raise TransportError("Timed out fetching image") from e
        except httpx.HTTPError as e:
            logger.error(f"Transport failure fetching image from {url}: {e}")
            raise TransportError("Failed to fetch image") from e

        if not response.is_success:
            snippet = response.text[:self.BODY_SNIPPET_CHARS]
            logger.warning(
                "Upstream returned %d for %s. body=%s",
                response.status_code,
                url,
                snippet.replace("\n", " "),
            )
            raise UpstreamFetchError(
                f"Failed to fetch image: {response.reason_phrase or response.status_code}",
                status_code=response.status_code,
                body=snippet,
            )

        content_type = response.headers.get("content-type", self.DEFAULT_CONTENT_TYPE)
        content_type = content_type.split(";", 1)[0].strip() or self.DEFAULT_CONTENT_TYPE
        logger.info(f"Fetched {len(response.content)} bytes ({content_type}) from {url}")
        return FetchedImage(content=response.content, content_type=content_type)
