"""One-hop HTTP fetch: headers first, body only when capture is requested."""

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

import httpx

from .config import DownloadConfig

logger = logging.getLogger("zeno_scraper")


class FetchError(Exception):
    pass


@dataclass
class FetchResult:
    url: str
    status_code: int
    content_type: str = ""
    body: bytes = b""
    encoding: Optional[str] = None
    # True when the body was never transferred
    aborted: bool = False

    @property
    def path(self) -> str:
        return urlparse(self.url).path


class Downloader:
    def __init__(self, config: DownloadConfig, transport: httpx.AsyncBaseTransport = None):
        self.config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout, connect=self.config.connect_timeout),
                follow_redirects=True,
                headers={"User-Agent": self.config.user_agent},
                verify=self.config.verify_tls,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def fetch(self, url: str, capture: bool) -> FetchResult:
        """Fetch a single resource. Links inside it are never followed.

        Raises FetchError on transport errors, non-2xx responses and bodies
        larger than max_file_size.
        """
        logger.info(f"Visiting {url}")
        try:
            async with self.client.stream("GET", url) as resp:
                resp.raise_for_status()
                result = FetchResult(
                    url=str(resp.url),
                    status_code=resp.status_code,
                    content_type=resp.headers.get("content-type", ""),
                    encoding=resp.charset_encoding,
                )

                if not capture:
                    # Leaving the stream unread closes the connection
                    logger.info(f"aborting request for {url}, skipping body")
                    result.aborted = True
                    return result

                content_length = resp.headers.get("content-length")
                if content_length and int(content_length) > self.config.max_file_size:
                    raise FetchError(f"File too large: {content_length} bytes")

                chunks = []
                size = 0
                async for chunk in resp.aiter_bytes(chunk_size=65536):
                    size += len(chunk)
                    if size > self.config.max_file_size:
                        raise FetchError(f"File exceeded max size during download: {size} bytes")
                    chunks.append(chunk)
                result.body = b"".join(chunks)
                return result
        except httpx.HTTPStatusError as e:
            raise FetchError(f"{url} returned {e.response.status_code}") from e
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            raise FetchError(f"could not fetch {url}: {e}") from e
