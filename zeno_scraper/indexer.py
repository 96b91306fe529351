"""Meilisearch client for the supervised search engine, over its HTTP API."""

import logging
from typing import Optional

import httpx

from .config import SearchConfig
from .models import Document

logger = logging.getLogger("zeno_scraper")


class SearchIndexError(Exception):
    pass


class MeilisearchIndexer:
    def __init__(self, config: SearchConfig, transport: httpx.AsyncBaseTransport = None):
        self.config = config
        self.index_name = config.index_name
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            headers = {}
            if self.config.master_key:
                headers["Authorization"] = f"Bearer {self.config.master_key}"
            self._client = httpx.AsyncClient(
                base_url=self.config.url,
                timeout=self.config.request_timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            resp = await self.client.request(method, path, **kwargs)
            resp.raise_for_status()
            return resp.json() if resp.content else {}
        except httpx.HTTPError as e:
            raise SearchIndexError(f"{method} {path} failed: {e}") from e
        except ValueError as e:
            raise SearchIndexError(f"{method} {path} returned invalid JSON: {e}") from e

    async def index(self, doc: Document) -> Optional[int]:
        """Add or replace one document. Returns the engine's task uid."""
        task = await self._request(
            "POST",
            f"/indexes/{self.index_name}/documents",
            params={"primaryKey": "id"},
            json=[doc.to_dict()],
        )
        task_uid = task.get("taskUid")
        logger.info(f"indexing {doc.url} with task UID {task_uid}")
        return task_uid

    async def delete(self, doc_id: str) -> Optional[int]:
        task = await self._request("DELETE", f"/indexes/{self.index_name}/documents/{doc_id}")
        task_uid = task.get("taskUid")
        logger.info(f"delete {doc_id} with task UID {task_uid}")
        return task_uid

    async def search(self, query: str, limit: int = 20, offset: int = 0) -> dict:
        return await self._request(
            "POST",
            f"/indexes/{self.index_name}/search",
            json={"q": query, "limit": limit, "offset": offset},
        )

    async def is_healthy(self) -> bool:
        """Liveness probe. Any error or non-2xx answer counts as down."""
        try:
            resp = await self.client.get("/health", timeout=self.config.probe_timeout)
            return resp.is_success
        except (httpx.HTTPError, httpx.InvalidURL):
            return False
