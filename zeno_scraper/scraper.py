"""Acquisition orchestrator: one asyncio task per scrape request.

Submitted -> Requested -> (Aborted | Fetched) -> Classified -> Extracted
-> Finalized, with Failed reachable from every non-terminal state. A
request that declines capture never downloads the body; it goes from
Aborted straight to classification and persistence.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Set, Union

from .classifier import classify
from .db import Database, StoreError
from .downloader import Downloader, FetchError
from .extractor import ExtractionError, Handler
from .indexer import MeilisearchIndexer
from .models import DocType, Document, derive_id, normalize_url
from .pipeline import delete_document, save_and_index

logger = logging.getLogger("zeno_scraper")


class ScrapeState(str, Enum):
    SUBMITTED = "submitted"
    REQUESTED = "requested"
    ABORTED = "aborted"
    FETCHED = "fetched"
    CLASSIFIED = "classified"
    EXTRACTED = "extracted"
    FINALIZED = "finalized"
    FAILED = "failed"


class ShutdownError(RuntimeError):
    pass


@dataclass
class ScrapeOutcome:
    state: ScrapeState
    document: Document
    error: Optional[str] = None
    indexed: bool = False


@dataclass
class ScrapeJob:
    document_id: str
    url: str
    task: "asyncio.Task[ScrapeOutcome]"


class Scraper:
    def __init__(self, downloader: Downloader, db: Database, indexer: MeilisearchIndexer,
                 extractors: Dict[DocType, Handler]):
        self.downloader = downloader
        self.db = db
        self.indexer = indexer
        self.extractors = extractors
        self._in_flight: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def submit(self, url: str, title: str = "", description: str = "",
               capture: bool = False) -> ScrapeJob:
        """Validate and start a scrape. Must be called from the event loop.

        Raises InvalidRequestError for malformed URLs and ShutdownError once
        close() has been called. Neither ever reaches the network.
        """
        if self._closed:
            raise ShutdownError("scraper is shutting down")
        url = normalize_url(url)
        doc = Document(
            url=url,
            id=derive_id(url),
            title=title or "",
            description=description or "",
            capture_requested=capture,
        )
        task = asyncio.create_task(self._run(doc), name=f"scrape:{doc.id}")
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return ScrapeJob(document_id=doc.id, url=url, task=task)

    def close(self):
        """Stop accepting new submissions. In-flight tasks keep running."""
        self._closed = True

    async def drain(self):
        """Wait for every in-flight scrape to finish on its own."""
        while self._in_flight:
            pending = list(self._in_flight)
            logger.info(f"waiting for {len(pending)} in-flight scrape(s)")
            await asyncio.wait(pending)

    async def delete(self, target: Union[str, Document]):
        await delete_document(target, self.db, self.indexer)

    def _fail(self, doc: Document, reason: str) -> ScrapeOutcome:
        logger.error(f"dropping {doc.url}: {reason}")
        return ScrapeOutcome(ScrapeState.FAILED, doc, error=reason)

    async def _run(self, doc: Document) -> ScrapeOutcome:
        logger.debug(f"{ScrapeState.REQUESTED.value}: {doc.url}")
        try:
            fetched = await self.downloader.fetch(doc.url, capture=doc.capture_requested)
        except FetchError as e:
            return self._fail(doc, f"error on scraping url: {e}")

        state = ScrapeState.ABORTED if fetched.aborted else ScrapeState.FETCHED
        logger.debug(f"{state.value}: {doc.url} ({fetched.content_type or 'no content-type'})")

        doc.doc_type = classify(fetched.path, fetched.content_type)
        if doc.doc_type is DocType.UNKNOWN:
            return self._fail(doc, f"unknown document type ({fetched.content_type!r})")
        logger.debug(f"{ScrapeState.CLASSIFIED.value}: {doc.url} as {doc.doc_type.value}")

        if not fetched.aborted:
            handler = self.extractors[doc.doc_type]
            try:
                content, title = await asyncio.to_thread(handler, fetched, doc.capture_requested)
            except ExtractionError as e:
                return self._fail(doc, f"could not scrape document: {e}")
            if doc.capture_requested:
                doc.content = content
            if not doc.title:
                doc.title = title
            logger.info(f"Parsed: {doc}")

        try:
            indexed = await save_and_index(doc, self.db, self.indexer)
        except StoreError as e:
            return self._fail(doc, f"error on saving doc entry: {e}")

        return ScrapeOutcome(ScrapeState.FINALIZED, doc, indexed=indexed)
