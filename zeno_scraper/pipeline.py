"""Save-then-index and its mirror, index-then-delete.

The two paths are not symmetric. On save the store is written first and an
index failure is only logged, so the store may run ahead of the index. On
delete the index goes first and a failure there leaves the store untouched.
Neither path is transactional.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Union

from .db import Database
from .indexer import MeilisearchIndexer, SearchIndexError
from .models import Document, EmptyIdError, derive_id

logger = logging.getLogger("zeno_scraper")


async def save_and_index(doc: Document, db: Database, indexer: MeilisearchIndexer) -> bool:
    """Persist doc, then index it.

    Store failures propagate. Returns False when only indexing failed.
    """
    doc.parsed_at = datetime.now(timezone.utc)
    if not doc.id:
        doc.id = derive_id(doc.url)

    await asyncio.to_thread(db.save, doc)

    try:
        await indexer.index(doc)
    except SearchIndexError as e:
        logger.error(f"could not index {doc.url}, store is ahead of the index: {e}")
        return False
    return True


async def delete_document(target: Union[str, Document], db: Database,
                          indexer: MeilisearchIndexer):
    """Remove a document from the index, then from the store.

    `target` is a bare id or a full record; a record must carry its id.

    An index failure raises before the store is touched. A store failure
    after a successful index delete also raises; the record then exists
    only in the store until the delete is retried.
    """
    doc_id = target.id if isinstance(target, Document) else target
    if not doc_id:
        raise EmptyIdError()

    try:
        await indexer.delete(doc_id)
    except SearchIndexError as e:
        raise SearchIndexError(f"cannot delete from index: {e}") from e

    await asyncio.to_thread(db.delete, doc_id)
    logger.info(f"deleted {doc_id}")
