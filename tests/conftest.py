import pytest

from zeno_scraper.indexer import SearchIndexError


class FakeIndexer:
    """In-memory search index with switchable failures."""

    def __init__(self, fail_index: bool = False, fail_delete: bool = False, healthy: bool = True):
        self.fail_index = fail_index
        self.fail_delete = fail_delete
        self.healthy = healthy
        self.docs = {}
        self.calls = []

    async def index(self, doc):
        self.calls.append(("index", doc.id))
        if self.fail_index:
            raise SearchIndexError("index unavailable")
        self.docs[doc.id] = doc.to_dict()
        return len(self.calls)

    async def delete(self, doc_id):
        self.calls.append(("delete", doc_id))
        if self.fail_delete:
            raise SearchIndexError("index unavailable")
        self.docs.pop(doc_id, None)
        return len(self.calls)

    async def search(self, query, limit=20, offset=0):
        hits = [d for d in self.docs.values() if query.lower() in (d["content"] + d["title"]).lower()]
        return {"hits": hits[offset:offset + limit], "query": query}

    async def is_healthy(self):
        return self.healthy

    async def close(self):
        pass


@pytest.fixture
def fake_indexer():
    return FakeIndexer()
