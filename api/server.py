"""FastAPI server: scrape submission, stored documents, search proxy."""

import asyncio
import json
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from zeno_scraper.db import Database, StoreError
from zeno_scraper.indexer import MeilisearchIndexer, SearchIndexError
from zeno_scraper.models import EmptyIdError, InvalidRequestError
from zeno_scraper.scraper import Scraper, ShutdownError
from zeno_scraper.shutdown import IdleWatcher

DEFAULT_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]


class ScrapeRequest(BaseModel):
    url: str
    title: str = ""
    description: str = ""
    capture: bool = False


def create_app(scraper: Scraper, db: Database, indexer: MeilisearchIndexer,
               idle_watcher: Optional[IdleWatcher] = None,
               cors_origins: Optional[List[str]] = None) -> FastAPI:
    app = FastAPI(
        title="Zeno",
        version="0.1.0",
        description="Scrape single pages and PDFs into a local search index.",
    )

    # --- Rate limiting ---
    limiter = Limiter(key_func=get_remote_address)
    app.state.limiter = limiter

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        return Response(
            content=json.dumps({"error": "Rate limit exceeded. Please slow down."}),
            status_code=429,
            media_type="application/json",
        )

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in (cors_origins or DEFAULT_ORIGINS)],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Middleware: every request resets the idle timer ---
    @app.middleware("http")
    async def activity_middleware(request: Request, call_next):
        if idle_watcher is not None:
            idle_watcher.touch()
        return await call_next(request)

    # --- Routes ---

    @app.get("/api/health")
    async def health():
        return {
            "status": "ok",
            "service": "zeno",
            "search": await indexer.is_healthy(),
            "in_flight": scraper.in_flight,
        }

    @app.post("/api/scrape", status_code=202)
    @limiter.limit("60/minute")
    async def scrape(request: Request, req: ScrapeRequest):
        """Queue a one-hop scrape. The result lands in the store asynchronously."""
        try:
            job = scraper.submit(req.url, req.title, req.description, req.capture)
        except InvalidRequestError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except ShutdownError as e:
            raise HTTPException(status_code=503, detail=str(e))
        return {"id": job.document_id, "url": job.url}

    @app.get("/api/documents")
    @limiter.limit("60/minute")
    async def list_documents(
        request: Request,
        page: int = Query(1, ge=1),
        per_page: int = Query(50, ge=1, le=200),
    ):
        """List stored documents with pagination."""
        offset = (page - 1) * per_page
        try:
            total = await asyncio.to_thread(db.count)
            docs = await asyncio.to_thread(db.get_all, per_page, offset)
        except StoreError as e:
            raise HTTPException(status_code=500, detail=str(e))
        return {
            "documents": [d.to_dict() for d in docs],
            "total": total,
            "page": page,
            "per_page": per_page,
            "pages": (total + per_page - 1) // per_page,
        }

    @app.get("/api/documents/{doc_id}")
    @limiter.limit("60/minute")
    async def get_document(request: Request, doc_id: str):
        try:
            doc = await asyncio.to_thread(db.get, doc_id)
        except StoreError as e:
            raise HTTPException(status_code=500, detail=str(e))
        if doc is None:
            raise HTTPException(status_code=404, detail="Document not found")
        return doc.to_dict()

    @app.delete("/api/documents/{doc_id}", status_code=204)
    @limiter.limit("30/minute")
    async def delete_document(request: Request, doc_id: str):
        try:
            await scraper.delete(doc_id.strip())
        except EmptyIdError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except SearchIndexError as e:
            raise HTTPException(status_code=502, detail=str(e))
        except StoreError as e:
            raise HTTPException(status_code=500, detail=str(e))
        return Response(status_code=204)

    @app.get("/api/search")
    @limiter.limit("30/minute")
    async def search_documents(
        request: Request,
        q: str = Query(..., min_length=1),
        page: int = Query(1, ge=1),
        per_page: int = Query(20, ge=1, le=100),
    ):
        """Full-text search, delegated to the search engine."""
        try:
            return await indexer.search(q, limit=per_page, offset=(page - 1) * per_page)
        except SearchIndexError as e:
            raise HTTPException(status_code=502, detail=str(e))

    return app
