"""Data models for the scraper."""

import base64
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from urllib.parse import urlparse

import httpx


class InvalidRequestError(ValueError):
    """A scrape or delete submission that must not reach the pipeline."""


class EmptyIdError(ValueError):
    def __init__(self, message: str = "empty id"):
        super().__init__(message)


class DocType(str, Enum):
    HTML = "html"
    PDF = "pdf"
    UNKNOWN = "unknown"


@dataclass
class Document:
    url: str
    id: str = ""
    title: str = ""
    description: str = ""
    content: str = ""
    capture_requested: bool = False
    doc_type: DocType = DocType.UNKNOWN
    # Set when persistence is attempted, not at fetch time
    parsed_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "description": self.description,
            "content": self.content,
            "capture_requested": self.capture_requested,
            "doc_type": self.doc_type.value,
            "parsed_at": int(self.parsed_at.timestamp()) if self.parsed_at else None,
        }

    @classmethod
    def from_row(cls, row) -> "Document":
        parsed_at = row["parsed_at"]
        return cls(
            id=row["id"],
            url=row["url"],
            title=row["title"] or "",
            description=row["description"] or "",
            content=row["content"] or "",
            capture_requested=bool(row["capture_requested"]),
            doc_type=DocType(row["doc_type"]),
            parsed_at=(
                datetime.fromtimestamp(parsed_at, tz=timezone.utc)
                if parsed_at is not None else None
            ),
        )

    def __str__(self) -> str:
        return (
            f"Document(id={self.id!r}, url={self.url[:40]!r}, title={self.title[:25]!r}, "
            f"description={self.description[:50]!r}, content={self.content[:50]!r}, "
            f"capture_requested={self.capture_requested}, doc_type={self.doc_type.value}, "
            f"parsed_at={self.parsed_at})"
        )


def derive_id(url: str) -> str:
    """Stable document id: URL-safe base64 of the URL bytes.

    Padding is stripped because the search engine only accepts
    ``[A-Za-z0-9_-]`` in primary keys.
    """
    return base64.urlsafe_b64encode(url.encode("utf-8")).decode("ascii").rstrip("=")


def url_from_id(doc_id: str) -> str:
    if not doc_id:
        raise EmptyIdError()
    padded = doc_id + "=" * (-len(doc_id) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")


def normalize_url(url: str) -> str:
    """Validate an absolute http(s) URL and return its canonical form."""
    if not url or not url.strip():
        raise InvalidRequestError("url is required")
    try:
        parsed = urlparse(url.strip())
    except ValueError as e:
        raise InvalidRequestError(f"invalid url {url!r}: {e}") from e
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidRequestError(f"invalid url {url!r}: absolute http(s) url required")
    # urlparse accepts ports and hosts the HTTP client will refuse
    try:
        httpx.URL(parsed.geturl())
    except httpx.InvalidURL as e:
        raise InvalidRequestError(f"invalid url {url!r}: {e}") from e
    return parsed.geturl()
