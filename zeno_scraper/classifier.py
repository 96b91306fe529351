"""Document type detection from the URL path and response headers."""

import posixpath

from .models import DocType


def classify(url_path: str, content_type: str) -> DocType:
    """Pick the document type for a fetched resource.

    A ``.pdf`` extension wins over whatever the server claims. Without an
    extension the content-type decides, and only HTML is accepted.
    Anything else is ``UNKNOWN`` and must not be guessed at.
    """
    ext = posixpath.splitext(url_path.lstrip("/"))[1].lower()
    if ext == ".pdf":
        return DocType.PDF
    if ext == "" and "text/html" in (content_type or "").lower():
        return DocType.HTML
    return DocType.UNKNOWN
