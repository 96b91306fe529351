"""Text extraction: denylist DOM walk for HTML, pdftotext for PDFs.

Each supported DocType maps to one handler in the table returned by
build_extractors(). A handler takes the fetched response and the capture
flag and returns (content, title).
"""

import logging
import os
import posixpath
import subprocess
import tempfile
import time
from typing import Callable, Dict, Tuple
from urllib.parse import urlparse

from bs4 import BeautifulSoup
from bs4.builder import ParserRejectedMarkup
from bs4.element import NavigableString, PreformattedString, Tag

from .downloader import FetchResult
from .models import DocType

logger = logging.getLogger("zeno_scraper")

IGNORED_TAGS = frozenset({
    "head", "sup",
    # Boilerplate that rarely holds page content
    "header", "footer", "nav",
    # Form elements
    "label", "textarea",
    # Javascript/style nodes
    "script", "noscript", "style",
})
IGNORED_ROLES = frozenset({"navigation", "contentinfo", "button"})

Handler = Callable[[FetchResult, bool], Tuple[str, str]]


class ExtractionError(Exception):
    pass


def _ignored(tag: Tag) -> bool:
    if tag.name in IGNORED_TAGS:
        return True
    return tag.get("role") in IGNORED_ROLES


def extract_text(node) -> str:
    """Concatenate visible text in document order, one space after each run."""
    if isinstance(node, PreformattedString):
        # comments, doctypes, CDATA
        return ""
    if isinstance(node, NavigableString):
        text = node.strip()
        return f"{text} " if text else ""
    if isinstance(node, Tag) and _ignored(node):
        return ""
    return "".join(extract_text(child) for child in node.children)


def extract_title(node) -> str:
    """First non-empty text child of the first <title>, depth-first."""
    if not isinstance(node, Tag):
        return ""
    if node.name == "title":
        first = node.contents[0] if node.contents else None
        if isinstance(first, NavigableString) and not isinstance(first, PreformattedString):
            return first.strip()
        return ""
    for child in node.children:
        title = extract_title(child)
        if title:
            return title
    return ""


def parse_html(markup, encoding: str = None) -> BeautifulSoup:
    try:
        return BeautifulSoup(markup, "html.parser", from_encoding=encoding)
    except (ParserRejectedMarkup, RecursionError) as e:
        raise ExtractionError(f"could not parse html response: {e}") from e


def handle_html(fetched: FetchResult, capture: bool) -> Tuple[str, str]:
    soup = parse_html(fetched.body, fetched.encoding)
    try:
        content = extract_text(soup) if capture else ""
        title = extract_title(soup)
    except RecursionError as e:
        raise ExtractionError(f"html document nested too deeply: {fetched.url}") from e
    return content, title


class PdfExtractor:
    """Runs pdftotext over a scoped temp copy of the response body."""

    def __init__(self, cmd: str = "pdftotext", timeout: int = 120):
        self.cmd = cmd
        self.timeout = timeout
        self.available = self._check_cmd(cmd)
        if not self.available:
            logger.warning(f"{cmd} not found, PDF content capture will fail")

    @staticmethod
    def _check_cmd(cmd: str) -> bool:
        try:
            subprocess.run([cmd, "-v"], capture_output=True, timeout=5)
            return True
        except (OSError, subprocess.TimeoutExpired):
            return False

    def extract(self, body: bytes, url: str, capture: bool) -> Tuple[str, str]:
        """Returns (content, title). The temp file never outlives the call."""
        path = self._write_temp(body, url)
        try:
            content = self._pdftotext(path) if capture else ""
        finally:
            try:
                os.remove(path)
            except OSError as e:
                logger.warning(f"could not remove temp file {path}: {e}")

        title = next((line.strip() for line in content.splitlines() if line.strip()), "")
        return content, title

    def __call__(self, fetched: FetchResult, capture: bool) -> Tuple[str, str]:
        return self.extract(fetched.body, fetched.url, capture)

    @staticmethod
    def _write_temp(body: bytes, url: str) -> str:
        base = posixpath.basename(urlparse(url).path.rstrip("/")) or "document"
        base = "".join(c if c.isalnum() or c in "-_." else "_" for c in base)[:80]
        try:
            fd, path = tempfile.mkstemp(prefix=f"{base}-{int(time.time())}-", suffix=".pdf")
        except OSError as e:
            raise ExtractionError(f"could not create temp file for {url}: {e}") from e
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(body)
        except OSError as e:
            os.remove(path)
            raise ExtractionError(f"could not write temp file {path}: {e}") from e
        logger.debug(f"wrote {len(body):,} bytes to {path}")
        return path

    def _pdftotext(self, path: str) -> str:
        try:
            result = subprocess.run(
                [self.cmd, path, "-"],
                capture_output=True, encoding="utf-8", errors="replace",
                timeout=self.timeout, check=True,
            )
        except subprocess.CalledProcessError as e:
            raise ExtractionError(
                f"{self.cmd} exited with {e.returncode}: {(e.stderr or '').strip()}"
            ) from e
        except (OSError, subprocess.TimeoutExpired) as e:
            raise ExtractionError(f"could not run {self.cmd}: {e}") from e
        return result.stdout


def build_extractors(pdf_extractor: PdfExtractor) -> Dict[DocType, Handler]:
    """Classification-to-extraction table. UNKNOWN deliberately has no entry."""
    return {
        DocType.HTML: handle_html,
        DocType.PDF: pdf_extractor,
    }
