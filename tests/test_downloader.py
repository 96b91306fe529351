import httpx
import pytest

from zeno_scraper.config import DownloadConfig
from zeno_scraper.downloader import Downloader, FetchError


def _downloader(handler, **config):
    return Downloader(DownloadConfig(**config), transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_fetch_with_capture_reads_body():
    def handler(request):
        assert request.headers["user-agent"] == "ZenoScraper/1.0"
        return httpx.Response(200, headers={"content-type": "text/html; charset=utf-8"},
                              content=b"<p>hi</p>")

    result = await _downloader(handler).fetch("https://example.com/page", capture=True)
    assert result.body == b"<p>hi</p>"
    assert result.encoding == "utf-8"
    assert result.path == "/page"
    assert result.aborted is False


@pytest.mark.asyncio
async def test_fetch_without_capture_skips_body():
    def handler(request):
        return httpx.Response(200, headers={"content-type": "text/html"}, content=b"x" * 4096)

    result = await _downloader(handler, max_file_size=10).fetch("https://example.com/", capture=False)
    assert result.aborted is True
    assert result.body == b""
    assert result.content_type == "text/html"


@pytest.mark.asyncio
async def test_fetch_follows_redirect_and_reports_final_url():
    def handler(request):
        if request.url.path == "/download":
            return httpx.Response(302, headers={"location": "https://example.com/files/a.pdf"})
        return httpx.Response(200, headers={"content-type": "application/pdf"}, content=b"%PDF")

    result = await _downloader(handler).fetch("https://example.com/download", capture=True)
    assert result.url == "https://example.com/files/a.pdf"
    assert result.path == "/files/a.pdf"


@pytest.mark.asyncio
async def test_fetch_rejects_oversized_body():
    def handler(request):
        return httpx.Response(200, headers={"content-type": "application/pdf"}, content=b"x" * 2048)

    with pytest.raises(FetchError):
        await _downloader(handler, max_file_size=1024).fetch("https://example.com/a.pdf", capture=True)


@pytest.mark.asyncio
async def test_fetch_http_error():
    def handler(request):
        return httpx.Response(503)

    with pytest.raises(FetchError, match="503"):
        await _downloader(handler).fetch("https://example.com/", capture=True)


@pytest.mark.asyncio
async def test_fetch_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(FetchError):
        await _downloader(handler).fetch("https://example.com/", capture=False)


@pytest.mark.asyncio
async def test_fetch_unparseable_url_raises_fetch_error():
    def handler(request):
        raise AssertionError("no request should be sent")

    with pytest.raises(FetchError):
        await _downloader(handler).fetch("http://example.com:abc/page", capture=True)
