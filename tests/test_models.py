import pytest

from zeno_scraper.models import (
    DocType,
    Document,
    EmptyIdError,
    InvalidRequestError,
    derive_id,
    normalize_url,
    url_from_id,
)


def test_derive_id_is_stable_and_reversible():
    url = "https://thespblog.net/a-gophers-foray-into-rust/"
    assert derive_id(url) == derive_id(url)
    assert url_from_id(derive_id(url)) == url


def test_derive_id_differs_per_url_and_is_key_safe():
    a = derive_id("https://example.com/a")
    b = derive_id("https://example.com/b")
    assert a != b
    for doc_id in (a, b, derive_id("https://example.com/?q=ü&x=1")):
        assert doc_id
        assert all(c.isalnum() or c in "-_" for c in doc_id)


def test_url_from_id_rejects_empty():
    with pytest.raises(EmptyIdError):
        url_from_id("")


@pytest.mark.parametrize("url", [
    "", "   ", "not a url", "/relative/path", "ftp://example.com/x", "http://",
    "http://example.com:abc/page",
])
def test_normalize_url_rejects_malformed(url):
    with pytest.raises(InvalidRequestError):
        normalize_url(url)


def test_normalize_url_accepts_absolute_http():
    assert normalize_url(" https://example.com/docs/x.pdf ") == "https://example.com/docs/x.pdf"


def test_document_to_dict_shape():
    doc = Document(url="https://example.com/", id="abc", doc_type=DocType.HTML)
    d = doc.to_dict()
    assert d["doc_type"] == "html"
    assert d["parsed_at"] is None
    assert d["content"] == ""
    assert set(d) == {
        "id", "url", "title", "description", "content",
        "capture_requested", "doc_type", "parsed_at",
    }
