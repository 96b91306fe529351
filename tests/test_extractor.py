import os
import subprocess

import pytest

from zeno_scraper import extractor
from zeno_scraper.downloader import FetchResult
from zeno_scraper.extractor import (
    ExtractionError,
    PdfExtractor,
    build_extractors,
    extract_text,
    extract_title,
    handle_html,
    parse_html,
)
from zeno_scraper.models import DocType


@pytest.mark.parametrize("markup, want", [
    ("<p>test</p>", "test "),
    ("<p>Hello <b>World</b></p>", "Hello World "),
    ("""<body>
    <header>
        <p>test</p>
    </header>
    <main>
        <p>test</p>
    </main>
</body>""", "test "),
    ("""<body>
    <header>
        <p>test</p>
    </header>
    <main>
        <p>test</p>
        <p>test</p>
    </main>
</body>""", "test test "),
])
def test_extract_text(markup, want):
    assert extract_text(parse_html(markup)) == want


def test_extract_text_skips_denylisted_tags():
    markup = """<html><head><title>T</title><style>p {}</style></head>
    <body><nav>menu</nav><p>one<sup>1</sup></p><script>var x;</script>
    <noscript>enable js</noscript><label>Name</label><textarea>draft</textarea>
    <footer>(c)</footer><p>two</p></body></html>"""
    assert extract_text(parse_html(markup)) == "one two "


def test_extract_text_skips_boilerplate_roles():
    markup = """<div role="navigation"><a>Home</a></div>
    <div role="contentinfo">footer text</div>
    <span role="button">Click</span>
    <div role="main">kept</div>"""
    assert extract_text(parse_html(markup)) == "kept "


def test_extract_text_ignores_comments():
    assert extract_text(parse_html("<p>a<!-- hidden -->b</p>")) == "a b "


def test_extract_title():
    soup = parse_html("<html><head><title> My Page </title></head><body><p>x</p></body></html>")
    assert extract_title(soup) == "My Page"


def test_extract_title_missing():
    assert extract_title(parse_html("<p>no title here</p>")) == ""


def _html_result(markup: str) -> FetchResult:
    return FetchResult(
        url="https://example.com/",
        status_code=200,
        content_type="text/html; charset=utf-8",
        body=markup.encode("utf-8"),
        encoding="utf-8",
    )


def test_handle_html_without_capture_still_extracts_title():
    fetched = _html_result("<title>Catalog</title><p>body text</p>")
    assert handle_html(fetched, capture=False) == ("", "Catalog")


def test_handle_html_with_capture():
    fetched = _html_result("<title>Catalog</title><main><p>body text</p></main>")
    content, title = handle_html(fetched, capture=True)
    assert title == "Catalog"
    assert content == "body text "


class _FakeRun:
    """Stands in for subprocess.run; records calls and the temp file state."""

    def __init__(self, stdout="", returncode=0):
        self.stdout = stdout
        self.returncode = returncode
        self.calls = []
        self.kwargs = {}
        self.seen_body = None

    def __call__(self, args, **kwargs):
        self.calls.append(args)
        self.kwargs = kwargs
        if args[1] == "-v":
            return subprocess.CompletedProcess(args, 0, "", "pdftotext version 22")
        with open(args[1], "rb") as f:
            self.seen_body = f.read()
        if self.returncode:
            raise subprocess.CalledProcessError(self.returncode, args, "", "Syntax Error")
        return subprocess.CompletedProcess(args, 0, self.stdout, "")


def test_pdf_extract_runs_tool_and_removes_temp_file(monkeypatch):
    fake = _FakeRun(stdout="\n  Annual Report 2023  \nSecond line\n")
    monkeypatch.setattr(extractor.subprocess, "run", fake)

    pdf = PdfExtractor()
    assert pdf.available
    content, title = pdf.extract(b"%PDF-1.4 fake", "https://example.com/files/report.pdf", True)

    assert content == "\n  Annual Report 2023  \nSecond line\n"
    assert title == "Annual Report 2023"
    assert fake.seen_body == b"%PDF-1.4 fake"
    tool_call = fake.calls[-1]
    assert tool_call[0] == "pdftotext" and tool_call[2] == "-"
    assert "report.pdf" in os.path.basename(tool_call[1])
    assert not os.path.exists(tool_call[1])


def test_pdf_output_decoding_tolerates_bad_bytes(monkeypatch):
    fake = _FakeRun(stdout="Report")
    monkeypatch.setattr(extractor.subprocess, "run", fake)

    PdfExtractor().extract(b"%PDF-1.4 fake", "https://example.com/a.pdf", True)
    assert fake.kwargs["encoding"] == "utf-8"
    assert fake.kwargs["errors"] == "replace"


def test_pdf_extract_failure_propagates_and_removes_temp_file(monkeypatch):
    fake = _FakeRun(returncode=1)
    monkeypatch.setattr(extractor.subprocess, "run", fake)

    pdf = PdfExtractor()
    with pytest.raises(ExtractionError):
        pdf.extract(b"not a pdf", "https://example.com/broken.pdf", True)
    assert not os.path.exists(fake.calls[-1][1])


def test_pdf_extract_without_capture_skips_tool(monkeypatch):
    fake = _FakeRun(stdout="never used")
    monkeypatch.setattr(extractor.subprocess, "run", fake)

    pdf = PdfExtractor()
    assert pdf.extract(b"%PDF", "https://example.com/a.pdf", False) == ("", "")
    assert all(call[1] == "-v" for call in fake.calls)


def test_pdf_extractor_reports_missing_tool(monkeypatch):
    def missing(args, **kwargs):
        raise FileNotFoundError(args[0])

    monkeypatch.setattr(extractor.subprocess, "run", missing)
    pdf = PdfExtractor(cmd="no-such-pdftotext")
    assert not pdf.available
    with pytest.raises(ExtractionError):
        pdf.extract(b"%PDF", "https://example.com/a.pdf", True)


def test_extractor_table_has_no_unknown_entry(monkeypatch):
    monkeypatch.setattr(extractor.subprocess, "run", _FakeRun())
    table = build_extractors(PdfExtractor())
    assert set(table) == {DocType.HTML, DocType.PDF}
