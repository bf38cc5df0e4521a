"""Tests for WebSource: SSRF guard, scheme validation, extraction, fetch pipeline."""

from __future__ import annotations

import socket
import urllib.request
from unittest.mock import MagicMock, patch

import pytest

from ragsync.sources.base import SourceFetchError
from ragsync.sources.web import (
    FetchedPage,
    SsrfError,
    WebSource,
    _LimitedRedirectHandler,
    build_url_metadata,
)

# ------------------------------------------------------------------
# Scheme validation
# ------------------------------------------------------------------


def test_scheme_https_ok():
    WebSource._validate_scheme("https://example.com/page")  # no exception


def test_scheme_http_ok():
    WebSource._validate_scheme("http://example.com/page")  # no exception


def test_scheme_ftp_raises():
    with pytest.raises(SourceFetchError, match="scheme"):
        WebSource._validate_scheme("ftp://example.com")


def test_scheme_file_raises():
    with pytest.raises(SourceFetchError, match="scheme"):
        WebSource._validate_scheme("file:///etc/passwd")


def test_check_ssrf_no_hostname_raises():
    with pytest.raises(SourceFetchError, match="hostname"):
        WebSource._check_ssrf("https://")


# ------------------------------------------------------------------
# SSRF guard
# ------------------------------------------------------------------


def _patch_getaddrinfo(ip: str):
    """Return a context manager that makes getaddrinfo resolve to *ip*."""
    addr_info = [(None, None, None, None, (ip, 0))]
    return patch("ragsync.sources.web.socket.getaddrinfo", return_value=addr_info)


def test_ssrf_public_ip_ok():
    with _patch_getaddrinfo("93.184.216.34"):
        WebSource._check_ssrf("https://example.com")  # no exception


@pytest.mark.parametrize(
    "ip",
    ["127.0.0.1", "192.168.1.1", "169.254.169.254", "10.0.0.1", "172.16.0.1", "::1", "0.0.0.0"],
)
def test_ssrf_private_ranges_blocked(ip):
    with _patch_getaddrinfo(ip):
        with pytest.raises(SsrfError, match="private address"):
            WebSource._check_ssrf("http://internal.example/")


def test_ssrf_dns_failure_is_fetch_error():
    with patch("ragsync.sources.web.socket.getaddrinfo", side_effect=socket.gaierror("nope")):
        with pytest.raises(SourceFetchError, match="DNS resolution failed"):
            WebSource._check_ssrf("https://does-not-resolve.example")


def test_ssrf_error_is_source_fetch_error():
    assert issubclass(SsrfError, SourceFetchError)


# ------------------------------------------------------------------
# extract()
# ------------------------------------------------------------------


def test_plain_text_passthrough():
    page = WebSource.extract(b"  Hello world.  ", "text/plain")
    assert page.text == "Hello world."
    assert page.title is None


def test_html_converted_to_text():
    html = b"<html><head><title>Spec</title></head><body><p>DMX512 protocol.</p></body></html>"
    page = WebSource.extract(html, "text/html")
    assert "DMX512" in page.text
    assert "<" not in page.text
    assert page.title == "Spec"


def test_html_boilerplate_removed():
    html = (
        b"<html><body><nav>Menu</nav><script>alert('xss')</script>"
        b"<p>Content.</p><footer>Copyright</footer></body></html>"
    )
    page = WebSource.extract(html, "text/html")
    assert "alert" not in page.text
    assert "Menu" not in page.text
    assert "Copyright" not in page.text
    assert "Content" in page.text


def test_html_prefers_article():
    html = b"<html><body><div>Sidebar junk</div><article><p>Main story.</p></article></body></html>"
    page = WebSource.extract(html, "text/html")
    assert "Main story" in page.text
    assert "Sidebar" not in page.text


def test_open_graph_hints():
    html = (
        b'<html><head><meta property="og:title" content="OG Title">'
        b'<meta property="og:image" content="https://cdn.example/p.png"></head>'
        b"<body><p>x</p></body></html>"
    )
    page = WebSource.extract(html, "text/html")
    assert page.og_title == "OG Title"
    assert page.og_image == "https://cdn.example/p.png"


# ------------------------------------------------------------------
# build_url_metadata()
# ------------------------------------------------------------------


def test_metadata_title_precedence():
    url = "https://example.com/docs/getting%20started"
    assert build_url_metadata(url, og_title="OG", html_title="HTML")["title"] == "OG"
    assert build_url_metadata(url, html_title="HTML")["title"] == "HTML"
    assert build_url_metadata(url)["title"] == "getting started"
    assert build_url_metadata("https://example.com/")["title"] == "example.com"


def test_metadata_fields():
    meta = build_url_metadata("https://example.com/a", og_image="https://cdn/x.png")
    assert meta == {
        "title": "a",
        "source_kind": "url",
        "origin_id": "https://example.com/a",
        "preview_image_url": "https://cdn/x.png",
    }


# ------------------------------------------------------------------
# fetch() — full pipeline
# ------------------------------------------------------------------


def _mock_fetch(body: bytes, content_type: str = "text/html", last_modified: str | None = None):
    page = FetchedPage(body=body, content_type=content_type, last_modified=last_modified)
    return patch.object(WebSource, "_fetch", return_value=page)


def test_fetch_builds_source_document():
    html = b"<html><head><title>Guide</title></head><body><p>Body text.</p></body></html>"
    with _patch_getaddrinfo("93.184.216.34"), _mock_fetch(
        html, last_modified="Fri, 01 Mar 2024 10:00:00 GMT"
    ):
        doc = WebSource().fetch("https://example.com/guide")
    assert doc.title == "Guide"
    assert "Body text" in doc.plain_text
    assert doc.source_url == "https://example.com/guide"
    assert doc.last_modified == "Fri, 01 Mar 2024 10:00:00 GMT"
    assert doc.source_metadata["source_kind"] == "url"


def test_fetch_blocked_before_connecting():
    with _patch_getaddrinfo("127.0.0.1"), patch.object(WebSource, "_fetch") as fetch:
        with pytest.raises(SsrfError):
            WebSource().fetch("http://localhost/admin")
    fetch.assert_not_called()


def _mock_opener(headers: dict, body: bytes):
    response = MagicMock()
    response.headers = headers
    response.read.return_value = body
    response.__enter__.return_value = response
    opener = MagicMock()
    opener.open.return_value = response
    return patch("ragsync.sources.web.urllib.request.build_opener", return_value=opener)


def test_fetch_rejects_content_type():
    with _mock_opener({"Content-Type": "application/pdf"}, b"%PDF"):
        with pytest.raises(SourceFetchError, match="Content-Type"):
            WebSource()._fetch("https://example.com/file.pdf")


def test_fetch_rejects_oversized_body():
    with _mock_opener({"Content-Type": "text/html"}, b"x" * 11):
        with pytest.raises(SourceFetchError, match="exceeds"):
            WebSource(max_bytes=10)._fetch("https://example.com/")


def test_fetch_reads_last_modified():
    headers = {"Content-Type": "text/html; charset=utf-8", "Last-Modified": "Fri, 01 Mar 2024 10:00:00 GMT"}
    with _mock_opener(headers, b"<p>x</p>"):
        page = WebSource()._fetch("https://example.com/")
    assert page.content_type == "text/html"
    assert page.last_modified == "Fri, 01 Mar 2024 10:00:00 GMT"


def test_redirect_limit():
    handler = _LimitedRedirectHandler(1)
    req = urllib.request.Request("http://example.com/a")
    assert handler.redirect_request(req, None, 302, "Found", {}, "http://example.com/b")
    with pytest.raises(SourceFetchError, match="Too many redirects"):
        handler.redirect_request(req, None, 302, "Found", {}, "http://example.com/c")
