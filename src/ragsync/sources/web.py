"""Fetch web pages as SourceDocuments.

Every URL is checked before a socket is opened: http/https only, and the host
must not resolve to a private, loopback, link-local or otherwise internal
address. Responses are limited to 5 MB of text/html or text/plain, 30 s, and
three redirects. HTML is reduced to readable text with BeautifulSoup and
html2text; the Last-Modified header becomes the source timestamp.
"""

from __future__ import annotations

import ipaddress
import socket
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from http.client import HTTPResponse
from typing import Any

import html2text
from bs4 import BeautifulSoup

from ragsync import __version__
from ragsync.sources.base import SourceDocument, SourceFetchError

_USER_AGENT = f"ragsync/{__version__}"
_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
_TIMEOUT = 30  # seconds
_MAX_REDIRECTS = 3
_ALLOWED_SCHEMES = {"https", "http"}
_ALLOWED_CONTENT_TYPES = {"text/html", "text/plain"}
_STRIPPED_TAGS = ["script", "style", "nav", "footer", "header", "aside", "noscript", "form"]


def _converter() -> html2text.HTML2Text:
    h2t = html2text.HTML2Text()
    h2t.ignore_links = True
    h2t.ignore_images = True
    h2t.body_width = 0
    return h2t


class SsrfError(SourceFetchError):
    """Raised when a URL resolves to a private or reserved address."""


@dataclass
class FetchedPage:
    body: bytes
    content_type: str
    last_modified: str | None


@dataclass
class ExtractedPage:
    title: str | None
    text: str
    og_title: str | None = None
    og_image: str | None = None


def build_url_metadata(
    url: str, *, html_title: str | None = None, og_title: str | None = None, og_image: str | None = None
) -> dict[str, Any]:
    """Descriptive metadata for a web document.

    The title prefers ``og:title``, then ``<title>``, then the last URL path
    segment, then the host.
    """
    parsed = urllib.parse.urlsplit(url)
    segments = [s for s in parsed.path.split("/") if s]
    title = (
        (og_title or "").strip()
        or (html_title or "").strip()
        or (urllib.parse.unquote(segments[-1]) if segments else "")
        or parsed.netloc
    )
    return {
        "title": title,
        "source_kind": "url",
        "origin_id": url,
        "preview_image_url": og_image or None,
    }


class WebSource:
    """Fetch a URL and reduce it to plain text plus metadata.

    SSRF protection is applied *before* any connection is made: the hostname
    is resolved and every resulting IP address is checked against
    private/loopback/link-local/reserved ranges.
    """

    def __init__(self, *, timeout: float = _TIMEOUT, max_bytes: int = _MAX_BYTES) -> None:
        self._timeout = timeout
        self._max_bytes = max_bytes

    def fetch(self, url: str) -> SourceDocument:
        """Raises SourceFetchError (or SsrfError) when the page cannot be used."""
        self._validate_scheme(url)
        self._check_ssrf(url)
        page = self._fetch(url)
        extracted = self.extract(page.body, page.content_type)
        metadata = build_url_metadata(
            url,
            html_title=extracted.title,
            og_title=extracted.og_title,
            og_image=extracted.og_image,
        )
        return SourceDocument(
            title=metadata["title"],
            plain_text=extracted.text,
            source_url=url,
            last_modified=page.last_modified,
            source_metadata=metadata,
        )

    # ------------------------------------------------------------------
    # Fetch pipeline
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_scheme(url: str) -> None:
        parsed = urllib.parse.urlparse(url)
        if parsed.scheme not in _ALLOWED_SCHEMES:
            raise SourceFetchError(
                f"Refusing URL with scheme '{parsed.scheme}': only http and https are fetched."
            )

    @staticmethod
    def _check_ssrf(url: str) -> None:
        parsed = urllib.parse.urlparse(url)
        hostname = parsed.hostname
        if not hostname:
            raise SourceFetchError(f"URL has no hostname: {url}")

        try:
            addrinfos = socket.getaddrinfo(hostname, None)
        except socket.gaierror as exc:
            raise SourceFetchError(f"DNS resolution failed for '{hostname}': {exc}") from exc

        for addrinfo in addrinfos:
            try:
                ip = ipaddress.ip_address(addrinfo[4][0])
            except ValueError:
                continue
            if (
                ip.is_private
                or ip.is_loopback
                or ip.is_link_local
                or ip.is_reserved
                or ip.is_multicast
                or ip.is_unspecified
            ):
                raise SsrfError(
                    f"URL resolves to private address ({ip}). "
                    "Refusing to fetch from an internal network."
                )

    def _fetch(self, url: str) -> FetchedPage:
        request = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT})
        opener = urllib.request.build_opener(_LimitedRedirectHandler(_MAX_REDIRECTS))

        try:
            response: HTTPResponse = opener.open(request, timeout=self._timeout)
        except urllib.error.URLError as exc:
            raise SourceFetchError(f"Failed to fetch URL '{url}': {exc}") from exc

        with response:
            raw_ct = response.headers.get("Content-Type", "text/html")
            ct = raw_ct.split(";")[0].strip().lower()
            if ct not in _ALLOWED_CONTENT_TYPES:
                raise SourceFetchError(
                    f"Content-Type '{ct}' of '{url}' is not ingestible. "
                    f"Expected one of: {', '.join(sorted(_ALLOWED_CONTENT_TYPES))}"
                )
            body = response.read(self._max_bytes + 1)
            last_modified = response.headers.get("Last-Modified")

        if len(body) > self._max_bytes:
            raise SourceFetchError(
                f"Response body exceeds {self._max_bytes // (1024 * 1024)} MB limit for URL '{url}'."
            )
        return FetchedPage(body=body, content_type=ct, last_modified=last_modified)

    @staticmethod
    def extract(body: bytes, content_type: str) -> ExtractedPage:
        """Convert *body* to plain text, keeping title and Open Graph hints."""
        text = body.decode("utf-8", errors="replace")
        if content_type == "text/plain":
            return ExtractedPage(title=None, text=text.strip())

        soup = BeautifulSoup(text, "html.parser")
        title = soup.title.get_text(strip=True) if soup.title else None
        og_title = _meta_property(soup, "og:title")
        og_image = _meta_property(soup, "og:image")

        root = soup.find("article") or soup.find("main") or soup.body or soup
        for tag in root.find_all(_STRIPPED_TAGS):
            tag.decompose()
        return ExtractedPage(
            title=title or None,
            text=_converter().handle(str(root)).strip(),
            og_title=og_title,
            og_image=og_image,
        )


def _meta_property(soup: BeautifulSoup, name: str) -> str | None:
    tag = soup.find("meta", attrs={"property": name}) or soup.find("meta", attrs={"name": name})
    if tag is None:
        return None
    content = (tag.get("content") or "").strip()
    return content or None


class _LimitedRedirectHandler(urllib.request.HTTPRedirectHandler):
    """Raise after more than *max_redirects* redirects."""

    def __init__(self, max_redirects: int) -> None:
        self._max_redirects = max_redirects
        self._count = 0

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        self._count += 1
        if self._count > self._max_redirects:
            raise SourceFetchError(
                f"Too many redirects (>{self._max_redirects}) for URL '{req.full_url}'."
            )
        return super().redirect_request(req, fp, code, msg, headers, newurl)
