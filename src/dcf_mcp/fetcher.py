"""HTTP document fetcher for the financial-statement source and JSON feeds.

Each call is a single attempt (no retries) with a rotating browser
User-Agent, a realistic header set, a timeout and a redirect cap.
HTML responses are parsed with BeautifulSoup into a ``Document``; anything
that is not HTML is rejected.

Failure mapping (all raise FetchError carrying the URL):
  HTTP 4xx/5xx                  → FetchFailure.HTTP_STATUS (status_code set)
  connection refused / timeout  → FetchFailure.NO_RESPONSE
  any other requests failure    → FetchFailure.TRANSPORT
  non-HTML content type         → FetchFailure.UNEXPECTED_CONTENT_TYPE
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Any, Callable

import requests
from bs4 import BeautifulSoup

from dcf_mcp.errors import FetchError, FetchFailure

log = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════
#  Constants
# ═══════════════════════════════════════════════════════════════════════════

USER_AGENTS: tuple[str, ...] = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/15.0 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/96.0.4664.110 Safari/537.36 Edg/96.0.1054.62",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:95.0) Gecko/20100101 Firefox/95.0",
)

BASE_HEADERS: dict[str, str] = {
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,"
        "image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.9"
    ),
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate",
    "Referer": "https://stockanalysis.com/",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "DNT": "1",
    "Connection": "keep-alive",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "same-origin",
    "Sec-Fetch-User": "?1",
}

HTML_MARKER = "text/html"


# ═══════════════════════════════════════════════════════════════════════════
#  Document
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class Document:
    """A fetched, parsed page.  Lives for one extraction call."""
    url: str
    soup: BeautifulSoup

    @classmethod
    def from_html(cls, url: str, html: str) -> "Document":
        return cls(url=url, soup=BeautifulSoup(html, "html.parser"))

    def select(self, selector: str) -> list:
        return self.soup.select(selector)

    def text_of(self, selector: str) -> str:
        """Concatenated text of every element matching ``selector``."""
        return "".join(el.get_text() for el in self.soup.select(selector)).strip()

    def full_text(self) -> str:
        root = self.soup.body or self.soup
        return root.get_text(" ")


# ═══════════════════════════════════════════════════════════════════════════
#  Fetcher
# ═══════════════════════════════════════════════════════════════════════════

class DocumentFetcher:
    """Single-attempt HTTP client returning parsed documents or JSON."""

    def __init__(
        self,
        timeout: float = 15.0,
        max_redirects: int = 5,
        user_agents: tuple[str, ...] = USER_AGENTS,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ):
        self.timeout = timeout
        self.max_redirects = max_redirects
        self.user_agents = user_agents
        self._session_factory = session_factory

    def _headers(self) -> dict[str, str]:
        headers = dict(BASE_HEADERS)
        headers["User-Agent"] = random.choice(self.user_agents)
        return headers

    def _get(self, url: str, headers: dict[str, str]) -> requests.Response:
        try:
            with self._session_factory() as session:
                session.max_redirects = self.max_redirects
                resp = session.get(url, headers=headers, timeout=self.timeout)
                resp.raise_for_status()
                return resp
        except requests.exceptions.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            log.error("Error fetching URL %s: HTTP %s", url, status)
            raise FetchError(url, FetchFailure.HTTP_STATUS, f"HTTP {status}", status_code=status) from exc
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as exc:
            log.error("Error fetching URL %s: no response (%s)", url, exc)
            raise FetchError(
                url,
                FetchFailure.NO_RESPONSE,
                "No response received. The service might be temporarily unavailable.",
            ) from exc
        except requests.exceptions.RequestException as exc:
            log.error("Error fetching URL %s: %s", url, exc)
            raise FetchError(url, FetchFailure.TRANSPORT, str(exc)) from exc

    def fetch(self, url: str) -> Document:
        """GET an HTML page and parse it.  Raises FetchError."""
        resp = self._get(url, self._headers())
        content_type = resp.headers.get("content-type", "") or ""
        if HTML_MARKER not in content_type.lower():
            log.error("Error fetching URL %s: unexpected content type %r", url, content_type)
            raise FetchError(
                url,
                FetchFailure.UNEXPECTED_CONTENT_TYPE,
                f"Unexpected content type: {content_type}",
            )
        return Document.from_html(url, resp.text)

    def get_json(self, url: str) -> Any:
        """GET a structured feed and decode JSON.  Raises FetchError."""
        headers = {"User-Agent": random.choice(self.user_agents), "Accept": "application/json"}
        resp = self._get(url, headers)
        try:
            return resp.json()
        except ValueError as exc:
            raise FetchError(url, FetchFailure.TRANSPORT, f"Invalid JSON body: {exc}") from exc


# ═══════════════════════════════════════════════════════════════════════════
#  Module-level singleton, shared across the app
# ═══════════════════════════════════════════════════════════════════════════

_fetcher: DocumentFetcher | None = None


def get_fetcher() -> DocumentFetcher:
    """Get or create the shared DocumentFetcher from config."""
    global _fetcher
    if _fetcher is None:
        from dcf_mcp.config import get_config
        config = get_config()
        _fetcher = DocumentFetcher(timeout=config.fetch_timeout, max_redirects=config.max_redirects)
    return _fetcher
