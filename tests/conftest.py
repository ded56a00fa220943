"""Shared fixtures: an in-memory fetcher and statement-page builders."""

from __future__ import annotations

from typing import Any

import pytest

from dcf_mcp.config import Settings
from dcf_mcp.errors import FetchError, FetchFailure
from dcf_mcp.fetcher import Document
from dcf_mcp.models import ExchangeRate, StockSnapshot
from dcf_mcp.snapshot import assemble_snapshot, document_urls


class FakeFetcher:
    """Serves canned HTML pages and JSON feeds keyed by URL.

    Unknown URLs behave like a 404.  Every requested URL is recorded.
    """

    def __init__(
        self,
        pages: dict[str, str] | None = None,
        feeds: dict[str, Any] | None = None,
        errors: dict[str, Exception] | None = None,
    ):
        self.pages = pages or {}
        self.feeds = feeds or {}
        self.errors = errors or {}
        self.calls: list[str] = []

    def _check(self, url: str) -> None:
        self.calls.append(url)
        if url in self.errors:
            raise self.errors[url]

    def fetch(self, url: str) -> Document:
        self._check(url)
        if url not in self.pages:
            raise FetchError(url, FetchFailure.HTTP_STATUS, "HTTP 404", status_code=404)
        return Document.from_html(url, self.pages[url])

    def get_json(self, url: str) -> Any:
        self._check(url)
        if url not in self.feeds:
            raise FetchError(url, FetchFailure.HTTP_STATUS, "HTTP 404", status_code=404)
        return self.feeds[url]


def statement_table(rows: list[tuple[str, str]], header: str = "") -> str:
    """A minimal statement page: label column then the latest period."""
    body = "".join(
        f"<tr><td>{label}</td><td>{value}</td><td>0</td></tr>" for label, value in rows
    )
    return (
        f"<html><body>{header}<table>"
        "<thead><tr><th>Fiscal Year</th><th>TTM</th><th>FY2023</th></tr></thead>"
        f"<tbody>{body}</tbody></table></body></html>"
    )


def doc(html: str, url: str = "https://docs.test/page") -> Document:
    return Document.from_html(url, html)


BASE = "https://docs.test/stocks"
QUOTE = "https://quote.test/chart/{ticker}"
QUOTE_PAGE = "https://quote.test/quote/{ticker}"
FX = "https://fx.test/latest/USD"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        document_base_url=BASE,
        quote_url=QUOTE,
        quote_page_url=QUOTE_PAGE,
        exchange_rate_url=FX,
    )


def ticker_pages(
    ticker: str = "TEST",
    *,
    currency_note: str = "",
    free_cash_flow: str = "1,000",
    cash: str = "500",
    debt: str = "200",
    shares: str = "2,000,000,000",
    price_html: str = '<div data-test="price-value">$12.34</div>',
) -> dict[str, str]:
    """The four statement pages for a ticker, keyed by URL."""
    root = f"{BASE}/{ticker}"
    return {
        f"{root}/": (
            f"<html><head><title>Test Corp ({ticker}) Stock Price | Source</title></head>"
            f"<body><h1>Test Corp ({ticker})</h1>{price_html}</body></html>"
        ),
        f"{root}/financials/": statement_table(
            [("Revenue", "9,000"), ("Shares Outstanding (Diluted)", shares)],
            header=f"<h1>Test Corp Income Statement</h1><p>{currency_note}</p>",
        ),
        f"{root}/financials/cash-flow-statement/": statement_table(
            [("Operating Cash Flow", "1,400"), ("Free Cash Flow", free_cash_flow)],
        ),
        f"{root}/financials/balance-sheet/?p=trailing": statement_table(
            [("Cash & Equivalents", cash), ("Total Debt", debt)],
        ),
    }


def quote_feed(price: Any) -> dict:
    return {"chart": {"result": [{"meta": {"regularMarketPrice": price}}]}}


def make_snapshot(
    *,
    free_cash_flow=100.0,
    cash=50.0,
    debt=20.0,
    shares=10.0,
    price=100.0,
    rate=1.0,
    currency="USD",
) -> StockSnapshot:
    """A hand-built snapshot with round numbers for valuation tests."""
    return assemble_snapshot(
        company_name="Test Corp",
        ticker="TEST",
        rate=ExchangeRate(rate=rate, from_currency=currency, timestamp="2024-01-01T00:00:00+00:00"),
        current_price=price,
        free_cash_flow=free_cash_flow,
        cash_and_equivalents=cash,
        total_debt=debt,
        shares_outstanding=shares,
        source_urls=document_urls("TEST", BASE),
    )
