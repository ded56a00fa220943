"""Snapshot orchestrator: one currency-normalized record per ticker.

Data flow:
  1. validate_ticker()              → reject bad input before any fetch
  2. detect_currency(financials)    → reporting currency
  3. ExchangeRateResolver.resolve() → 1 unit of that currency in USD
  4. five extractions in parallel, each fetching its own document:
       company name, current price, free cash flow,
       balance sheet (cash + debt), shares outstanding
  5. assemble_snapshot()            → USD twins + display strings

All-or-nothing: the first failing task (in submission order) is re-raised
after every task has finished, and no partial snapshot is returned.
"""

from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from dcf_mcp.config import Settings, get_config
from dcf_mcp.currency import ExchangeRateResolver, detect_currency
from dcf_mcp.errors import FetchError, InvalidTickerError
from dcf_mcp.extraction import (
    CASH_AND_EQUIVALENTS,
    FREE_CASH_FLOW,
    SHARES_OUTSTANDING,
    TOTAL_DEBT,
    extract,
    extract_company_name,
    extract_price_element,
)
from dcf_mcp.fetcher import DocumentFetcher, get_fetcher
from dcf_mcp.models import ExchangeRate, FieldResult, SourceUrls, StockSnapshot
from dcf_mcp.numeric import format_money, format_number, format_usd

log = logging.getLogger(__name__)

TICKER_PATTERN = re.compile(r"^[A-Z]{1,5}$")

# Fields a user may edit at the presentation boundary
EDITABLE_FIELDS = frozenset({
    "current_price",
    "free_cash_flow",
    "cash_and_equivalents",
    "total_debt",
    "shares_outstanding",
})


def validate_ticker(ticker: str) -> str:
    """Return ``ticker`` unchanged if it matches ``^[A-Z]{1,5}$``."""
    if not isinstance(ticker, str) or not TICKER_PATTERN.fullmatch(ticker):
        raise InvalidTickerError(str(ticker))
    return ticker


def document_urls(ticker: str, base_url: str) -> SourceUrls:
    """The four statement pages for a ticker."""
    root = f"{base_url.rstrip('/')}/{ticker}"
    return SourceUrls(
        overview=f"{root}/",
        financials=f"{root}/financials/",
        cash_flow=f"{root}/financials/cash-flow-statement/",
        balance_sheet=f"{root}/financials/balance-sheet/?p=trailing",
    )


# ═══════════════════════════════════════════════════════════════════════════
#  Assembly
# ═══════════════════════════════════════════════════════════════════════════

def assemble_snapshot(
    *,
    company_name: str,
    ticker: str,
    rate: ExchangeRate,
    current_price: float,
    free_cash_flow: float,
    cash_and_equivalents: float,
    total_debt: float,
    shares_outstanding: float,
    source_urls: SourceUrls,
    extraction_methods: dict[str, str] | None = None,
) -> StockSnapshot:
    """Build the immutable record, deriving every USD and display field."""
    currency = rate.from_currency
    fx = rate.rate

    fcf_usd = free_cash_flow * fx
    cash_usd = cash_and_equivalents * fx
    debt_usd = total_debt * fx

    return StockSnapshot(
        company_name=company_name,
        ticker=ticker,
        reporting_currency=currency,
        exchange_rate=fx,
        exchange_rate_error=rate.error,
        exchange_rate_timestamp=rate.timestamp,
        current_price=current_price,
        formatted_current_price=format_number(current_price),
        free_cash_flow=free_cash_flow,
        free_cash_flow_usd=fcf_usd,
        formatted_free_cash_flow=format_money(free_cash_flow, currency),
        formatted_free_cash_flow_usd=format_usd(fcf_usd),
        cash_and_equivalents=cash_and_equivalents,
        cash_and_equivalents_usd=cash_usd,
        formatted_cash_and_equivalents=format_money(cash_and_equivalents, currency),
        formatted_cash_and_equivalents_usd=format_usd(cash_usd),
        total_debt=total_debt,
        total_debt_usd=debt_usd,
        formatted_total_debt=format_money(total_debt, currency),
        formatted_total_debt_usd=format_usd(debt_usd),
        shares_outstanding=shares_outstanding,
        formatted_shares_outstanding=format_number(shares_outstanding),
        source_urls=source_urls,
        extraction_methods=dict(extraction_methods or {}),
    )


def apply_overrides(snapshot: StockSnapshot, **changes: float) -> StockSnapshot:
    """Return a new snapshot with user-edited inputs and re-derived fields.

    Only the raw inputs in EDITABLE_FIELDS can be edited; the exchange rate
    and reporting currency stay as fetched.
    """
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot override {', '.join(sorted(unknown))}")

    values = {name: getattr(snapshot, name) for name in EDITABLE_FIELDS}
    values.update({k: float(v) for k, v in changes.items()})

    methods = dict(snapshot.extraction_methods)
    methods.update({k: "user_override" for k in changes})

    rate = ExchangeRate(
        rate=snapshot.exchange_rate,
        from_currency=snapshot.reporting_currency,
        timestamp=snapshot.exchange_rate_timestamp or "",
        error=snapshot.exchange_rate_error,
    )
    return assemble_snapshot(
        company_name=snapshot.company_name,
        ticker=snapshot.ticker,
        rate=rate,
        source_urls=snapshot.source_urls,
        extraction_methods=methods,
        **values,
    )


# ═══════════════════════════════════════════════════════════════════════════
#  Orchestrator
# ═══════════════════════════════════════════════════════════════════════════

class SnapshotBuilder:
    """Runs the per-ticker pipeline against a fetcher.

    The fetcher only needs ``fetch(url) -> Document`` and
    ``get_json(url) -> Any``; tests pass an in-memory one.
    """

    def __init__(
        self,
        fetcher: DocumentFetcher | Any | None = None,
        settings: Settings | None = None,
        rate_resolver: ExchangeRateResolver | None = None,
    ):
        self.settings = settings or get_config()
        self.fetcher = fetcher or get_fetcher()
        self.rate_resolver = rate_resolver or ExchangeRateResolver(
            self.fetcher, self.settings.exchange_rate_url
        )

    # ── Per-field tasks (each fetches its own document) ───────────────

    def _company_name(self, urls: SourceUrls, ticker: str) -> str:
        return extract_company_name(self.fetcher.fetch(urls.overview), ticker)

    def _quote_price(self, ticker: str) -> float | None:
        """regularMarketPrice from the quote feed, None if unusable."""
        url = self.settings.quote_url.format(ticker=ticker)
        try:
            payload = self.fetcher.get_json(url)
            price = float(payload["chart"]["result"][0]["meta"]["regularMarketPrice"])
        except FetchError as exc:
            log.warning("%s: quote feed unavailable (%s), falling back to page price", ticker, exc)
            return None
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            log.warning("%s: quote feed malformed (%r), falling back to page price", ticker, exc)
            return None
        if not price > 0:
            log.warning("%s: quote feed returned price %s, falling back to page price", ticker, price)
            return None
        return price

    def _current_price(self, urls: SourceUrls, ticker: str) -> FieldResult:
        price = self._quote_price(ticker)
        if price is not None:
            return FieldResult(
                value=price,
                formatted_value=format_number(price),
                source_url=self.settings.quote_page_url.format(ticker=ticker),
                method="quote_feed",
            )
        return extract_price_element(self.fetcher.fetch(urls.overview), ticker)

    def _free_cash_flow(self, urls: SourceUrls, ticker: str) -> FieldResult:
        return extract(self.fetcher.fetch(urls.cash_flow), FREE_CASH_FLOW, ticker)

    def _balance_sheet(self, urls: SourceUrls, ticker: str) -> tuple[FieldResult, FieldResult]:
        document = self.fetcher.fetch(urls.balance_sheet)
        return (
            extract(document, CASH_AND_EQUIVALENTS, ticker),
            extract(document, TOTAL_DEBT, ticker),
        )

    def _shares_outstanding(self, urls: SourceUrls, ticker: str) -> FieldResult:
        return extract(self.fetcher.fetch(urls.financials), SHARES_OUTSTANDING, ticker)

    # ── Pipeline ──────────────────────────────────────────────────────

    def build(self, ticker: str) -> StockSnapshot:
        """Build the snapshot.  Raises InvalidTickerError, FetchError, ExtractionError."""
        ticker = validate_ticker(ticker)
        urls = document_urls(ticker, self.settings.document_base_url)

        currency = detect_currency(self.fetcher.fetch(urls.financials))
        rate = self.rate_resolver.resolve(currency)

        with ThreadPoolExecutor(max_workers=self.settings.max_workers) as pool:
            futures = {
                "company_name": pool.submit(self._company_name, urls, ticker),
                "current_price": pool.submit(self._current_price, urls, ticker),
                "free_cash_flow": pool.submit(self._free_cash_flow, urls, ticker),
                "balance_sheet": pool.submit(self._balance_sheet, urls, ticker),
                "shares_outstanding": pool.submit(self._shares_outstanding, urls, ticker),
            }
        # Leaving the pool joins every task; result() re-raises the first failure
        results = {name: future.result() for name, future in futures.items()}

        price: FieldResult = results["current_price"]
        fcf: FieldResult = results["free_cash_flow"]
        cash, debt = results["balance_sheet"]
        shares: FieldResult = results["shares_outstanding"]

        snapshot = assemble_snapshot(
            company_name=results["company_name"],
            ticker=ticker,
            rate=rate,
            current_price=price.value,
            free_cash_flow=fcf.value,
            cash_and_equivalents=cash.value,
            total_debt=debt.value,
            shares_outstanding=shares.value,
            source_urls=SourceUrls(
                overview=price.source_url,
                financials=shares.source_url,
                cash_flow=fcf.source_url,
                balance_sheet=cash.source_url,
            ),
            extraction_methods={
                "current_price": price.method,
                "free_cash_flow": fcf.method,
                "cash_and_equivalents": cash.method,
                "total_debt": debt.method,
                "shares_outstanding": shares.method,
            },
        )
        log.info(
            "%s snapshot built: %s, %s @ %.6f USD%s",
            ticker, snapshot.company_name, snapshot.reporting_currency,
            snapshot.exchange_rate, " (rate feed failed)" if rate.error else "",
        )
        return snapshot


def build_snapshot(ticker: str) -> StockSnapshot:
    """Build a snapshot with the shared fetcher and config."""
    return SnapshotBuilder().build(ticker)
