"""Reporting-currency detection and USD exchange-rate resolution.

Detection never fails: a statement page with no currency signal is USD.
Rate resolution never fails either: when the rate feed is down or returns
garbage the resolver answers rate 1 with ``error=True`` so the snapshot can
still be built, and the consumer sees the conversion is approximate.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any

from dcf_mcp.errors import FetchError
from dcf_mcp.fetcher import Document
from dcf_mcp.models import ExchangeRate

log = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════
#  Keyword table
#  Checked in insertion order; the first currency with any matching phrase
#  wins.  Phrases are lower-case.
# ═══════════════════════════════════════════════════════════════════════════

CURRENCY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "TWD": ("millions twd", "twd millions", "million twd", "ntd", "new taiwan dollar", "taiwan dollar"),
    "CNY": ("millions cny", "cny millions", "million cny", "rmb", "yuan", "chinese yuan"),
    "JPY": ("millions jpy", "jpy millions", "million jpy", "yen", "japanese yen"),
    "EUR": ("millions eur", "eur millions", "million eur", "€", "euro"),
    "GBP": ("millions gbp", "gbp millions", "million gbp", "£", "british pound"),
    "HKD": ("millions hkd", "hkd millions", "million hkd", "hong kong dollar"),
}

DEFAULT_CURRENCY = "USD"
KNOWN_CURRENCIES = frozenset(CURRENCY_KEYWORDS)

HEADER_SELECTOR = "h1, .financials-header, .table-header"
_MILLIONS_PATTERN = re.compile(r"financials in millions ([a-z]{3})", re.IGNORECASE)


def _match_keywords(text: str) -> str | None:
    for code, phrases in CURRENCY_KEYWORDS.items():
        if any(p in text for p in phrases):
            return code
    return None


def detect_currency(document: Document) -> str:
    """Classify the reporting currency of a statement page.

    Header text is checked before the whole page.  An explicit
    "Financials in millions XXX" note overrides the keyword result when
    XXX is a key of the keyword table (a USD note never overrides).
    """
    header_text = document.text_of(HEADER_SELECTOR).lower()
    page_text = re.sub(r"\s+", " ", document.full_text()).lower()

    currency = _match_keywords(header_text) or _match_keywords(page_text) or DEFAULT_CURRENCY

    m = _MILLIONS_PATTERN.search(page_text)
    if m:
        stated = m.group(1).upper()
        if stated in KNOWN_CURRENCIES:
            currency = stated

    log.info("Detected reporting currency %s on %s", currency, document.url)
    return currency


# ═══════════════════════════════════════════════════════════════════════════
#  Exchange rates
# ═══════════════════════════════════════════════════════════════════════════

def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ExchangeRateResolver:
    """Converts a currency code to "1 unit in USD" from a USD-based feed."""

    def __init__(self, fetcher: Any, feed_url: str):
        self.fetcher = fetcher
        self.feed_url = feed_url

    def resolve(self, currency: str) -> ExchangeRate:
        if currency == DEFAULT_CURRENCY:
            return ExchangeRate(rate=1.0, from_currency=DEFAULT_CURRENCY, timestamp=_now())

        try:
            payload = self.fetcher.get_json(self.feed_url)
            per_usd = float(payload["rates"][currency])
            if not per_usd > 0:
                raise ValueError(f"non-positive rate {per_usd}")
            rate = 1.0 / per_usd
        except (FetchError, KeyError, TypeError, ValueError) as exc:
            log.warning("Exchange rate for %s unavailable, defaulting to 1: %s", currency, exc)
            return ExchangeRate(rate=1.0, from_currency=currency, timestamp=_now(), error=True)

        return ExchangeRate(rate=rate, from_currency=currency, timestamp=_now())
