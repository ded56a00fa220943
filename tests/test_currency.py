"""Tests for reporting-currency detection and exchange-rate resolution."""

import pytest

from conftest import FX, FakeFetcher, doc
from dcf_mcp.currency import ExchangeRateResolver, detect_currency
from dcf_mcp.errors import FetchError, FetchFailure


# --- Detection ---


def test_financials_in_millions_note_alone_sets_currency():
    html = "<body><p>Financials in millions TWD. Fiscal year is January - December.</p></body>"
    assert detect_currency(doc(html)) == "TWD"


def test_no_signal_defaults_to_usd():
    html = "<body><h1>Apple Inc. Income Statement</h1><table><tr><td>Revenue</td></tr></table></body>"
    assert detect_currency(doc(html)) == "USD"


def test_keyword_in_page_text():
    html = "<body><p>All figures are reported in Japanese Yen.</p></body>"
    assert detect_currency(doc(html)) == "JPY"


def test_header_keyword_takes_precedence_over_page_text():
    html = (
        "<body><h1>Figures in British Pound</h1>"
        "<p>Parent company results are consolidated from yen.</p></body>"
    )
    # a page-wide scan alone would say JPY (earlier in the table)
    assert detect_currency(doc(html)) == "GBP"


def test_millions_note_overrides_keyword_match():
    html = (
        "<body><h1>Statement</h1><p>Consolidated results of a yen subsidiary.</p>"
        "<p>Financials in millions HKD.</p></body>"
    )
    assert detect_currency(doc(html)) == "HKD"


def test_unknown_millions_code_is_ignored():
    html = "<body><p>Financials in millions KRW</p><p>new taiwan dollar</p></body>"
    assert detect_currency(doc(html)) == "TWD"


def test_usd_millions_note_does_not_override_keyword_hit():
    html = (
        "<body><p>Revenue by region: Americas, Europe, Greater China.</p>"
        "<p>Financials in millions USD.</p></body>"
    )
    # "europe" contains "euro"; USD is not a keyword-table code
    assert detect_currency(doc(html)) == "EUR"


def test_millions_note_spanning_whitespace():
    html = "<body><div>Financials in\n   millions   GBP</div></body>"
    assert detect_currency(doc(html)) == "GBP"


# --- Exchange rates ---


def test_usd_short_circuits_without_network():
    fetcher = FakeFetcher()
    rate = ExchangeRateResolver(fetcher, FX).resolve("USD")
    assert rate.rate == 1.0
    assert rate.error is False
    assert fetcher.calls == []


def test_rate_is_inverted_to_usd_per_unit():
    fetcher = FakeFetcher(feeds={FX: {"base": "USD", "rates": {"TWD": 32.0, "USD": 1}}})
    rate = ExchangeRateResolver(fetcher, FX).resolve("TWD")
    assert rate.rate == pytest.approx(1 / 32.0)
    assert rate.from_currency == "TWD"
    assert rate.to_currency == "USD"
    assert rate.error is False
    assert rate.timestamp


def test_feed_failure_degrades_to_flagged_unit_rate():
    fetcher = FakeFetcher(errors={FX: FetchError(FX, FetchFailure.NO_RESPONSE, "timeout")})
    rate = ExchangeRateResolver(fetcher, FX).resolve("JPY")
    assert rate.rate == 1.0
    assert rate.error is True
    assert rate.from_currency == "JPY"


@pytest.mark.parametrize("payload", [
    {"rates": {}},
    {"unexpected": True},
    {"rates": {"EUR": 0}},
    {"rates": {"EUR": "n/a"}},
    ["not", "a", "dict"],
])
def test_malformed_feed_degrades(payload):
    fetcher = FakeFetcher(feeds={FX: payload})
    rate = ExchangeRateResolver(fetcher, FX).resolve("EUR")
    assert rate.rate == 1.0
    assert rate.error is True
