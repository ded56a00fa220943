"""Field extraction from statement pages with no stable schema.

Every numeric field runs the same ordered chain, stopping at the first tier
that yields a parseable number:

  1. exact     — row label equals the canonical label ("Free Cash Flow")
  2. contains  — lower-cased row label contains a synonym, synonyms in order
  3. derived   — accounting identity over other rows (FCF = OCF − |capex|)
  4. fuzzy     — any cell with the right keyword combination; the adjacent
                 cell's value must pass a plausibility bound

Row-like elements come in three markup variants (``<tr>``, ``.table-row``
divs, ``data-test`` attributes); one selector covers all of them.  A null
parse is never an error on its own; it just moves the chain along.  Only
a field that exhausts every tier raises ExtractionError.

The company name uses the same chain runner with its own tiers; the price
element is a selector list tried in order.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, NamedTuple, Sequence

from dcf_mcp.errors import ExtractionError
from dcf_mcp.fetcher import Document
from dcf_mcp.models import FieldResult
from dcf_mcp.numeric import extract_number, format_number

log = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════
#  Selectors (one string per structural concept, all variants included)
# ═══════════════════════════════════════════════════════════════════════════

ROW_SELECTOR = 'table tr, .table-row, [data-test="table-row"]'
LABEL_SELECTOR = (
    'td:first-child, th:first-child, '
    '[data-test="table-cell"]:first-child, .table-cell:first-child'
)
VALUE_SELECTOR = (
    'td:nth-child(2), th:nth-child(2), '
    '[data-test="table-cell"]:nth-child(2), .table-cell:nth-child(2)'
)
CELL_SELECTOR = 'table td, table th, [data-test="table-cell"], .table-cell'

COMPANY_HEADER_SELECTOR = '[data-test="instrument-header-name"], .company-name, h1'
PROMINENT_TEXT_SELECTOR = 'h1, h2, .header-text, [data-test*="header"]'
PRICE_SELECTORS: tuple[str, ...] = (
    '[data-test="price-value"]',
    '[data-test="symbol-price"]',
    ".symbol-price",
    ".price-value",
    '[data-test="instrument-price-last"]',
)


# ═══════════════════════════════════════════════════════════════════════════
#  Rows
# ═══════════════════════════════════════════════════════════════════════════

class Row(NamedTuple):
    label: str
    value_text: str

    @property
    def value(self) -> float | None:
        return extract_number(self.value_text)


def _joined_text(element, selector: str) -> str:
    return "".join(el.get_text() for el in element.select(selector)).strip()


def table_rows(document: Document) -> list[Row]:
    """Label / first-data-column pairs for every row-like element."""
    return [
        Row(_joined_text(row, LABEL_SELECTOR), _joined_text(row, VALUE_SELECTOR))
        for row in document.select(ROW_SELECTOR)
    ]


def first_value(rows: Sequence[Row], synonyms: Sequence[str]) -> float | None:
    """First parseable value whose lower-cased label contains any synonym."""
    for row in rows:
        label = row.label.lower()
        if any(s in label for s in synonyms):
            val = row.value
            if val is not None:
                return val
    return None


# ═══════════════════════════════════════════════════════════════════════════
#  Field specifications
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class FuzzyRule:
    """Keyword combination for the unstructured cell scan."""
    required: tuple[str, ...]
    excluded: tuple[str, ...] = ()
    minimum: float | None = None     # accept only values strictly above this

    def matches(self, text: str) -> bool:
        return all(k in text for k in self.required) and not any(
            k in text for k in self.excluded
        )

    def plausible(self, value: float) -> bool:
        return self.minimum is None or value > self.minimum


@dataclass(frozen=True)
class FieldSpec:
    key: str
    label: str                                   # canonical exact label
    synonyms: tuple[str, ...] = ()               # lower-case, ordered
    derive: Callable[[Sequence[Row]], float | None] | None = None
    fuzzy: FuzzyRule | None = None


OPERATING_CASH_FLOW_LABELS = (
    "operating cash flow",
    "cash from operations",
    "net cash provided by operating activities",
)
CAPEX_LABELS = (
    "capital expenditure",
    "capex",
    "purchases of property and equipment",
)
LONG_TERM_DEBT_LABELS = ("long-term debt", "long term debt")
SHORT_TERM_DEBT_LABELS = (
    "short-term debt",
    "short term debt",
    "current portion of long-term debt",
)


def derive_free_cash_flow(rows: Sequence[Row]) -> float | None:
    """Operating cash flow − |capital expenditures|."""
    ocf = first_value(rows, OPERATING_CASH_FLOW_LABELS)
    capex = first_value(rows, CAPEX_LABELS)
    if ocf is None or capex is None:
        return None
    return ocf - abs(capex)


def derive_total_debt(rows: Sequence[Row]) -> float | None:
    """Long-term debt + short-term debt; short-term is optional."""
    long_term = first_value(rows, LONG_TERM_DEBT_LABELS)
    if long_term is None:
        return None
    short_term = first_value(rows, SHORT_TERM_DEBT_LABELS)
    if short_term is not None:
        long_term += short_term
    return long_term


FREE_CASH_FLOW = FieldSpec(
    key="free_cash_flow",
    label="Free Cash Flow",
    synonyms=("free cash flow",),
    derive=derive_free_cash_flow,
)

CASH_AND_EQUIVALENTS = FieldSpec(
    key="cash_and_equivalents",
    label="Cash & Equivalents",
    synonyms=("cash and cash equivalents", "cash and equivalents", "cash & equivalents"),
    fuzzy=FuzzyRule(required=("cash",), excluded=("flow",)),
)

TOTAL_DEBT = FieldSpec(
    key="total_debt",
    label="Total Debt",
    synonyms=("total debt",),
    derive=derive_total_debt,
)

SHARES_OUTSTANDING = FieldSpec(
    key="shares_outstanding",
    label="Shares Outstanding (Diluted)",
    synonyms=(
        "shares outstanding (diluted)",
        "diluted shares outstanding",
        "weighted average shares diluted",
        "shares outstanding",
        "common shares outstanding",
    ),
    # share counts below a million are almost always a per-share figure
    fuzzy=FuzzyRule(required=("shares", "outstanding"), excluded=("treasury",), minimum=1_000_000),
)


# ═══════════════════════════════════════════════════════════════════════════
#  Numeric tiers
# ═══════════════════════════════════════════════════════════════════════════

def exact_label(document: Document, rows: Sequence[Row], spec: FieldSpec) -> float | None:
    for row in rows:
        if row.label == spec.label:
            val = row.value
            if val is not None:
                return val
    return None


def label_contains(document: Document, rows: Sequence[Row], spec: FieldSpec) -> float | None:
    for synonym in spec.synonyms:
        val = first_value(rows, (synonym,))
        if val is not None:
            return val
    return None


def derived(document: Document, rows: Sequence[Row], spec: FieldSpec) -> float | None:
    if spec.derive is None:
        return None
    return spec.derive(rows)


def fuzzy_cells(document: Document, rows: Sequence[Row], spec: FieldSpec) -> float | None:
    rule = spec.fuzzy
    if rule is None:
        return None
    for cell in document.select(CELL_SELECTOR):
        text = cell.get_text().strip().lower()
        if not rule.matches(text):
            continue
        neighbour = cell.find_next_sibling()
        value_text = neighbour.get_text().strip() if neighbour is not None else ""
        val = extract_number(value_text or text)
        if val is not None and rule.plausible(val):
            return val
    return None


NUMERIC_TIERS: tuple[tuple[str, Callable[..., float | None]], ...] = (
    ("exact", exact_label),
    ("contains", label_contains),
    ("derived", derived),
    ("fuzzy", fuzzy_cells),
)


def run_chain(tiers: Sequence[tuple[str, Callable[..., Any]]], *args) -> tuple[Any, str | None]:
    """Run tiers in order; return (value, tier name) of the first non-None."""
    for name, tier in tiers:
        value = tier(*args)
        if value is not None:
            return value, name
    return None, None


def extract(document: Document, spec: FieldSpec, ticker: str) -> FieldResult:
    """Resolve one numeric field from a document.  Raises ExtractionError."""
    rows = table_rows(document)
    value, method = run_chain(NUMERIC_TIERS, document, rows, spec)
    if value is None:
        log.warning("%s: no tier matched %s on %s", ticker, spec.key, document.url)
        raise ExtractionError(spec.key, ticker, url=document.url, label=spec.label)
    log.info("%s: %s resolved via %s tier", ticker, spec.key, method)
    return FieldResult(
        value=value,
        formatted_value=format_number(value),
        source_url=document.url,
        method=method,
    )


# ═══════════════════════════════════════════════════════════════════════════
#  Company name
# ═══════════════════════════════════════════════════════════════════════════

def _strip_ticker(text: str, ticker: str) -> str:
    return re.sub(rf"\({re.escape(ticker)}\)", "", text, flags=re.IGNORECASE).strip()


def name_from_title(document: Document, ticker: str) -> str | None:
    title = document.soup.title
    if title is None:
        return None
    parts = title.get_text().split("|")
    if len(parts) > 1:
        return parts[0].strip() or None
    return None


def name_from_header(document: Document, ticker: str) -> str | None:
    return _strip_ticker(document.text_of(COMPANY_HEADER_SELECTOR), ticker) or None


def name_from_prominent_text(document: Document, ticker: str) -> str | None:
    for el in document.select(PROMINENT_TEXT_SELECTOR):
        text = el.get_text().strip()
        if 1 < len(text) < 100 and "http" not in text and "www" not in text:
            cleaned = _strip_ticker(text, ticker)
            if cleaned:
                return cleaned
    return None


NAME_TIERS = (
    ("title", name_from_title),
    ("header", name_from_header),
    ("prominent_text", name_from_prominent_text),
)


def extract_company_name(document: Document, ticker: str) -> str:
    name, method = run_chain(NAME_TIERS, document, ticker)
    if name is None:
        raise ExtractionError("company_name", ticker, url=document.url, label="Company Name")
    log.info("%s: company name %r via %s tier", ticker, name, method)
    return name


# ═══════════════════════════════════════════════════════════════════════════
#  Price element (fallback when the quote feed is unavailable)
# ═══════════════════════════════════════════════════════════════════════════

def price_from_elements(document: Document) -> float | None:
    for selector in PRICE_SELECTORS:
        elements = document.select(selector)
        if not elements:
            continue
        price = extract_number("".join(el.get_text() for el in elements).strip())
        if price is not None and price > 0:
            return price
    return None


def extract_price_element(document: Document, ticker: str) -> FieldResult:
    price = price_from_elements(document)
    if price is None:
        raise ExtractionError("current_price", ticker, url=document.url, label="Current Price")
    return FieldResult(
        value=price,
        formatted_value=format_number(price),
        source_url=document.url,
        method="price_element",
    )
