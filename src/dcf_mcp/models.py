"""Pydantic models for pipeline records, API payloads and MCP tool outputs.

Attributes are snake_case; JSON uses the camelCase names the web client
expects (``freeCashFlowUSD``, ``growthRate1to5`` …).
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# ---------------------------------------------------------------------------
# Extraction results
# ---------------------------------------------------------------------------

class FieldResult(_Record):
    """One extracted figure.  ``value`` None means extraction failed."""
    value: float | None = None
    formatted_value: str = "N/A"
    source_url: str
    method: str | None = None        # tier that produced the value


class ExchangeRate(_Record):
    """1 unit of ``from_currency`` expressed in USD."""
    rate: float
    from_currency: str
    to_currency: str = "USD"
    timestamp: str
    error: bool = False              # True = feed failed, rate defaulted to 1


class SourceUrls(_Record):
    overview: str
    financials: str
    cash_flow: str
    balance_sheet: str


class StockSnapshot(_Record):
    """Currency-normalized record for one ticker.

    Monetary fields are in the reporting currency; the ``*_usd`` twins are
    ``value * exchange_rate``.  ``current_price`` is already USD.
    """
    company_name: str
    ticker: str
    reporting_currency: str
    exchange_rate: float = Field(gt=0)
    exchange_rate_error: bool = False
    exchange_rate_timestamp: str | None = None

    current_price: float
    formatted_current_price: str

    free_cash_flow: float
    free_cash_flow_usd: float = Field(alias="freeCashFlowUSD")
    formatted_free_cash_flow: str
    formatted_free_cash_flow_usd: str = Field(alias="formattedFreeCashFlowUSD")

    cash_and_equivalents: float
    cash_and_equivalents_usd: float = Field(alias="cashAndEquivalentsUSD")
    formatted_cash_and_equivalents: str
    formatted_cash_and_equivalents_usd: str = Field(alias="formattedCashAndEquivalentsUSD")

    total_debt: float
    total_debt_usd: float = Field(alias="totalDebtUSD")
    formatted_total_debt: str
    formatted_total_debt_usd: str = Field(alias="formattedTotalDebtUSD")

    shares_outstanding: float
    formatted_shares_outstanding: str

    source_urls: SourceUrls
    extraction_methods: dict[str, str] = {}  # field → tier that resolved it


# ---------------------------------------------------------------------------
# Valuation
# ---------------------------------------------------------------------------

class DCFParameters(_Record):
    """User inputs, all percentages (10 means 10%)."""
    model_config = ConfigDict(extra="forbid")

    growth_rate_1_to_5: float = Field(10.0, alias="growthRate1to5")
    perpetual_growth_rate: float = 2.5
    discount_rate: float = 10.0
    margin_of_safety: float = 25.0


class DCFResult(_Record):
    fair_value: float                # per share, USD
    safety_margin_value: float       # per share, USD
    enterprise_value: float          # original currency
    equity_value: float              # original currency
    yearly_projections: list[float]
    is_potential_buy: bool
    original_currency: str
    fair_value_in_original_currency: float
    exchange_rate: float
    terminal_value: float
    present_terminal_value: float


# ---------------------------------------------------------------------------
# API envelopes
# ---------------------------------------------------------------------------

class ErrorBody(_Record):
    message: str
    status: int
    original_error: str | None = None


class ErrorResponse(_Record):
    success: bool = False
    error: ErrorBody


class SnapshotResponse(_Record):
    success: bool = True
    data: StockSnapshot


class ValuationRequest(_Record):
    snapshot: StockSnapshot
    parameters: DCFParameters = DCFParameters()


class ValuationResponse(_Record):
    success: bool = True
    data: DCFResult
