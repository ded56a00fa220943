"""Discounted-cash-flow valuation over a StockSnapshot.

Pure and deterministic: no I/O, no caching (the computation is O(1)).
All cash-flow math happens in the reporting currency; only the per-share
fair value is converted to USD, so it can be compared with the USD quote.

The terminal value is deliberately unguarded.  With
``discount_rate <= perpetual_growth_rate`` the perpetual-growth formula is
ill-defined; the result (infinite, NaN or negative) is propagated as
computed rather than clamped or rejected.
"""

from __future__ import annotations

import math

from dcf_mcp.models import DCFParameters, DCFResult, StockSnapshot
from dcf_mcp.snapshot import apply_overrides

PROJECTION_YEARS = 5


def _divide(a: float, b: float) -> float:
    """IEEE-754 division: x/0 is ±inf and 0/0 is NaN instead of raising."""
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def project_cash_flows(free_cash_flow: float, growth: float, years: int = PROJECTION_YEARS) -> list[float]:
    """Compound last year's FCF forward; ``growth`` is a decimal."""
    projections: list[float] = []
    current = free_cash_flow
    for _ in range(years):
        current = current * (1 + growth)
        projections.append(current)
    return projections


def calculate_dcf(snapshot: StockSnapshot, params: DCFParameters) -> DCFResult:
    """Fair value per share and buy signal for one snapshot/parameter set."""
    growth = params.growth_rate_1_to_5 / 100
    perpetual = params.perpetual_growth_rate / 100
    discount = params.discount_rate / 100
    margin = params.margin_of_safety / 100

    projections = project_cash_flows(snapshot.free_cash_flow, growth)

    terminal_value = _divide(projections[-1] * (1 + perpetual), discount - perpetual)

    present_value = sum(
        _divide(cf, (1 + discount) ** year) for year, cf in enumerate(projections, start=1)
    )
    present_terminal_value = _divide(terminal_value, (1 + discount) ** PROJECTION_YEARS)

    enterprise_value = present_value + present_terminal_value
    equity_value = enterprise_value + snapshot.cash_and_equivalents - snapshot.total_debt

    fair_value_original = _divide(equity_value, snapshot.shares_outstanding)
    fair_value = fair_value_original * snapshot.exchange_rate
    safety_margin_value = fair_value * (1 - margin)

    return DCFResult(
        fair_value=fair_value,
        safety_margin_value=safety_margin_value,
        enterprise_value=enterprise_value,
        equity_value=equity_value,
        yearly_projections=projections,
        is_potential_buy=snapshot.current_price < safety_margin_value,
        original_currency=snapshot.reporting_currency,
        fair_value_in_original_currency=fair_value_original,
        exchange_rate=snapshot.exchange_rate,
        terminal_value=terminal_value,
        present_terminal_value=present_terminal_value,
    )


class ValuationSession:
    """Holds the current inputs and recomputes synchronously on every change.

    Mirrors the web form: fetch a snapshot once, then move the sliders or
    edit a figure and read ``result``.
    """

    def __init__(self, snapshot: StockSnapshot, params: DCFParameters | None = None):
        self._snapshot = snapshot
        self._params = params or DCFParameters()
        self._result = calculate_dcf(self._snapshot, self._params)

    @property
    def snapshot(self) -> StockSnapshot:
        return self._snapshot

    @property
    def parameters(self) -> DCFParameters:
        return self._params

    @property
    def result(self) -> DCFResult:
        return self._result

    def _recompute(self) -> DCFResult:
        self._result = calculate_dcf(self._snapshot, self._params)
        return self._result

    def update_parameters(self, **changes: float) -> DCFResult:
        self._params = DCFParameters(**{**self._params.model_dump(), **changes})
        return self._recompute()

    def edit_snapshot(self, **changes: float) -> DCFResult:
        self._snapshot = apply_overrides(self._snapshot, **changes)
        return self._recompute()

    def replace_snapshot(self, snapshot: StockSnapshot) -> DCFResult:
        self._snapshot = snapshot
        return self._recompute()
