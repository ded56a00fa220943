"""DCF-MCP: MCP server exposing the snapshot pipeline and valuation engine.

Tools
─────
  1. get_stock_snapshot   — ticker → normalized figures (reporting currency + USD)
  2. calculate_valuation  — ticker + DCF inputs → fair value and buy signal

Pipeline failures come back as ``{"ticker": ..., "error": ...}`` instead of
raising, so the calling model can read the reason.
"""

from __future__ import annotations

from fastmcp import FastMCP

from dcf_mcp.errors import InvalidTickerError, PipelineError
from dcf_mcp.models import DCFParameters
from dcf_mcp.snapshot import build_snapshot
from dcf_mcp.valuation import calculate_dcf

mcp = FastMCP(name="DCF-MCP")


@mcp.tool()
def get_stock_snapshot(ticker: str) -> dict:
    """Get the figures a DCF valuation needs for one stock.

    Args:
        ticker: 1-5 letter symbol, e.g. 'AAPL' (case-insensitive)

    Returns company name, current price (USD), free cash flow, cash, total
    debt and diluted shares outstanding in the reporting currency with USD
    twins, the exchange rate used and the source page for every figure.
    exchange_rate_error=True means the rate feed failed and 1.0 was used.
    """
    ticker = ticker.strip().upper()
    try:
        snapshot = build_snapshot(ticker)
    except (InvalidTickerError, PipelineError) as exc:
        return {"ticker": ticker, "error": str(exc)}
    return snapshot.model_dump()


@mcp.tool()
def calculate_valuation(
    ticker: str,
    growth_rate_1_to_5: float = 10.0,
    perpetual_growth_rate: float = 2.5,
    discount_rate: float = 10.0,
    margin_of_safety: float = 25.0,
) -> dict:
    """Discounted-cash-flow fair value for a stock.

    Args:
        ticker: 1-5 letter symbol
        growth_rate_1_to_5: FCF growth for years 1-5, percent
        perpetual_growth_rate: terminal growth, percent (keep below discount_rate)
        discount_rate: WACC, percent
        margin_of_safety: discount applied to fair value, percent

    Returns fair value per share (USD), the margin-of-safety price,
    enterprise/equity value, the five projected cash flows and whether the
    current price is below the margin-of-safety price.
    """
    ticker = ticker.strip().upper()
    try:
        snapshot = build_snapshot(ticker)
    except (InvalidTickerError, PipelineError) as exc:
        return {"ticker": ticker, "error": str(exc)}

    params = DCFParameters(
        growth_rate_1_to_5=growth_rate_1_to_5,
        perpetual_growth_rate=perpetual_growth_rate,
        discount_rate=discount_rate,
        margin_of_safety=margin_of_safety,
    )
    result = calculate_dcf(snapshot, params)
    return {
        "ticker": ticker,
        "company_name": snapshot.company_name,
        "current_price": snapshot.current_price,
        "exchange_rate_error": snapshot.exchange_rate_error,
        "parameters": params.model_dump(),
        "valuation": result.model_dump(),
    }


# ═══════════════════════════════════════════════════════════════════════════
#  ENTRY POINT
# ═══════════════════════════════════════════════════════════════════════════

if __name__ == "__main__":
    import sys

    # python -m dcf_mcp.server --sse for remote hosting, STDIO otherwise
    if "--sse" in sys.argv:
        mcp.run(transport="sse")
    else:
        mcp.run()
