"""Configuration management via environment variables.

Reads from .env file (via pydantic-settings) with sensible defaults.
All values can be overridden via environment variables.

Optional:
    DOCUMENT_BASE_URL  — Root of the financial-statement document source
    QUOTE_URL          — Market-quote feed, ``{ticker}`` is substituted
    EXCHANGE_RATE_URL  — USD-based currency-rate feed
    FETCH_TIMEOUT      — Per-request timeout in seconds (default 15)
    PORT               — Server port (default 5000)
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Financial-statement document source (overview, statements, balance sheet)
    document_base_url: str = "https://stockanalysis.com/stocks"

    # Structured feeds
    quote_url: str = "https://query1.finance.yahoo.com/v8/finance/chart/{ticker}"
    quote_page_url: str = "https://finance.yahoo.com/quote/{ticker}"
    exchange_rate_url: str = "https://api.exchangerate-api.com/v4/latest/USD"

    # HTTP behaviour: one attempt per fetch, timeout is the only bound
    fetch_timeout: float = 15.0
    max_redirects: int = 5

    # Snapshot fan-out (five independent extractions per ticker)
    max_workers: int = 5

    host: str = "0.0.0.0"
    port: int = 5000
    log_level: str = "info"

    # Strip whitespace and stray quotes from copy-pasted .env values
    @field_validator(
        "document_base_url", "quote_url", "quote_page_url", "exchange_rate_url",
        "log_level", mode="before",
    )
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip().strip('"').strip("'").strip()
        return v

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


_config: Settings | None = None


def get_config() -> Settings:
    """Get or create the shared Settings singleton."""
    global _config
    if _config is None:
        _config = Settings()
    return _config
