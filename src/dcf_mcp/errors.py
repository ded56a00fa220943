"""Exception families raised by the snapshot pipeline.

Two fatal families reach the caller as request failures:

  FetchError       — a document source could not be reached or returned
                     something other than HTML (network / HTTP / content-type)
  ExtractionError  — a required field was not found after every fallback tier

InvalidTickerError is client input and never goes near the network.
"""

from __future__ import annotations

from enum import Enum


class FetchFailure(str, Enum):
    HTTP_STATUS = "http_status"
    NO_RESPONSE = "no_response"
    TRANSPORT = "transport"
    UNEXPECTED_CONTENT_TYPE = "unexpected_content_type"


class InvalidTickerError(ValueError):
    """Ticker does not match ``^[A-Z]{1,5}$``."""

    def __init__(self, ticker: str):
        self.ticker = ticker
        super().__init__(
            "Invalid ticker format. Please provide a valid stock ticker symbol."
        )


class PipelineError(Exception):
    """Base class for errors that abort a snapshot build."""


class FetchError(PipelineError):
    """A document or feed could not be retrieved."""

    def __init__(
        self,
        url: str,
        kind: FetchFailure,
        detail: str,
        status_code: int | None = None,
    ):
        self.url = url
        self.kind = kind
        self.detail = detail
        self.status_code = status_code
        super().__init__(f"Failed to fetch data from {url}: {detail}")


class ExtractionError(PipelineError):
    """A field could not be located by any extraction tier."""

    def __init__(self, field: str, ticker: str, url: str | None = None, label: str | None = None):
        self.field = field
        self.ticker = ticker
        self.url = url
        self.label = label or field.replace("_", " ").title()
        super().__init__(f"Failed to parse {self.label} data for {ticker}")
