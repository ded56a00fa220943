"""DCF Terminal HTTP API.

Routes:
  GET  /health              — liveness probe
  GET  /api/stock/{ticker}  — normalized StockSnapshot for one ticker
  POST /api/valuation       — DCF valuation of a (possibly edited) snapshot

Every response uses the same envelope:
  { "success": true,  "data": ... }
  { "success": false, "error": { "message", "status", "originalError" } }

Status mapping:
  400 — ticker fails ^[A-Z]{1,5}$ (nothing is fetched)
  502 — ExtractionError: the source page structure likely changed
  503 — FetchError: temporary service / network problem

Run:  python -m dcf_mcp.api
Open: http://localhost:{PORT}  (default 5000)
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from dcf_mcp.errors import ExtractionError, FetchError, InvalidTickerError
from dcf_mcp.models import (
    ErrorBody,
    ErrorResponse,
    SnapshotResponse,
    ValuationRequest,
    ValuationResponse,
)
from dcf_mcp.snapshot import build_snapshot
from dcf_mcp.valuation import calculate_dcf

log = logging.getLogger(__name__)

app = FastAPI(title="DCF Terminal")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _json(model: BaseModel, status_code: int = 200) -> Response:
    # model_dump_json writes non-finite floats (unguarded DCF results) as null
    return Response(
        content=model.model_dump_json(by_alias=True),
        status_code=status_code,
        media_type="application/json",
    )


def _error(status: int, message: str, original: str | None = None) -> Response:
    body = ErrorResponse(error=ErrorBody(message=message, status=status, original_error=original))
    return _json(body, status_code=status)


# ═══════════════════════════════════════════════════════════════════════════
#  Error handlers (unknown routes, bad bodies, anything unexpected)
# ═══════════════════════════════════════════════════════════════════════════

@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    message = "Route not found" if exc.status_code == 404 else str(exc.detail)
    return _error(exc.status_code, message, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    return _error(422, "Invalid request body", str(exc.errors()))


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    log.exception("Unhandled error on %s", request.url.path)
    return _error(500, str(exc) or "Internal Server Error", str(exc))


# ═══════════════════════════════════════════════════════════════════════════
#  Routes
# ═══════════════════════════════════════════════════════════════════════════

@app.get("/health")
def health():
    """Liveness probe."""
    return {"status": "ok"}


@app.get("/api/stock/{ticker}")
def stock_snapshot(ticker: str):
    """Fetch and normalize the figures a DCF needs for one ticker."""
    ticker = ticker.upper()
    try:
        snapshot = build_snapshot(ticker)
    except InvalidTickerError as exc:
        return _error(400, str(exc))
    except FetchError as exc:
        log.error("Error fetching data for %s: %s", ticker, exc)
        return _error(
            503,
            f"Unable to retrieve data for {ticker}. This could be due to temporary "
            "service or network issues. Please try again later.",
            str(exc),
        )
    except ExtractionError as exc:
        log.error("Error extracting data for %s: %s", ticker, exc)
        return _error(
            502,
            f"Unable to read {exc.label} for {ticker}. The source website "
            "structure has likely changed.",
            str(exc),
        )
    return _json(SnapshotResponse(data=snapshot))


@app.post("/api/valuation")
def valuation(req: ValuationRequest):
    """Run the DCF over a snapshot (as fetched or as edited by the user)."""
    result = calculate_dcf(req.snapshot, req.parameters)
    return _json(ValuationResponse(data=result))


if __name__ == "__main__":
    import uvicorn

    from dcf_mcp.config import get_config

    config = get_config()
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    print(f"\n  DCF Terminal → http://localhost:{config.port}\n")
    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level)
