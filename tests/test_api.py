"""Tests for the HTTP API envelope and status mapping."""

import pytest
from fastapi.testclient import TestClient

from conftest import make_snapshot
from dcf_mcp.api import app
from dcf_mcp.errors import ExtractionError, FetchError, FetchFailure, InvalidTickerError


@pytest.fixture
def client():
    return TestClient(app)


def _stub_builder(monkeypatch, outcome):
    seen = []

    def fake_build(ticker):
        seen.append(ticker)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    monkeypatch.setattr("dcf_mcp.api.build_snapshot", fake_build)
    return seen


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_snapshot_success_uses_camel_case(client, monkeypatch):
    seen = _stub_builder(monkeypatch, make_snapshot(rate=0.5, currency="EUR"))
    resp = client.get("/api/stock/test")

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    data = body["data"]
    assert data["ticker"] == "TEST"
    assert data["reportingCurrency"] == "EUR"
    assert data["freeCashFlow"] == 100.0
    assert data["freeCashFlowUSD"] == 50.0
    assert data["formattedTotalDebtUSD"] == "$10"
    assert data["sourceUrls"]["cashFlow"].endswith("/cash-flow-statement/")
    # lower-case input is normalized before the pipeline sees it
    assert seen == ["TEST"]


def test_invalid_ticker_is_400(client, monkeypatch):
    _stub_builder(monkeypatch, InvalidTickerError("TOOLONG"))
    resp = client.get("/api/stock/toolong")

    assert resp.status_code == 400
    assert resp.json() == {
        "success": False,
        "error": {
            "message": "Invalid ticker format. Please provide a valid stock ticker symbol.",
            "status": 400,
            "originalError": None,
        },
    }


def test_fetch_failure_is_503(client, monkeypatch):
    url = "https://docs.test/stocks/AAPL/financials/"
    _stub_builder(monkeypatch, FetchError(url, FetchFailure.NO_RESPONSE, "timed out"))
    resp = client.get("/api/stock/AAPL")

    assert resp.status_code == 503
    error = resp.json()["error"]
    assert error["status"] == 503
    assert error["message"].startswith("Unable to retrieve data for AAPL.")
    assert error["originalError"] == f"Failed to fetch data from {url}: timed out"


def test_extraction_failure_is_502(client, monkeypatch):
    _stub_builder(
        monkeypatch,
        ExtractionError("free_cash_flow", "AAPL", url="https://docs.test/cf", label="Free Cash Flow"),
    )
    resp = client.get("/api/stock/AAPL")

    assert resp.status_code == 502
    error = resp.json()["error"]
    assert error["message"] == (
        "Unable to read Free Cash Flow for AAPL. The source website structure has likely changed."
    )
    assert error["originalError"] == "Failed to parse Free Cash Flow data for AAPL"


def test_unknown_route_uses_error_envelope(client):
    resp = client.get("/api/nowhere")
    assert resp.status_code == 404
    assert resp.json()["success"] is False
    assert resp.json()["error"]["message"] == "Route not found"


# --- Valuation endpoint ---


def _snapshot_payload(**kwargs):
    return make_snapshot(**kwargs).model_dump(mode="json", by_alias=True)


def test_valuation_with_default_parameters(client):
    resp = client.post("/api/valuation", json={"snapshot": _snapshot_payload()})

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["fairValue"] == pytest.approx(189.66667, rel=1e-6)
    assert data["safetyMarginValue"] == pytest.approx(142.25, rel=1e-6)
    assert data["isPotentialBuy"] is True
    assert len(data["yearlyProjections"]) == 5


def test_valuation_accepts_edited_snapshot_and_parameters(client):
    resp = client.post(
        "/api/valuation",
        json={
            "snapshot": _snapshot_payload(shares=20.0),
            "parameters": {"growthRate1to5": 10, "perpetualGrowthRate": 2.5,
                           "discountRate": 10, "marginOfSafety": 0},
        },
    )
    data = resp.json()["data"]
    assert data["fairValue"] == pytest.approx(94.833333, rel=1e-6)
    assert data["safetyMarginValue"] == pytest.approx(data["fairValue"])


def test_non_finite_results_serialize_as_null(client):
    resp = client.post(
        "/api/valuation",
        json={
            "snapshot": _snapshot_payload(),
            "parameters": {"discountRate": 2.5, "perpetualGrowthRate": 2.5},
        },
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["terminalValue"] is None
    assert data["fairValue"] is None
    assert data["isPotentialBuy"] is True


def test_invalid_valuation_body_is_422(client):
    resp = client.post("/api/valuation", json={"parameters": {"discountRate": 10}})
    assert resp.status_code == 422
    assert resp.json()["error"]["message"] == "Invalid request body"
