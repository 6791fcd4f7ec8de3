"""
HTTP surface tests: POST /api/sponsor, GET /api/health, rate limiting and CORS.
"""

from __future__ import annotations

import base64

import base58
import pytest
from fastapi.testclient import TestClient

from backend_feerelay.api_server.server import create_app
from backend_feerelay.config import RateLimitSettings


@pytest.fixture
def make_client(settings_factory, signer, ledger):
    def _make(**overrides) -> TestClient:
        app = create_app(settings_factory(**overrides), signer=signer, ledger=ledger)
        return TestClient(app)

    return _make


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()


def _b58(raw: bytes) -> str:
    return base58.b58encode(raw).decode()


def test_sponsor_ok_has_exactly_two_fields(client, custodial, user, make_tx, ledger):
    raw = make_tx(custodial.pubkey(), [user], sign_with=[user])
    r = client.post("/api/sponsor", json={"transaction": _b58(raw)})
    assert r.status_code == 200
    body = r.json()
    assert set(body) == {"status", "signature"}
    assert body["status"] == "ok"
    assert len(base58.b58decode(body["signature"])) == 64
    assert len(ledger.submitted) == 1


def test_sponsor_accepts_base64(client, custodial, make_tx):
    raw = make_tx(custodial.pubkey())
    r = client.post("/api/sponsor", json={"transaction": base64.b64encode(raw).decode(), "encoding": "base64"})
    assert r.status_code == 200


@pytest.mark.parametrize(
    "body",
    [
        {},
        {"transaction": ""},
        {"transaction": 123},
        {"captchaToken": "x"},
        ["x"],
        "transaction",
        None,
        {"transaction": "abc", "encoding": None},
        {"transaction": "abc", "captchaToken": 5},
    ],
)
def test_sponsor_missing_transaction(client, body):
    r = client.post("/api/sponsor", json=body)
    assert r.status_code == 400
    assert r.json() == {"status": "error", "message": "request should contain transaction"}


def test_sponsor_rejection_is_400_with_message(client, user, make_tx):
    r = client.post("/api/sponsor", json={"transaction": _b58(make_tx(user.pubkey()))})
    assert r.status_code == 400
    assert r.json() == {"status": "error", "message": "invalid fee payer"}


def test_sponsor_duplicate_is_rejected(client, custodial, make_tx):
    payload = {"transaction": _b58(make_tx(custodial.pubkey()))}
    assert client.post("/api/sponsor", json=payload).status_code == 200
    r = client.post("/api/sponsor", json=payload)
    assert r.status_code == 400
    assert r.json()["message"] == "duplicate transaction"


def test_sponsor_undecodable(client):
    r = client.post("/api/sponsor", json={"transaction": "0OIl"})
    assert r.status_code == 400
    assert r.json()["message"] == "can't decode transaction"


def test_health_ok(client, custodial):
    r = client.get("/api/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "healthy"
    assert body["feePayer"] == str(custodial.pubkey())
    assert body["rpc"] == {"connected": True, "blockheight": 250_000_000}
    assert "timestamp" in body


def test_health_unhealthy_when_rpc_down(client, ledger):
    ledger.height_error = ConnectionError("connection refused")
    r = client.get("/api/health")
    assert r.status_code == 503
    body = r.json()
    assert body["status"] == "unhealthy"
    assert body["rpc"] == {"connected": False, "error": "connection refused"}


def test_rate_limit_returns_429(make_client, custodial, make_tx):
    client = make_client(rate_limit=RateLimitSettings(max_requests=2, window_sec=60.0))
    codes = [
        client.post("/api/sponsor", json={"transaction": _b58(make_tx(custodial.pubkey()))}).status_code
        for _ in range(3)
    ]
    assert codes == [200, 200, 429]
    # health is not rate limited
    assert client.get("/api/health").status_code == 200


def test_rate_limit_body(make_client):
    client = make_client(rate_limit=RateLimitSettings(max_requests=1, window_sec=60.0))
    client.post("/api/sponsor", json={})
    r = client.post("/api/sponsor", json={})
    assert r.status_code == 429
    assert r.json() == {"status": "error", "message": "rate limit exceeded"}


def test_cors_preflight(make_client):
    client = make_client(cors_origins=("https://wallet.example",))
    r = client.options(
        "/api/sponsor",
        headers={"Origin": "https://wallet.example", "Access-Control-Request-Method": "POST"},
    )
    assert r.status_code == 200
    assert r.headers["access-control-allow-origin"] == "https://wallet.example"


def test_app_without_signer_defers_relay(settings_factory):
    app = create_app(settings_factory())
    assert app.state.relay is None


@pytest.mark.parametrize(
    "content, headers",
    [
        (b"", {}),
        (b"", {"content-type": "application/json"}),
        (b"{not json", {"content-type": "application/json"}),
        (b"transaction=abc", {"content-type": "application/x-www-form-urlencoded"}),
    ],
)
def test_sponsor_unparseable_body_is_400(client, content, headers):
    r = client.post("/api/sponsor", content=content, headers=headers)
    assert r.status_code == 400
    assert r.json() == {"status": "error", "message": "request should contain transaction"}
