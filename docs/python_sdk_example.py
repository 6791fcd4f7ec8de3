"""
FeeRelay API Python client example.

Uses the requests library. Mirrors the FastAPI OpenAPI schema of /api/sponsor and /api/health.
Run: pip install requests solders base58

Usage:
    from docs.python_sdk_example import FeeRelayClient
    client = FeeRelayClient("http://localhost:8000")
    fee_payer = client.fee_payer()
    # build a transaction with fee_payer as payer, sign your own slots, then:
    signature = client.sponsor(bytes(tx))
"""

from __future__ import annotations

from typing import Any

import base58
import requests


class FeeRelayClientError(Exception):
    """Raised when the API returns an error response."""

    def __init__(self, message: str, status_code: int | None = None, response: requests.Response | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class FeeRelayClient:
    """Client for the FeeRelay sponsor API."""

    def __init__(self, base_url: str = "http://localhost:8000", timeout: float = 60.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = requests.Session()

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
    ) -> requests.Response:
        url = f"{self.base_url}{path}"
        resp = self._session.request(method, url, json=json, timeout=self.timeout)
        if not resp.ok:
            is_json = resp.headers.get("content-type", "").startswith("application/json")
            detail = resp.json().get("message", resp.text) if is_json else resp.text
            raise FeeRelayClientError(
                f"API error: {detail}",
                status_code=resp.status_code,
                response=resp,
            )
        return resp

    def sponsor(self, wire_transaction: bytes, captcha_token: str | None = None) -> str:
        """Submit a wire transaction for sponsorship; returns the fee payer signature (base58)."""
        body: dict[str, Any] = {"transaction": base58.b58encode(wire_transaction).decode("ascii")}
        if captcha_token:
            body["captchaToken"] = captcha_token
        r = self._request("POST", "/api/sponsor", json=body)
        return r.json()["signature"]

    def health(self) -> dict[str, Any]:
        """Readiness probe (raises on 503)."""
        r = self._request("GET", "/api/health")
        return r.json()

    def fee_payer(self) -> str:
        """Fee payer address to put at account index 0 of sponsored transactions."""
        return self.health()["feePayer"]
