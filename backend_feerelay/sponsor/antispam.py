"""
Anti-abuse scoring collaborator for returnSignature = google-captcha.
"""

from __future__ import annotations

from typing import Protocol

import httpx

from backend_feerelay.relay_logging import get_logger

logger = get_logger(__name__)

RECAPTCHA_VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"
DEFAULT_VERIFY_TIMEOUT_SEC = 10.0


class ChallengeScorer(Protocol):
    def score(self, token: str, remote_ip: str | None = None) -> float | None:
        """Return the caller's risk score (higher is more human), or None if the token is rejected."""
        ...


class RecaptchaScorer:
    """reCAPTCHA v3 siteverify client."""

    def __init__(
        self,
        secret: str,
        *,
        verify_url: str = RECAPTCHA_VERIFY_URL,
        timeout_sec: float = DEFAULT_VERIFY_TIMEOUT_SEC,
        http_client: httpx.Client | None = None,
    ) -> None:
        if not secret.strip():
            raise ValueError("reCAPTCHA secret must be non-empty")
        self._secret = secret.strip()
        self._verify_url = verify_url
        self._client = http_client or httpx.Client(timeout=httpx.Timeout(timeout_sec))

    def score(self, token: str, remote_ip: str | None = None) -> float | None:
        data = {"secret": self._secret, "response": token}
        if remote_ip:
            data["remoteip"] = remote_ip
        resp = self._client.post(self._verify_url, data=data)
        resp.raise_for_status()
        body = resp.json()
        if not body.get("success"):
            logger.info("captcha_rejected", error_codes=body.get("error-codes") or [])
            return None
        raw = body.get("score")
        return float(raw) if raw is not None else None

    def close(self) -> None:
        self._client.close()
