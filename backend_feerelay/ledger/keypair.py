"""
Custodial key material: load once at startup, expose only a signing capability.
"""

from __future__ import annotations

import json

import base58
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature

from backend_feerelay.core.exceptions import ConfigError
from backend_feerelay.relay_logging import get_logger

logger = get_logger(__name__)


def load_keypair(private_key: str) -> Keypair:
    """Load Keypair from SECRET_KEYPAIR: base58 string or JSON array of 64 bytes."""
    raw = private_key.strip()
    if not raw:
        raise ConfigError("SECRET_KEYPAIR must be set")
    if raw.startswith("["):
        try:
            arr = json.loads(raw)
            if len(arr) >= 64:
                return Keypair.from_bytes(bytes(arr[:64]))
        except (json.JSONDecodeError, TypeError, ValueError):
            pass
        logger.warning("custodial_keypair_load_failed", source="json")
        raise ConfigError("Invalid SECRET_KEYPAIR")
    try:
        secret = base58.b58decode(raw)
        return Keypair.from_bytes(secret)
    except Exception as e:
        # never log the exception text: it can echo key material
        logger.warning("custodial_keypair_load_failed", source="base58", error_type=type(e).__name__)
        raise ConfigError("Invalid SECRET_KEYPAIR") from e


class CustodialSigner:
    """Signing capability over the relay's fee payer key. The secret never leaves this object."""

    __slots__ = ("_keypair",)

    def __init__(self, keypair: Keypair) -> None:
        self._keypair = keypair

    @classmethod
    def from_secret(cls, private_key: str) -> "CustodialSigner":
        return cls(load_keypair(private_key))

    @property
    def pubkey(self) -> Pubkey:
        return self._keypair.pubkey()

    def sign(self, message: bytes) -> Signature:
        return self._keypair.sign_message(message)

    def __repr__(self) -> str:
        return f"CustodialSigner(pubkey={self.pubkey})"

    __str__ = __repr__
