"""
Co-signer and simulator.

Populates the fee payer slot with the custodial signature and dry-runs the
result. Simulation is unconditional: nothing is returned or submitted unless the
exact signed bytes simulate cleanly.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from solders.signature import Signature

from backend_feerelay.codec.transaction import TransactionView, reserialize, to_transaction, with_signature
from backend_feerelay.core.exceptions import SigningError, SimulationError
from backend_feerelay.ledger.client import LedgerClient, SimulationResult
from backend_feerelay.ledger.keypair import CustodialSigner
from backend_feerelay.relay_logging import get_logger

logger = get_logger(__name__)

FEE_PAYER_SLOT = 0


@dataclass(frozen=True)
class SignedTransaction:
    view: TransactionView
    raw: bytes
    signature: Signature

    @property
    def signature_id(self) -> str:
        """Base58 fee payer signature: the transaction id once it lands."""
        return str(self.signature)


def format_simulation_error(err: Any) -> str:
    if isinstance(err, (dict, list, str, int, float)):
        return json.dumps(err, separators=(",", ":"))
    return " ".join(str(err).split())


class CoSigner:
    def __init__(self, signer: CustodialSigner, ledger: LedgerClient) -> None:
        self._signer = signer
        self._ledger = ledger

    def sign(self, view: TransactionView) -> SignedTransaction:
        try:
            signature = self._signer.sign(view.message_bytes)
            signed_view = with_signature(view, FEE_PAYER_SLOT, signature)
            raw = reserialize(signed_view)
        except Exception as e:
            logger.exception("sponsor_internal_fault", stage="sign", error_type=type(e).__name__)
            raise SigningError() from e
        return SignedTransaction(view=signed_view, raw=raw, signature=signature)

    def simulate(self, signed: SignedTransaction) -> SimulationResult:
        try:
            result = self._ledger.simulate(to_transaction(signed.view))
        except Exception as e:
            logger.warning("sponsor_rpc_error", call="simulate", error=str(e))
            raise SimulationError(" ".join(str(e).split()) or type(e).__name__) from e
        if not result.ok:
            details = format_simulation_error(result.err)
            logger.info(
                "sponsor_simulation_failed",
                signature=signed.signature_id,
                err=details,
                logs=list(result.logs[-5:]),
            )
            raise SimulationError(details)
        return result

    def sign_and_simulate(self, view: TransactionView) -> SignedTransaction:
        signed = self.sign(view)
        self.simulate(signed)
        return signed
