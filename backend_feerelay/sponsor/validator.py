"""
Admission validator: a linear policy chain over a decoded TransactionView.

The first failing stage raises PolicyError with a stable message. Local
structural stages run before the freshness RPC, so a structurally invalid
transaction is rejected without touching the network.
"""

from __future__ import annotations

from typing import Sequence

from solders.hash import Hash
from solders.pubkey import Pubkey

from backend_feerelay.codec.transaction import TransactionView
from backend_feerelay.core.exceptions import PolicyError
from backend_feerelay.ledger.client import LedgerClient
from backend_feerelay.relay_logging import get_logger
from backend_feerelay.sponsor.policies import InstructionPolicy, PolicyContext

logger = get_logger(__name__)

EMPTY_BLOCKHASH = Hash.default()


class AdmissionValidator:
    def __init__(
        self,
        custodial: Pubkey,
        ledger: LedgerClient,
        *,
        max_signatures: int,
        lamports_per_signature: int = 5000,
        allow_unsigned_secondary: bool = True,
        policies: Sequence[InstructionPolicy] = (),
    ) -> None:
        if max_signatures < 1:
            raise ValueError("max_signatures must be >= 1")
        self._custodial = custodial
        self._ledger = ledger
        self._max_signatures = max_signatures
        self._allow_unsigned_secondary = allow_unsigned_secondary
        self._policies = list(policies)
        self._context = PolicyContext(
            fee_payer=custodial,
            lamports_per_signature=lamports_per_signature,
            ledger=ledger,
        )

    def validate(self, view: TransactionView) -> None:
        self.check_fee_payer(view)
        self.check_blockhash_present(view)
        self.check_signature_count(view)
        self.check_fee_payer_slot(view)
        self.check_secondary_signatures(view)
        self.check_blockhash_fresh(view)
        for policy in self._policies:
            policy(view, self._context)

    def check_fee_payer(self, view: TransactionView) -> None:
        if view.fee_payer is None or view.fee_payer != self._custodial:
            raise PolicyError("invalid fee payer")

    def check_blockhash_present(self, view: TransactionView) -> None:
        if view.recent_blockhash == EMPTY_BLOCKHASH:
            raise PolicyError("missing recent blockhash")

    def check_signature_count(self, view: TransactionView) -> None:
        required = view.num_required_signatures
        if required < 1 or not view.signatures:
            raise PolicyError("no signatures")
        if required > self._max_signatures:
            raise PolicyError("too many signatures")
        if len(view.signatures) != required:
            raise PolicyError("signature count mismatch")

    def check_fee_payer_slot(self, view: TransactionView) -> None:
        # sole signer: a pre-populated slot is overwritten when we sign
        if view.num_required_signatures == 1:
            return
        if not view.is_slot_empty(0):
            raise PolicyError("invalid fee payer signature")

    def check_secondary_signatures(self, view: TransactionView) -> None:
        slots = view.secondary_slots
        if not slots:
            return
        populated = [i for i in slots if not view.is_slot_empty(i)]
        if not populated:
            if not self._allow_unsigned_secondary:
                raise PolicyError("missing required signature")
            return
        if len(populated) != len(slots):
            raise PolicyError("missing required signature")
        for i in populated:
            key = view.slot_key(i)
            if key is None or not view.signatures[i].verify(key, view.message_bytes):
                raise PolicyError("invalid signature")

    def check_blockhash_fresh(self, view: TransactionView) -> None:
        try:
            valid = self._ledger.is_blockhash_valid(view.recent_blockhash)
        except Exception as e:
            logger.warning("sponsor_rpc_error", call="is_blockhash_valid", error=str(e))
            raise PolicyError("blockhash not found or expired") from e
        if not valid:
            raise PolicyError("blockhash not found or expired")
