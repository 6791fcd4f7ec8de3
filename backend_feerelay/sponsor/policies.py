"""
Instruction policy hooks (admission stage 6).

A policy is any callable `(view, context) -> None` that raises PolicyError to
reject. Operators can inject their own alongside (or instead of) the defaults.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable

from solders.pubkey import Pubkey

from backend_feerelay.codec.transaction import TransactionView
from backend_feerelay.core.exceptions import PolicyError
from backend_feerelay.ledger.client import LedgerClient
from backend_feerelay.relay_logging import get_logger

logger = get_logger(__name__)

FEE_PAYER_INDEX = 0


@dataclass(frozen=True)
class PolicyContext:
    fee_payer: Pubkey
    lamports_per_signature: int
    ledger: LedgerClient


InstructionPolicy = Callable[[TransactionView, PolicyContext], None]


def reject_custodial_account_use(view: TransactionView, context: PolicyContext) -> None:
    """
    The fee payer must only pay fees. Any instruction that names it (it is always
    a writable signer, so it could fund transfers or sign for a program) is rejected.
    """
    for ix in view.instructions:
        if ix.program_id_index == FEE_PAYER_INDEX or FEE_PAYER_INDEX in bytes(ix.accounts):
            raise PolicyError("invalid account")


class ProgramAllowList:
    """Accept only instructions whose program id is in the operator's allow-list."""

    def __init__(self, programs: Iterable[Pubkey]) -> None:
        self._programs = frozenset(programs)

    def __call__(self, view: TransactionView, context: PolicyContext) -> None:
        for ix in view.instructions:
            program = view.program_id(ix)
            if program is None or program not in self._programs:
                raise PolicyError("program not allowed")


def fee_ceiling(view: TransactionView, context: PolicyContext) -> None:
    """Reject when the network fee exceeds lamportsPerSignature for every required signature."""
    try:
        fee = context.ledger.get_fee_for_message(view.message)
    except Exception as e:
        logger.warning("sponsor_rpc_error", call="get_fee_for_message", error=str(e))
        raise PolicyError("blockhash not found or expired") from e
    if fee is None:
        raise PolicyError("blockhash not found or expired")
    limit = context.lamports_per_signature * view.num_required_signatures
    if fee > limit:
        logger.info("sponsor_fee_above_ceiling", fee=fee, limit=limit)
        raise PolicyError("fee too high")


def default_policies(
    allowed_programs: Iterable[Pubkey] = (),
    *,
    enforce_fee_ceiling: bool = False,
) -> list[InstructionPolicy]:
    policies: list[InstructionPolicy] = [reject_custodial_account_use]
    programs = frozenset(allowed_programs)
    if programs:
        policies.append(ProgramAllowList(programs))
    if enforce_fee_ceiling:
        policies.append(fee_ceiling)
    return policies
