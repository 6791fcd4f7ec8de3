"""
Ledger RPC collaborator: freshness check, simulation, submit-and-confirm.

Thin wrapper over solana-py's sync Client. No retries here: every call is a
single blocking RPC round trip and failures propagate to the pipeline, which
maps them to the client-facing taxonomy.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from solana.rpc.api import Client
from solana.rpc.commitment import Commitment, Confirmed
from solana.rpc.types import TxOpts
from solders.hash import Hash
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from backend_feerelay.config.env import mask_rpc_url
from backend_feerelay.relay_logging import get_logger

logger = get_logger(__name__)

DEFAULT_RPC_TIMEOUT_SEC = 30.0


@dataclass(frozen=True)
class SimulationResult:
    """Outcome of a non-committing dry run. `err` is None on success."""

    err: Any = None
    logs: tuple[str, ...] = ()
    units_consumed: int | None = None

    @property
    def ok(self) -> bool:
        return self.err is None


class LedgerClient(Protocol):
    def is_blockhash_valid(self, blockhash: Hash) -> bool: ...

    def simulate(self, tx: VersionedTransaction) -> SimulationResult: ...

    def submit_and_confirm(self, raw: bytes, commitment: str) -> Signature: ...

    def get_fee_for_message(self, message: Any) -> int | None: ...

    def get_block_height(self) -> int: ...


class TransactionFailedError(RuntimeError):
    """Confirmed transaction carried an on-chain error."""


class SolanaLedger:
    """LedgerClient backed by a Solana JSON-RPC endpoint."""

    def __init__(self, rpc_url: str, *, timeout_sec: float = DEFAULT_RPC_TIMEOUT_SEC) -> None:
        if not rpc_url.strip():
            raise ValueError("rpc_url must be non-empty")
        self._rpc_url = rpc_url.strip()
        self._timeout_sec = timeout_sec
        self._client: Client | None = None

    def _client_ensure(self) -> Client:
        if self._client is None:
            self._client = Client(self._rpc_url, timeout=self._timeout_sec)
            logger.info("ledger_client_created", rpc_url=mask_rpc_url(self._rpc_url))
        return self._client

    def is_blockhash_valid(self, blockhash: Hash) -> bool:
        resp = self._client_ensure().is_blockhash_valid(blockhash, commitment=Confirmed)
        return bool(resp.value)

    def simulate(self, tx: VersionedTransaction) -> SimulationResult:
        # unsigned secondary slots are admitted by policy; populated ones were verified locally
        resp = self._client_ensure().simulate_transaction(tx, sig_verify=False, commitment=Confirmed)
        value = resp.value
        return SimulationResult(
            err=value.err,
            logs=tuple(value.logs or ()),
            units_consumed=value.units_consumed,
        )

    def submit_and_confirm(self, raw: bytes, commitment: str) -> Signature:
        """Broadcast already-simulated bytes and block until `commitment` is reached."""
        client = self._client_ensure()
        level = Commitment(commitment)
        sent = client.send_raw_transaction(
            raw,
            opts=TxOpts(skip_preflight=True, preflight_commitment=level),
        )
        signature = sent.value
        statuses = client.confirm_transaction(signature, commitment=level)
        status = statuses.value[0] if statuses.value else None
        if status is not None and status.err is not None:
            raise TransactionFailedError(str(status.err))
        return signature

    def get_fee_for_message(self, message: Any) -> int | None:
        resp = self._client_ensure().get_fee_for_message(message, commitment=Confirmed)
        return resp.value

    def get_block_height(self) -> int:
        resp = self._client_ensure().get_block_height(commitment=Confirmed)
        return int(resp.value)
