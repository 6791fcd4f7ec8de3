"""
Pytest fixtures for FeeRelay tests.

Uses real solders keypairs and messages to build wire transactions; the ledger
RPC and anti-abuse scorer are replaced by in-memory fakes so tests never touch
the network.
"""

from __future__ import annotations

from typing import Any, Callable, Sequence

import pytest
from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message, MessageV0, to_bytes_versioned
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction

from backend_feerelay.config import RateLimitSettings, RelaySettings
from backend_feerelay.ledger import CustodialSigner, SimulationResult
from backend_feerelay.sponsor import SponsorPipeline
from backend_feerelay.sponsor.cache import MemoryLockCache

MEMO_PROGRAM_ID = Pubkey.from_string("MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr")


class FakeLedger:
    """LedgerClient double: records calls, configurable outcomes."""

    def __init__(self) -> None:
        self.blockhash_valid = True
        self.blockhash_error: Exception | None = None
        self.simulation_err: Any = None
        self.simulation_error: Exception | None = None
        self.submit_error: Exception | None = None
        self.fee: int | None = 5000
        self.block_height = 250_000_000
        self.height_error: Exception | None = None
        self.calls: list[str] = []
        self.simulated: list[VersionedTransaction] = []
        self.submitted: list[tuple[bytes, str]] = []

    def is_blockhash_valid(self, blockhash: Hash) -> bool:
        self.calls.append("is_blockhash_valid")
        if self.blockhash_error is not None:
            raise self.blockhash_error
        return self.blockhash_valid

    def simulate(self, tx: VersionedTransaction) -> SimulationResult:
        self.calls.append("simulate")
        if self.simulation_error is not None:
            raise self.simulation_error
        self.simulated.append(tx)
        return SimulationResult(err=self.simulation_err, logs=("Program log: ok",))

    def submit_and_confirm(self, raw: bytes, commitment: str) -> Signature:
        self.calls.append("submit_and_confirm")
        if self.submit_error is not None:
            raise self.submit_error
        self.submitted.append((raw, commitment))
        return VersionedTransaction.from_bytes(raw).signatures[0]

    def get_fee_for_message(self, message: Any) -> int | None:
        self.calls.append("get_fee_for_message")
        return self.fee

    def get_block_height(self) -> int:
        self.calls.append("get_block_height")
        if self.height_error is not None:
            raise self.height_error
        return self.block_height


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def build_wire_transaction(
    fee_payer: Pubkey,
    users: Sequence[Keypair] = (),
    *,
    versioned: bool = False,
    blockhash: Hash | None = None,
    sign_with: Sequence[Keypair] = (),
    instructions: Sequence[Instruction] | None = None,
) -> bytes:
    """
    Build wire bytes with `fee_payer` at account index 0.

    Each user transfers 1 lamport to a fresh account (making them required
    signers); with no users, a single memo instruction keeps the fee payer the
    sole signer. Slots are empty unless their keypair is in `sign_with`.
    """
    blockhash = blockhash if blockhash is not None else Hash.new_unique()
    if instructions is None:
        instructions = [
            transfer(TransferParams(from_pubkey=u.pubkey(), to_pubkey=Pubkey.new_unique(), lamports=1))
            for u in users
        ] or [Instruction(MEMO_PROGRAM_ID, b"sponsored", [])]
    if versioned:
        message: Message | MessageV0 = MessageV0.try_compile(fee_payer, list(instructions), [], blockhash)
    else:
        message = Message.new_with_blockhash(list(instructions), fee_payer, blockhash)
    n = message.header.num_required_signatures
    signatures = [Signature.default()] * n
    keys = list(message.account_keys)
    message_bytes = to_bytes_versioned(message)
    for kp in sign_with:
        signatures[keys.index(kp.pubkey())] = kp.sign_message(message_bytes)
    return bytes(VersionedTransaction.populate(message, signatures))


@pytest.fixture
def custodial() -> Keypair:
    return Keypair()


@pytest.fixture
def signer(custodial) -> CustodialSigner:
    return CustodialSigner(custodial)


@pytest.fixture
def user() -> Keypair:
    return Keypair()


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_tx() -> Callable[..., bytes]:
    return build_wire_transaction


@pytest.fixture
def settings_factory() -> Callable[..., RelaySettings]:
    def _make(**overrides: Any) -> RelaySettings:
        base: dict[str, Any] = {
            "solana_rpc_url": "http://127.0.0.1:8899",
            "secret_keypair": "",
            "redis_url": "",
            "recaptcha_secret": "",
            "rate_limit": RateLimitSettings(max_requests=1000, window_sec=60.0),
        }
        base.update(overrides)
        return RelaySettings(**base)

    return _make


@pytest.fixture
def make_pipeline(signer, ledger, clock, settings_factory) -> Callable[..., SponsorPipeline]:
    def _make(*, settings: RelaySettings | None = None, cache=None, scorer=None, policies=None) -> SponsorPipeline:
        settings = settings or settings_factory()
        if cache is None:
            cache = MemoryLockCache(settings.duplicate_ttl_sec, clock=clock)
        return SponsorPipeline.from_settings(
            settings,
            signer=signer,
            ledger=ledger,
            cache=cache,
            scorer=scorer,
            policies=policies,
        )

    return _make


@pytest.fixture
def memo_program() -> Pubkey:
    return MEMO_PROGRAM_ID
