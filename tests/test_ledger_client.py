"""
Tests for SolanaLedger with a mocked solana-py Client (no network).
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from solana.rpc.commitment import Confirmed
from solders.hash import Hash
from solders.signature import Signature

from backend_feerelay.codec import decode, to_transaction
from backend_feerelay.ledger import SolanaLedger, TransactionFailedError
from backend_feerelay.sponsor.signer import CoSigner


@pytest.fixture
def rpc():
    return MagicMock()


@pytest.fixture
def solana_ledger(rpc) -> SolanaLedger:
    ledger = SolanaLedger("http://127.0.0.1:8899")
    ledger._client = rpc
    return ledger


def test_client_created_lazily_once():
    with patch("backend_feerelay.ledger.client.Client") as client_cls:
        ledger = SolanaLedger("http://127.0.0.1:8899", timeout_sec=5.0)
        client_cls.assert_not_called()
        client_cls.return_value.get_block_height.return_value = MagicMock(value=7)
        assert ledger.get_block_height() == 7
        assert ledger.get_block_height() == 7
    client_cls.assert_called_once_with("http://127.0.0.1:8899", timeout=5.0)


def test_rpc_url_required():
    with pytest.raises(ValueError):
        SolanaLedger("  ")


@pytest.mark.parametrize("value, expected", [(True, True), (False, False), (None, False)])
def test_is_blockhash_valid_coerces_to_bool(solana_ledger, rpc, value, expected):
    rpc.is_blockhash_valid.return_value = MagicMock(value=value)
    blockhash = Hash.new_unique()
    assert solana_ledger.is_blockhash_valid(blockhash) is expected
    rpc.is_blockhash_valid.assert_called_once_with(blockhash, commitment=Confirmed)


def test_simulate_skips_rpc_signature_verification(solana_ledger, rpc, signer, ledger, custodial, user, make_tx):
    """A co-signed transaction with an empty user slot is simulated without sig verification."""
    signed = CoSigner(signer, ledger).sign(decode(make_tx(custodial.pubkey(), [user])))
    tx = to_transaction(signed.view)
    assert tx.verify_with_results() == [True, False]

    rpc.simulate_transaction.return_value = MagicMock(
        value=MagicMock(err=None, logs=["Program log: a", "Program log: b"], units_consumed=1234)
    )
    result = solana_ledger.simulate(tx)

    assert result.ok
    assert result.logs == ("Program log: a", "Program log: b")
    assert result.units_consumed == 1234
    rpc.simulate_transaction.assert_called_once_with(tx, sig_verify=False, commitment=Confirmed)


def test_simulate_maps_error_and_missing_logs(solana_ledger, rpc):
    rpc.simulate_transaction.return_value = MagicMock(
        value=MagicMock(err="AccountNotFound", logs=None, units_consumed=None)
    )
    result = solana_ledger.simulate(MagicMock())
    assert not result.ok
    assert result.err == "AccountNotFound"
    assert result.logs == ()


def _send_ok(rpc, signature: Signature, status_err=None, statuses=True):
    rpc.send_raw_transaction.return_value = MagicMock(value=signature)
    value = [MagicMock(err=status_err)] if statuses else []
    rpc.confirm_transaction.return_value = MagicMock(value=value)


def test_submit_and_confirm_uses_requested_commitment(solana_ledger, rpc):
    sig = Signature.new_unique()
    _send_ok(rpc, sig)

    assert solana_ledger.submit_and_confirm(b"wire", "finalized") == sig

    args, kwargs = rpc.send_raw_transaction.call_args
    assert args == (b"wire",)
    assert kwargs["opts"].skip_preflight is True
    assert kwargs["opts"].preflight_commitment == "finalized"
    rpc.confirm_transaction.assert_called_once_with(sig, commitment="finalized")


def test_submit_and_confirm_without_status_returns_signature(solana_ledger, rpc):
    sig = Signature.new_unique()
    _send_ok(rpc, sig, statuses=False)
    assert solana_ledger.submit_and_confirm(b"wire", "confirmed") == sig


def test_submit_and_confirm_raises_on_onchain_error(solana_ledger, rpc):
    _send_ok(rpc, Signature.new_unique(), status_err="InstructionError(0, Custom(1))")
    with pytest.raises(TransactionFailedError, match="InstructionError"):
        solana_ledger.submit_and_confirm(b"wire", "confirmed")


def test_get_fee_for_message(solana_ledger, rpc):
    rpc.get_fee_for_message.return_value = MagicMock(value=5000)
    message = MagicMock()
    assert solana_ledger.get_fee_for_message(message) == 5000
    rpc.get_fee_for_message.assert_called_once_with(message, commitment=Confirmed)
