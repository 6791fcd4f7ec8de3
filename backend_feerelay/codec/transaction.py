"""
Wire transaction codec adapter over solders.

Detects the variant (legacy vs versioned) from the leading discriminant, rejects
truncated input before the library sees it, and normalizes both variants into
one TransactionView. Downstream stages only ever see TransactionView.

Wire layout: compact-u16 signature count, 64-byte signatures, then the message.
A versioned message starts with a prefix byte whose high bit is set (version in
the low 7 bits); a legacy message starts with its header (high bit clear).
"""

from __future__ import annotations

import base64
import binascii
import hashlib
from dataclasses import dataclass, replace
from typing import Union

import base58
from solders.hash import Hash
from solders.instruction import CompiledInstruction
from solders.message import Message, MessageV0, to_bytes_versioned
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from backend_feerelay.core.exceptions import DecodeError

LEGACY = "legacy"
V0 = "v0"
SIGNATURE_LEN = 64
VERSION_PREFIX_MASK = 0x80
SUPPORTED_VERSIONS = (0,)
EMPTY_SIGNATURE_BYTES = bytes(SIGNATURE_LEN)
DUPLICATE_KEY_PREFIX = "transaction/"

VersionedMessage = Union[Message, MessageV0]


def _read_compact_u16(data: bytes, offset: int) -> tuple[int, int]:
    """Decode a short_vec length at `offset`. Returns (value, next_offset)."""
    value = 0
    for i in range(3):
        pos = offset + i
        if pos >= len(data):
            raise DecodeError("truncated transaction")
        byte = data[pos]
        value |= (byte & 0x7F) << (7 * i)
        if not byte & 0x80:
            return value, pos + 1
    raise DecodeError("invalid compact-u16 length")


def detect_variant(raw: bytes) -> str:
    """Return LEGACY or V0 from the message prefix byte; raise DecodeError on truncation."""
    count, offset = _read_compact_u16(raw, 0)
    message_start = offset + count * SIGNATURE_LEN
    if len(raw) <= message_start:
        raise DecodeError("truncated transaction")
    prefix = raw[message_start]
    if not prefix & VERSION_PREFIX_MASK:
        return LEGACY
    version = prefix & 0x7F
    if version not in SUPPORTED_VERSIONS:
        raise DecodeError(f"unsupported transaction version {version}")
    return V0


def is_empty_signature(signature: Signature) -> bool:
    return bytes(signature) == EMPTY_SIGNATURE_BYTES


@dataclass(frozen=True)
class TransactionView:
    """
    Normalized, request-scoped view of a decoded transaction.

    Signature slot i is bound to account_keys[i] in both variants; slot 0 is the
    fee payer. `message_bytes` are the exact bytes signers sign (and the bytes the
    duplicate lock digests), so adding or removing signatures never changes them.
    """

    variant: str
    message: VersionedMessage
    message_bytes: bytes
    account_keys: tuple[Pubkey, ...]
    recent_blockhash: Hash
    num_required_signatures: int
    signatures: tuple[Signature, ...]
    instructions: tuple[CompiledInstruction, ...]

    @property
    def fee_payer(self) -> Pubkey | None:
        return self.account_keys[0] if self.account_keys else None

    def slot_key(self, index: int) -> Pubkey | None:
        """Account key a signature slot is bound to (None when the message lists too few keys)."""
        return self.account_keys[index] if index < len(self.account_keys) else None

    def is_slot_empty(self, index: int) -> bool:
        return is_empty_signature(self.signatures[index])

    @property
    def secondary_slots(self) -> range:
        return range(1, len(self.signatures))

    def program_id(self, instruction: CompiledInstruction) -> Pubkey | None:
        idx = instruction.program_id_index
        return self.account_keys[idx] if idx < len(self.account_keys) else None


def decode(raw: bytes) -> TransactionView:
    """Decode wire bytes (legacy or v0) into a TransactionView. Raises DecodeError, never partial results."""
    if not raw:
        raise DecodeError("can't decode transaction")
    variant = detect_variant(raw)
    try:
        tx = VersionedTransaction.from_bytes(raw)
    except Exception as e:
        raise DecodeError(_one_line(str(e)) or "can't decode transaction") from e
    message = tx.message
    if (variant == V0) != isinstance(message, MessageV0):
        raise DecodeError("can't decode transaction")
    return TransactionView(
        variant=variant,
        message=message,
        message_bytes=to_bytes_versioned(message),
        account_keys=tuple(message.account_keys),
        recent_blockhash=message.recent_blockhash,
        num_required_signatures=message.header.num_required_signatures,
        signatures=tuple(tx.signatures),
        instructions=tuple(message.instructions),
    )


def with_signature(view: TransactionView, index: int, signature: Signature) -> TransactionView:
    """Return a copy of `view` with slot `index` populated; all other slots untouched."""
    signatures = list(view.signatures)
    signatures[index] = signature
    return replace(view, signatures=tuple(signatures))


def to_transaction(view: TransactionView) -> VersionedTransaction:
    return VersionedTransaction.populate(view.message, list(view.signatures))


def reserialize(view: TransactionView) -> bytes:
    """Canonical wire bytes for `view` in its original variant."""
    return bytes(to_transaction(view))


def decode_wire_text(text: str, encoding: str = "base58") -> bytes:
    """Turn the client's text-encoded transaction into wire bytes."""
    try:
        if encoding == "base58":
            return base58.b58decode(text)
        if encoding == "base64":
            return base64.b64decode(text, validate=True)
    except (ValueError, binascii.Error) as e:
        raise DecodeError("can't decode transaction") from e
    raise DecodeError(f"unsupported encoding: {encoding}")


def message_digest(view: TransactionView) -> bytes:
    return hashlib.sha256(view.message_bytes).digest()


def duplicate_key(view: TransactionView) -> str:
    """Cache key for the duplicate lock: transaction/<base58 sha256(message bytes)>."""
    return DUPLICATE_KEY_PREFIX + base58.b58encode(message_digest(view)).decode("ascii")


def _one_line(text: str) -> str:
    return " ".join(text.split())
