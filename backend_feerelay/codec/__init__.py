"""
Codec adapter — decode/encode Solana wire transactions (legacy and v0).
"""

from backend_feerelay.codec.transaction import (
    LEGACY,
    V0,
    TransactionView,
    decode,
    decode_wire_text,
    detect_variant,
    duplicate_key,
    is_empty_signature,
    reserialize,
    to_transaction,
    with_signature,
)

__all__ = [
    "LEGACY",
    "V0",
    "TransactionView",
    "decode",
    "decode_wire_text",
    "detect_variant",
    "duplicate_key",
    "is_empty_signature",
    "reserialize",
    "to_transaction",
    "with_signature",
]
