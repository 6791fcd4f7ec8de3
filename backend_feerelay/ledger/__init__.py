"""
Ledger collaborators — Solana RPC access and the custodial signing capability.
"""

from backend_feerelay.ledger.client import LedgerClient, SimulationResult, SolanaLedger, TransactionFailedError
from backend_feerelay.ledger.keypair import CustodialSigner, load_keypair

__all__ = [
    "CustodialSigner",
    "LedgerClient",
    "SimulationResult",
    "SolanaLedger",
    "TransactionFailedError",
    "load_keypair",
]
