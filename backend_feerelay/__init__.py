"""
Backend FeeRelay — sponsors Solana transaction fees with a custodial fee payer.

Clients build a transaction naming the relay's key as fee payer; the relay
decodes it, suppresses duplicates, validates it against the sponsorship policy,
co-signs, simulates, and either submits it or returns the fee payer signature.
"""

__version__ = "0.1.0"
