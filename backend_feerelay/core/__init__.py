"""
Core: shared exception taxonomy.
"""

from backend_feerelay.core.exceptions import (
    AntiSpamError,
    ConfigError,
    DecodeError,
    DuplicateTransactionError,
    ErrorKind,
    PolicyError,
    SigningError,
    SimulationError,
    SponsorError,
    SubmissionError,
)

__all__ = [
    "AntiSpamError",
    "ConfigError",
    "DecodeError",
    "DuplicateTransactionError",
    "ErrorKind",
    "PolicyError",
    "SigningError",
    "SimulationError",
    "SponsorError",
    "SubmissionError",
]
