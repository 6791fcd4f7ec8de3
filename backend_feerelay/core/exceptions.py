"""
Application-level exceptions.

Every rejection the sponsor pipeline can produce is a SponsorError carrying an
ErrorKind and a stable, single-line client message. ConfigError is raised at
startup only and never reaches a client.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    DECODE = "decode"
    POLICY = "policy"
    DUPLICATE = "duplicate"
    SIMULATION = "simulation"
    SUBMISSION = "submission"
    ANTI_ABUSE = "anti_abuse"
    INTERNAL = "internal"


class SponsorError(Exception):
    """Base class for request-scoped rejections. `message` is safe to return to clients."""

    kind: ErrorKind = ErrorKind.POLICY

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class DecodeError(SponsorError):
    """Malformed or truncated wire transaction."""

    kind = ErrorKind.DECODE


class PolicyError(SponsorError):
    """Admission policy rejected the transaction."""

    kind = ErrorKind.POLICY


class DuplicateTransactionError(SponsorError):
    kind = ErrorKind.DUPLICATE

    def __init__(self, message: str = "duplicate transaction") -> None:
        super().__init__(message)


class SimulationError(SponsorError):
    """Dry-run predicted an on-chain failure. `details` holds the structured RPC error."""

    kind = ErrorKind.SIMULATION

    def __init__(self, details: str) -> None:
        super().__init__(f"simulation failed: {details}")
        self.details = details


class SubmissionError(SponsorError):
    kind = ErrorKind.SUBMISSION

    def __init__(self, message: str = "submission failed") -> None:
        super().__init__(message)


class AntiSpamError(SponsorError):
    kind = ErrorKind.ANTI_ABUSE

    def __init__(self, message: str = "anti-spam check failed") -> None:
        super().__init__(message)


class SigningError(SponsorError):
    """The signing primitive failed. Opaque to clients, flagged as internal for operators."""

    kind = ErrorKind.INTERNAL

    def __init__(self, message: str = "signing failed") -> None:
        super().__init__(message)


class ConfigError(ValueError):
    """Invalid process configuration (raised at startup)."""
