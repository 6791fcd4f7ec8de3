"""
Dispatch resolver: submit-and-confirm, or hand the fee payer signature back.

Driven by the closed returnSignature variant:
    SubmitAndConfirm  -> broadcast, block until confirmed, return the signature
    AllowAll          -> return the signature; the caller broadcasts
    ScoredChallenge   -> as AllowAll, but only for callers passing the score gate
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import cast

from backend_feerelay.config.settings import AllowAll, ReturnSignature, ScoredChallenge, SubmitAndConfirm
from backend_feerelay.core.exceptions import AntiSpamError, SubmissionError
from backend_feerelay.ledger.client import LedgerClient
from backend_feerelay.relay_logging import get_logger
from backend_feerelay.sponsor.antispam import ChallengeScorer
from backend_feerelay.sponsor.signer import SignedTransaction

logger = get_logger(__name__)


@dataclass(frozen=True)
class DispatchResult:
    signature: str
    submitted: bool
    transaction: bytes


class DispatchResolver:
    def __init__(
        self,
        mode: ReturnSignature,
        ledger: LedgerClient,
        scorer: ChallengeScorer | None = None,
    ) -> None:
        if isinstance(mode, ScoredChallenge) and scorer is None:
            raise ValueError("ScoredChallenge requires a challenge scorer")
        self._mode = mode
        self._ledger = ledger
        self._scorer = scorer

    @property
    def mode(self) -> ReturnSignature:
        return self._mode

    def dispatch(
        self,
        signed: SignedTransaction,
        *,
        challenge: str | None = None,
        remote_ip: str | None = None,
    ) -> DispatchResult:
        mode = self._mode
        if isinstance(mode, SubmitAndConfirm):
            return self._submit(signed, mode.commitment)
        if isinstance(mode, AllowAll):
            return self._return_signed(signed)
        if isinstance(mode, ScoredChallenge):
            self._check_challenge(mode, challenge, remote_ip)
            return self._return_signed(signed)
        raise TypeError(f"Unhandled returnSignature variant: {mode!r}")

    def _submit(self, signed: SignedTransaction, commitment: str) -> DispatchResult:
        try:
            signature = self._ledger.submit_and_confirm(signed.raw, commitment)
        except Exception as e:
            logger.warning(
                "sponsor_submission_failed",
                signature=signed.signature_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise SubmissionError() from e
        logger.info("sponsor_submitted", signature=str(signature), commitment=commitment)
        return DispatchResult(signature=str(signature), submitted=True, transaction=signed.raw)

    def _return_signed(self, signed: SignedTransaction) -> DispatchResult:
        logger.info("sponsor_signature_returned", signature=signed.signature_id)
        return DispatchResult(signature=signed.signature_id, submitted=False, transaction=signed.raw)

    def _check_challenge(self, mode: ScoredChallenge, challenge: str | None, remote_ip: str | None) -> None:
        if not challenge:
            logger.info("sponsor_challenge_missing")
            raise AntiSpamError()
        scorer = cast(ChallengeScorer, self._scorer)
        try:
            score = scorer.score(challenge, remote_ip)
        except Exception as e:
            logger.warning("sponsor_challenge_error", error=str(e), error_type=type(e).__name__)
            raise AntiSpamError() from e
        if score is None or score < mode.min_score:
            logger.info("sponsor_challenge_below_threshold", score=score, min_score=mode.min_score)
            raise AntiSpamError()
