"""
Sponsor pipeline: decode -> duplicate lock -> admission -> co-sign + simulate -> dispatch.

Each stage either passes or raises a SponsorError; nothing after the duplicate
lock runs more than once per request and nothing retries internally. The
duplicate lock is taken before validation and is never released explicitly, so
a rejected message stays locked for the TTL window as well.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from structlog.contextvars import bound_contextvars

from backend_feerelay.codec.transaction import TransactionView, decode, decode_wire_text, duplicate_key
from backend_feerelay.config.settings import RelaySettings, ScoredChallenge
from backend_feerelay.core.exceptions import ConfigError, DuplicateTransactionError, SponsorError
from backend_feerelay.ledger.client import LedgerClient, SolanaLedger
from backend_feerelay.ledger.keypair import CustodialSigner
from backend_feerelay.relay_logging import get_logger
from backend_feerelay.sponsor.antispam import ChallengeScorer, RecaptchaScorer
from backend_feerelay.sponsor.cache import DuplicateCache, build_cache
from backend_feerelay.sponsor.dispatch import DispatchResolver
from backend_feerelay.sponsor.outcome import SponsorResponse, report_failure, report_success
from backend_feerelay.sponsor.policies import InstructionPolicy, default_policies
from backend_feerelay.sponsor.signer import CoSigner
from backend_feerelay.sponsor.validator import AdmissionValidator

logger = get_logger(__name__)


@dataclass(frozen=True)
class SponsorOutcome:
    signature: str
    submitted: bool
    transaction: bytes
    digest: str


class SponsorPipeline:
    def __init__(
        self,
        cache: DuplicateCache,
        validator: AdmissionValidator,
        cosigner: CoSigner,
        dispatcher: DispatchResolver,
    ) -> None:
        self._cache = cache
        self._validator = validator
        self._cosigner = cosigner
        self._dispatcher = dispatcher

    @classmethod
    def from_settings(
        cls,
        settings: RelaySettings,
        *,
        signer: CustodialSigner | None = None,
        ledger: LedgerClient | None = None,
        cache: DuplicateCache | None = None,
        scorer: ChallengeScorer | None = None,
        policies: Sequence[InstructionPolicy] | None = None,
    ) -> "SponsorPipeline":
        """Wire the pipeline from settings; any collaborator may be injected instead."""
        if signer is None:
            signer = CustodialSigner.from_secret(settings.secret_keypair)
        if ledger is None:
            ledger = SolanaLedger(settings.solana_rpc_url)
        if cache is None:
            cache = build_cache(settings.redis_url, settings.duplicate_ttl_sec)
        if scorer is None and isinstance(settings.return_signature, ScoredChallenge):
            if not settings.recaptcha_secret:
                raise ConfigError("RECAPTCHA_SECRET_KEY must be set when returnSignature is google-captcha")
            scorer = RecaptchaScorer(settings.recaptcha_secret)
        if policies is None:
            policies = default_policies(
                settings.allowed_program_keys,
                enforce_fee_ceiling=settings.enforce_fee_ceiling,
            )
        validator = AdmissionValidator(
            signer.pubkey,
            ledger,
            max_signatures=settings.max_signatures,
            lamports_per_signature=settings.lamports_per_signature,
            allow_unsigned_secondary=settings.allow_unsigned_secondary,
            policies=policies,
        )
        logger.info(
            "sponsor_pipeline_ready",
            fee_payer=str(signer.pubkey),
            max_signatures=settings.max_signatures,
            return_signature=type(settings.return_signature).__name__,
            policy_count=len(policies),
        )
        return cls(
            cache=cache,
            validator=validator,
            cosigner=CoSigner(signer, ledger),
            dispatcher=DispatchResolver(settings.return_signature, ledger, scorer),
        )

    def sponsor(
        self,
        raw: bytes,
        *,
        challenge: str | None = None,
        remote_ip: str | None = None,
    ) -> SponsorOutcome:
        """Run every stage on wire bytes. Raises SponsorError on the first rejection."""
        view = decode(raw)
        key = duplicate_key(view)
        with bound_contextvars(digest=key):
            return self._admit(view, key, challenge, remote_ip)

    def _admit(
        self,
        view: TransactionView,
        key: str,
        challenge: str | None,
        remote_ip: str | None,
    ) -> SponsorOutcome:
        if self._cache.check_and_lock(key):
            raise DuplicateTransactionError()
        self._validator.validate(view)
        signed = self._cosigner.sign_and_simulate(view)
        result = self._dispatcher.dispatch(signed, challenge=challenge, remote_ip=remote_ip)
        return SponsorOutcome(
            signature=result.signature,
            submitted=result.submitted,
            transaction=result.transaction,
            digest=key,
        )

    def handle(
        self,
        raw: bytes,
        *,
        challenge: str | None = None,
        remote_ip: str | None = None,
    ) -> SponsorResponse:
        """sponsor() with every failure mapped to a SponsorRejected. Never raises."""
        try:
            view = decode(raw)
        except Exception as e:
            return report_failure(e)
        key = duplicate_key(view)
        with bound_contextvars(digest=key):
            try:
                outcome = self._admit(view, key, challenge, remote_ip)
            except Exception as e:
                return report_failure(e)
            return report_success(outcome.signature)

    def handle_text(
        self,
        text: str,
        *,
        encoding: str = "base58",
        challenge: str | None = None,
        remote_ip: str | None = None,
    ) -> SponsorResponse:
        try:
            raw = decode_wire_text(text, encoding)
        except SponsorError as e:
            return report_failure(e)
        return self.handle(raw, challenge=challenge, remote_ip=remote_ip)
