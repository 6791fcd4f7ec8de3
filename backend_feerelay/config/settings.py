"""
Relay settings: sponsorship policy (JSON file) merged with environment variables.

Responsibilities:
- Parse config.json keys in the camelCase form existing deployments use
  (maxSignatures, lamportsPerSignature, returnSignature, ...).
- Model returnSignature as a closed set of variants.
- Validate once at process start; settings are immutable afterwards.
"""

from __future__ import annotations

import functools
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union

from solders.pubkey import Pubkey

from backend_feerelay.config.env import get_config_path, get_solana_rpc_url, load_relay_env
from backend_feerelay.core.exceptions import ConfigError

DEFAULT_MAX_SIGNATURES = 2
DEFAULT_LAMPORTS_PER_SIGNATURE = 5000
DEFAULT_DUPLICATE_TTL_SEC = 5.0
DEFAULT_RATE_LIMIT_MAX = 50
DEFAULT_RATE_LIMIT_WINDOW_SEC = 60.0
DEFAULT_COMMITMENT = "confirmed"
CAPTCHA_TYPE = "google-captcha"


@dataclass(frozen=True)
class SubmitAndConfirm:
    """returnSignature = null: the relay broadcasts and waits for confirmation."""

    commitment: str = DEFAULT_COMMITMENT


@dataclass(frozen=True)
class AllowAll:
    """returnSignature = {"type": "allowAll"}: hand back the fee payer signature, no gate."""


@dataclass(frozen=True)
class ScoredChallenge:
    """returnSignature = {"type": "google-captcha", "minScore": x}: return only to callers scoring >= min_score."""

    min_score: float


ReturnSignature = Union[SubmitAndConfirm, AllowAll, ScoredChallenge]


def parse_return_signature(raw: Any) -> ReturnSignature:
    if raw is None:
        return SubmitAndConfirm()
    if not isinstance(raw, dict):
        raise ConfigError("returnSignature must be null or an object with a 'type'")
    kind = str(raw.get("type") or "").strip()
    if kind == "allowAll":
        return AllowAll()
    if kind == CAPTCHA_TYPE:
        try:
            min_score = float(raw["minScore"])
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError("returnSignature google-captcha requires numeric minScore") from e
        if not 0.0 <= min_score <= 1.0:
            raise ConfigError("returnSignature minScore must be between 0 and 1")
        return ScoredChallenge(min_score=min_score)
    raise ConfigError(f"Unknown returnSignature type: {kind or '<missing>'}")


@dataclass(frozen=True)
class RateLimitSettings:
    max_requests: int = DEFAULT_RATE_LIMIT_MAX
    window_sec: float = DEFAULT_RATE_LIMIT_WINDOW_SEC


@dataclass(frozen=True)
class RelaySettings:
    """Process-wide, read-only configuration for the sponsor pipeline and HTTP surface."""

    max_signatures: int = DEFAULT_MAX_SIGNATURES
    lamports_per_signature: int = DEFAULT_LAMPORTS_PER_SIGNATURE
    return_signature: ReturnSignature = field(default_factory=SubmitAndConfirm)
    allowed_programs: tuple[str, ...] = ()
    allow_unsigned_secondary: bool = True
    enforce_fee_ceiling: bool = False
    duplicate_ttl_sec: float = DEFAULT_DUPLICATE_TTL_SEC
    cors_origins: tuple[str, ...] = ("*",)
    rate_limit: RateLimitSettings = field(default_factory=RateLimitSettings)
    solana_rpc_url: str = field(default_factory=get_solana_rpc_url)
    secret_keypair: str = field(default_factory=lambda: (os.getenv("SECRET_KEYPAIR") or "").strip(), repr=False)
    redis_url: str = field(default_factory=lambda: (os.getenv("REDIS_URL") or "").strip())
    recaptcha_secret: str = field(default_factory=lambda: (os.getenv("RECAPTCHA_SECRET_KEY") or "").strip(), repr=False)

    def __post_init__(self) -> None:
        if self.max_signatures < 1:
            raise ConfigError("maxSignatures must be >= 1")
        if self.lamports_per_signature < 0:
            raise ConfigError("lamportsPerSignature must be >= 0")
        if self.duplicate_ttl_sec <= 0:
            raise ConfigError("duplicateTtlSeconds must be positive")
        if self.rate_limit.max_requests < 1 or self.rate_limit.window_sec <= 0:
            raise ConfigError("rateLimit requires max >= 1 and windowSeconds > 0")
        for program in self.allowed_programs:
            try:
                Pubkey.from_string(program)
            except Exception as e:
                raise ConfigError(f"Invalid program id in allowedPrograms: {program}") from e

    @property
    def allowed_program_keys(self) -> frozenset[Pubkey]:
        return frozenset(Pubkey.from_string(p) for p in self.allowed_programs)


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a JSON object")
    return data


def settings_from_dict(raw: dict[str, Any], **overrides: Any) -> RelaySettings:
    """Build settings from config.json-style keys. Keyword overrides win (used by tests and main)."""
    kwargs: dict[str, Any] = {}
    if "maxSignatures" in raw:
        kwargs["max_signatures"] = int(raw["maxSignatures"])
    if "lamportsPerSignature" in raw:
        kwargs["lamports_per_signature"] = int(raw["lamportsPerSignature"])
    kwargs["return_signature"] = parse_return_signature(raw.get("returnSignature"))
    if "allowedPrograms" in raw:
        kwargs["allowed_programs"] = tuple(str(p).strip() for p in raw["allowedPrograms"] or [])
    if "allowUnsignedSecondary" in raw:
        kwargs["allow_unsigned_secondary"] = bool(raw["allowUnsignedSecondary"])
    if "enforceFeeCeiling" in raw:
        kwargs["enforce_fee_ceiling"] = bool(raw["enforceFeeCeiling"])
    if "duplicateTtlSeconds" in raw:
        kwargs["duplicate_ttl_sec"] = float(raw["duplicateTtlSeconds"])
    if "corsOrigins" in raw:
        kwargs["cors_origins"] = tuple(str(o) for o in raw["corsOrigins"] or [])
    rate = raw.get("rateLimit")
    if isinstance(rate, dict):
        kwargs["rate_limit"] = RateLimitSettings(
            max_requests=int(rate.get("max", DEFAULT_RATE_LIMIT_MAX)),
            window_sec=float(rate.get("windowSeconds", DEFAULT_RATE_LIMIT_WINDOW_SEC)),
        )
    kwargs.update(overrides)
    return RelaySettings(**kwargs)


def load_settings(path: Path | None = None) -> RelaySettings:
    """Load .env, then the policy JSON at `path` (or FEE_RELAY_CONFIG / config.json)."""
    load_relay_env()
    return settings_from_dict(_read_config_file(path or get_config_path()))


@functools.lru_cache(maxsize=1)
def get_settings() -> RelaySettings:
    """Return the process-wide settings, loaded once."""
    return load_settings()
