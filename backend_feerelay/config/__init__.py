"""
Configuration management for the FeeRelay service.

Loads the sponsorship policy from config.json and secrets from environment
variables (.env supported). Exposes a single source of truth for all service configuration.
"""

from backend_feerelay.config.settings import (  # noqa: F401
    AllowAll,
    RateLimitSettings,
    RelaySettings,
    ReturnSignature,
    ScoredChallenge,
    SubmitAndConfirm,
    get_settings,
    load_settings,
    settings_from_dict,
)

__all__ = [
    "AllowAll",
    "RateLimitSettings",
    "RelaySettings",
    "ReturnSignature",
    "ScoredChallenge",
    "SubmitAndConfirm",
    "get_settings",
    "load_settings",
    "settings_from_dict",
]
