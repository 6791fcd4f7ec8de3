"""
Structured logging for the relay: one JSON line per pipeline event.

Every record carries event_type, level, timestamp, the emitting module and,
inside a sponsor request, the message digest bound via structlog contextvars.
Key material and wire payloads are scrubbed by a processor before rendering,
so a careless call site cannot leak SECRET_KEYPAIR or raw transaction bytes.

Env: LOG_LEVEL (default INFO), LOG_FORMAT (json | console, default json).
No backend_feerelay imports here: every other module imports this one.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, Iterable, MutableMapping

import structlog

REDACTED = "***"

# Matched case-insensitively against event keys (and nested dict keys).
SECRET_KEYS = frozenset(
    {
        "secret",
        "secret_key",
        "secret_keypair",
        "private_key",
        "keypair",
        "recaptcha_secret",
        "recaptcha_secret_key",
        "api_key",
    }
)


def _scrub(value: Any, secret_keys: frozenset[str]) -> Any:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return f"<{len(value)} bytes>"
    if isinstance(value, dict):
        return {
            k: REDACTED if str(k).lower() in secret_keys else _scrub(v, secret_keys)
            for k, v in value.items()
        }
    return value


def redact_secrets(secret_keys: Iterable[str] = SECRET_KEYS):
    """
    Build a processor that masks secret-bearing keys and collapses binary values.

    Raw wire bytes become "<N bytes>"; the digest is what identifies a request.
    """
    keys = frozenset(k.lower() for k in secret_keys)

    def processor(logger: Any, method_name: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
        for key in list(event_dict):
            if key.lower() in keys:
                event_dict[key] = REDACTED
            else:
                event_dict[key] = _scrub(event_dict[key], keys)
        return event_dict

    return processor


def _rename_event(logger: Any, method_name: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """structlog's 'event' becomes event_type; message mirrors it for log shippers."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    if "message" not in event_dict and "event_type" in event_dict:
        event_dict["message"] = str(event_dict["event_type"])
    return event_dict


def build_processors(log_format: str = "json") -> list[Any]:
    renderer: Any
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        redact_secrets(),
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        _rename_event,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        renderer,
    ]


def configure_logging(level: str | None = None, log_format: str | None = None) -> None:
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).strip().upper()
    fmt = (log_format or os.getenv("LOG_FORMAT", "json")).strip().lower()
    structlog.configure(
        processors=build_processors(fmt),
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level_name, logging.INFO)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_logging()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Module logger bound with logger=name.

        logger = get_logger(__name__)
        logger.info("sponsor_rejected", kind="policy", reason="invalid fee payer")
    """
    return structlog.get_logger(name).bind(logger=name)
