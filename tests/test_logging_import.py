"""
Test that relay_logging can be imported without circular import and logger works.
"""

from __future__ import annotations


def test_logging_import():
    """Import get_logger from relay_logging and use the logger."""
    from backend_feerelay.relay_logging import get_logger

    logger = get_logger("test")
    assert logger is not None
    assert hasattr(logger, "info")
    assert hasattr(logger, "warning")
    assert hasattr(logger, "exception")
    # Smoke test: call info (should not raise)
    logger.info("test_message", digest="transaction/abc", kind="policy")


def test_event_normalization():
    from backend_feerelay.relay_logging.logger import _rename_event

    out = _rename_event(None, "info", {"event": "sponsor_rejected", "reason": "invalid fee payer"})
    assert out["event_type"] == "sponsor_rejected"
    assert out["message"] == "sponsor_rejected"
    assert "event" not in out


def test_secret_keys_are_masked():
    from backend_feerelay.relay_logging.logger import REDACTED, redact_secrets

    scrub = redact_secrets()
    out = scrub(
        None,
        "info",
        {
            "event": "config_loaded",
            "SECRET_KEYPAIR": "4Nd1m...secret",
            "secret_keypair": "[1,2,3]",
            "settings": {"recaptcha_secret": "captcha", "max_signatures": 2},
            "fee_payer": "Fee111",
        },
    )
    assert out["SECRET_KEYPAIR"] == REDACTED
    assert out["secret_keypair"] == REDACTED
    assert out["settings"] == {"recaptcha_secret": REDACTED, "max_signatures": 2}
    assert out["fee_payer"] == "Fee111"


def test_wire_bytes_are_collapsed():
    from backend_feerelay.relay_logging.logger import redact_secrets

    out = redact_secrets()(None, "info", {"event": "x", "raw": b"\x01" * 200, "nested": {"tx": bytearray(3)}})
    assert out["raw"] == "<200 bytes>"
    assert out["nested"] == {"tx": "<3 bytes>"}


def test_rendered_line_never_contains_secret():
    import json

    import structlog

    from backend_feerelay.relay_logging.logger import build_processors

    log = structlog.wrap_logger(
        structlog.ReturnLogger(),
        processors=build_processors("json"),
        wrapper_class=structlog.BoundLogger,
    )
    line = log.warning("custodial_keypair_load_failed", private_key="5secretkey", source="base58")
    record = json.loads(line)
    assert "5secretkey" not in line
    assert record["event_type"] == "custodial_keypair_load_failed"
    assert record["level"] == "warning"
    assert "timestamp" in record
