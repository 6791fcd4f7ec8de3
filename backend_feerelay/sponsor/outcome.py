"""
Outcome reporter: every pipeline result becomes {status, signature} or {status, message}.

Clients only ever see a single-line message from the stable taxonomy; stack-level
detail goes to the operator log.
"""

from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, Field

from backend_feerelay.core.exceptions import ErrorKind, SponsorError
from backend_feerelay.relay_logging import get_logger

logger = get_logger(__name__)

INTERNAL_ERROR_MESSAGE = "internal error"
HTTP_OK = 200
HTTP_CLIENT_ERROR = 400


class SponsorOk(BaseModel):
    status: Literal["ok"] = "ok"
    signature: str = Field(..., description="Base58 fee payer signature (transaction id)")


class SponsorRejected(BaseModel):
    status: Literal["error"] = "error"
    message: str = Field(..., description="Stable, single-line rejection reason")


SponsorResponse = Union[SponsorOk, SponsorRejected]


def _single_line(text: str) -> str:
    return " ".join(text.split())


def report_success(signature: str) -> SponsorOk:
    return SponsorOk(signature=signature)


def report_failure(error: BaseException) -> SponsorRejected:
    """
    Map an exception to the client-facing rejection and log it for operators.

    Call from inside the `except` block so unexpected faults keep their traceback.
    """
    if isinstance(error, SponsorError):
        message = _single_line(error.message)
        if error.kind is ErrorKind.INTERNAL:
            logger.error("sponsor_internal_fault", kind=error.kind.value, reason=message)
        else:
            logger.info("sponsor_rejected", kind=error.kind.value, reason=message)
        return SponsorRejected(message=message)
    logger.exception("sponsor_internal_fault", kind=ErrorKind.INTERNAL.value, error_type=type(error).__name__)
    return SponsorRejected(message=INTERNAL_ERROR_MESSAGE)


def http_status(response: SponsorResponse) -> int:
    return HTTP_OK if isinstance(response, SponsorOk) else HTTP_CLIENT_ERROR
