"""
FastAPI server — sponsor endpoint and health probe.

POST /api/sponsor runs the sponsor pipeline on a text-encoded wire transaction.
GET /api/health reports RPC reachability and the fee payer address.
Config via config.json + env (see backend_feerelay.config).
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from solders.pubkey import Pubkey

from backend_feerelay import __version__
from backend_feerelay.api_server.middleware import FixedWindowRateLimiter, RateLimitMiddleware, client_ip
from backend_feerelay.config import RelaySettings, get_settings
from backend_feerelay.ledger import CustodialSigner, LedgerClient, SolanaLedger
from backend_feerelay.relay_logging import get_logger
from backend_feerelay.sponsor import SponsorPipeline
from backend_feerelay.sponsor.outcome import http_status

logger = get_logger(__name__)

MISSING_TRANSACTION_MESSAGE = "request should contain transaction"


# -----------------------------------------------------------------------------
# Request / response models
# -----------------------------------------------------------------------------

class SponsorRequest(BaseModel):
    """POST /api/sponsor body. Parsed by hand from the raw JSON so every malformed body is a 400."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", strict=True)

    transaction: str = Field(..., min_length=1, description="Wire transaction, base58 (default) or base64")
    encoding: str = Field("base58", description="base58 | base64")
    captcha_token: str | None = Field(None, alias="captchaToken", description="Anti-abuse challenge token")


def _missing_transaction() -> JSONResponse:
    return JSONResponse(status_code=400, content={"status": "error", "message": MISSING_TRANSACTION_MESSAGE})


async def _malformed_body_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("api_malformed_body", path=request.url.path, errors=len(exc.errors()))
    return _missing_transaction()


class RpcHealth(BaseModel):
    connected: bool
    blockheight: int | None = None
    error: str | None = None


class HealthResponse(BaseModel):
    status: str = Field(..., description="healthy | unhealthy")
    timestamp: str
    feePayer: str
    rpc: RpcHealth


# -----------------------------------------------------------------------------
# Relay state: built eagerly when collaborators are injected, else at startup
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class RelayState:
    pipeline: SponsorPipeline
    ledger: LedgerClient
    fee_payer: Pubkey


def build_relay_state(
    settings: RelaySettings,
    *,
    signer: CustodialSigner | None = None,
    ledger: LedgerClient | None = None,
    pipeline: SponsorPipeline | None = None,
) -> RelayState:
    if signer is None:
        signer = CustodialSigner.from_secret(settings.secret_keypair)
    if ledger is None:
        ledger = SolanaLedger(settings.solana_rpc_url)
    if pipeline is None:
        pipeline = SponsorPipeline.from_settings(settings, signer=signer, ledger=ledger)
    return RelayState(pipeline=pipeline, ledger=ledger, fee_payer=signer.pubkey)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if app.state.relay is None:
        app.state.relay = build_relay_state(app.state.settings)
    logger.info("api_relay_ready", fee_payer=str(app.state.relay.fee_payer))
    yield
    logger.info("api_relay_stopped")


def _relay(request: Request) -> RelayState:
    relay = request.app.state.relay
    if relay is None:
        # served without lifespan (e.g. bare TestClient); build on first use
        relay = build_relay_state(request.app.state.settings)
        request.app.state.relay = relay
    return relay


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------

router = APIRouter(prefix="/api")


@router.post("/sponsor")
def sponsor_transaction(request: Request, payload: Any = Body(None)) -> JSONResponse:
    """
    Sponsor a transaction whose fee payer is the relay's key.

    200 {status: "ok", signature} on success; 400 {status: "error", message} on any rejection.
    """
    try:
        body = SponsorRequest.model_validate(payload)
    except ValidationError:
        return _missing_transaction()
    relay = _relay(request)
    result = relay.pipeline.handle_text(
        body.transaction,
        encoding=body.encoding,
        challenge=body.captcha_token,
        remote_ip=client_ip(request),
    )
    return JSONResponse(status_code=http_status(result), content=result.model_dump())


@router.get("/health", response_model=HealthResponse)
def health(request: Request) -> JSONResponse:
    """Readiness probe: RPC reachable (current block height) and fee payer address."""
    relay = _relay(request)
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        height = relay.ledger.get_block_height()
    except Exception as e:
        logger.warning("health_rpc_error", error=str(e))
        resp = HealthResponse(
            status="unhealthy",
            timestamp=timestamp,
            feePayer=str(relay.fee_payer),
            rpc=RpcHealth(connected=False, error=" ".join(str(e).split()) or type(e).__name__),
        )
        return JSONResponse(status_code=503, content=resp.model_dump(exclude_none=True))
    resp = HealthResponse(
        status="healthy",
        timestamp=timestamp,
        feePayer=str(relay.fee_payer),
        rpc=RpcHealth(connected=True, blockheight=height),
    )
    return JSONResponse(status_code=200, content=resp.model_dump(exclude_none=True))


# -----------------------------------------------------------------------------
# App factory
# -----------------------------------------------------------------------------

def create_app(
    settings: RelaySettings | None = None,
    *,
    signer: CustodialSigner | None = None,
    ledger: LedgerClient | None = None,
    pipeline: SponsorPipeline | None = None,
) -> FastAPI:
    """Build the ASGI app. Passing a signer builds the relay immediately (tests, embedding)."""
    settings = settings or get_settings()
    app = FastAPI(
        title="Backend FeeRelay API",
        description="Sponsors Solana transaction fees with the relay's custodial fee payer.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.relay = None
    if signer is not None:
        app.state.relay = build_relay_state(settings, signer=signer, ledger=ledger, pipeline=pipeline)

    limiter = FixedWindowRateLimiter(settings.rate_limit.max_requests, settings.rate_limit.window_sec)
    app.add_middleware(RateLimitMiddleware, limiter=limiter)
    # added last so it wraps the rate limiter and answers preflight first
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, _malformed_body_handler)
    app.include_router(router, tags=["Sponsor"])
    return app
