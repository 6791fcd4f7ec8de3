"""
Main entrypoint: FastAPI sponsor server in the main thread.

Settings come from config.json (FEE_RELAY_CONFIG) and env (.env supported):
SECRET_KEYPAIR, SOLANA_RPC_URL, REDIS_URL, RECAPTCHA_SECRET_KEY, API_HOST, API_PORT, LOG_LEVEL.

Equivalent: uvicorn backend_feerelay.api_server.app:app --host 0.0.0.0 --port 8000
"""

import os
import sys

# Configure structured JSON logging before other imports that may log
from backend_feerelay.relay_logging import get_logger

logger = get_logger("main")


def main() -> None:
    """Validate configuration and key material, then serve the API."""
    api_host = os.getenv("API_HOST", "0.0.0.0").strip()
    api_port = int(os.getenv("API_PORT", "8000").strip() or "8000")

    from backend_feerelay.api_server.server import create_app
    from backend_feerelay.config import get_settings
    from backend_feerelay.config.env import mask_rpc_url
    from backend_feerelay.core.exceptions import ConfigError
    from backend_feerelay.ledger import CustodialSigner

    try:
        settings = get_settings()
        signer = CustodialSigner.from_secret(settings.secret_keypair)
        app = create_app(settings, signer=signer)
    except ConfigError as e:
        logger.error("main_config_error", message=str(e))
        sys.exit(1)

    logger.info(
        "main_config_loaded",
        fee_payer=str(signer.pubkey),
        rpc_url=mask_rpc_url(settings.solana_rpc_url),
        max_signatures=settings.max_signatures,
        return_signature=type(settings.return_signature).__name__,
    )

    import uvicorn

    logger.info("main_server_starting", host=api_host, port=api_port)
    uvicorn.run(app, host=api_host, port=api_port, log_level=os.getenv("LOG_LEVEL", "info").lower())


if __name__ == "__main__":
    main()
