"""
Environment variable loading for FeeRelay.

- SOLANA_NETWORK: devnet | mainnet (default: devnet)
- SOLANA_RPC_URL: RPC endpoint (read from .env)
- HELIUS_API_KEY: Helius API key (fallback for RPC URL)
- FEE_RELAY_CONFIG: path to the sponsorship policy JSON (default: config.json at project root)
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Project root: config is backend_feerelay/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"
DEFAULT_CONFIG_PATH = _ROOT / "config.json"

DEVNET_RPC_URL = "https://api.devnet.solana.com"
MAINNET_RPC_URL = "https://api.mainnet-beta.solana.com"
HELIUS_MAINNET_URL_TEMPLATE = "https://mainnet.helius-rpc.com/?api-key={key}"
HELIUS_DEVNET_URL_TEMPLATE = "https://devnet.helius-rpc.com/?api-key={key}"


def load_relay_env() -> None:
    """Load .env from project root. Safe to call multiple times; never overrides set vars."""
    load_dotenv(_ENV_PATH)


def get_solana_network() -> str:
    """
    Return SOLANA_NETWORK from env: devnet | mainnet.
    Default: devnet.
    """
    load_relay_env()
    raw = (os.getenv("SOLANA_NETWORK") or os.getenv("SOLANA_CLUSTER") or "devnet").strip().lower()
    if raw in ("mainnet", "mainnet-beta"):
        return "mainnet"
    return "devnet"


def get_solana_rpc_url() -> str:
    """
    Resolve Solana RPC URL from env.
    Order: SOLANA_RPC_URL > HELIUS_API_KEY (network-specific) > devnet/mainnet default.
    """
    load_relay_env()
    url = (os.getenv("SOLANA_RPC_URL") or "").strip()
    if url:
        return url
    network = get_solana_network()
    key = (os.getenv("HELIUS_API_KEY") or "").strip()
    if key:
        if network == "devnet":
            return HELIUS_DEVNET_URL_TEMPLATE.format(key=key)
        return HELIUS_MAINNET_URL_TEMPLATE.format(key=key)
    return DEVNET_RPC_URL if network == "devnet" else MAINNET_RPC_URL


def get_config_path() -> Path:
    """Path of the sponsorship policy JSON (FEE_RELAY_CONFIG or project-root config.json)."""
    load_relay_env()
    raw = (os.getenv("FEE_RELAY_CONFIG") or "").strip()
    return Path(raw) if raw else DEFAULT_CONFIG_PATH


def mask_rpc_url(rpc: str) -> str:
    """Hide API keys embedded in RPC URLs before logging them."""
    if "api-key=" in rpc:
        return rpc.split("api-key=")[0] + "api-key=***"
    return rpc
