"""
Environment variable loading and validation for Rivora.

- STELLAR_NETWORK: testnet | mainnet (default: testnet)
- STELLAR_HORIZON_URL / STELLAR_TESTNET_HORIZON_URL: Horizon endpoints
- SOROBAN_RPC_URL: Soroban RPC endpoint (network default when unset)
- SOROBAN_CONTRACT_ID: deployed scores contract (C... strkey or 64-char hex)
- BLOCKCHAIN_STORAGE_METHOD: soroban | data-entry (default: data-entry)
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from stellar_sdk import Network, StrKey

_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"

MAINNET_HORIZON_URL = "https://horizon.stellar.org"
TESTNET_HORIZON_URL = "https://horizon-testnet.stellar.org"
MAINNET_SOROBAN_RPC_URL = "https://soroban.stellar.org"
TESTNET_SOROBAN_RPC_URL = "https://soroban-testnet.stellar.org"

STORAGE_SOROBAN = "soroban"
STORAGE_DATA_ENTRY = "data-entry"

DEFAULT_TRAINING_DATA_PATH = _ROOT / "training-data.json"


def load_rivora_env() -> None:
    """Load .env from project root. Safe to call multiple times."""
    load_dotenv(_ENV_PATH)


def get_stellar_network() -> str:
    """
    Return STELLAR_NETWORK from env: testnet | mainnet.
    'public' and 'pubnet' are accepted as mainnet. Default: testnet.
    """
    load_rivora_env()
    raw = (os.getenv("STELLAR_NETWORK") or "testnet").strip().lower()
    if raw in ("mainnet", "public", "pubnet"):
        return "mainnet"
    return "testnet"


def is_testnet() -> bool:
    return get_stellar_network() == "testnet"


def get_network_name(network: str | None = None) -> str:
    """Wire name used in drafts: 'testnet' or 'public'."""
    network = network or get_stellar_network()
    return "testnet" if network == "testnet" else "public"


def get_network_passphrase(network: str | None = None) -> str:
    """
    Passphrase for a network name. Accepts testnet | mainnet | public; anything
    that is not a testnet name resolves to the public network.
    """
    network = (network or get_stellar_network()).strip().lower()
    if network == "testnet":
        return Network.TESTNET_NETWORK_PASSPHRASE
    return Network.PUBLIC_NETWORK_PASSPHRASE


def get_horizon_url(network: str | None = None) -> str:
    """Resolve Horizon URL for the network (explicit env overrides defaults)."""
    load_rivora_env()
    network = network or get_stellar_network()
    if network == "testnet":
        return (os.getenv("STELLAR_TESTNET_HORIZON_URL") or TESTNET_HORIZON_URL).strip()
    return (os.getenv("STELLAR_HORIZON_URL") or MAINNET_HORIZON_URL).strip()


def get_soroban_rpc_url(network: str | None = None) -> str:
    """Resolve Soroban RPC URL: SOROBAN_RPC_URL > network default."""
    load_rivora_env()
    url = (os.getenv("SOROBAN_RPC_URL") or "").strip()
    if url:
        return url
    network = network or get_stellar_network()
    return TESTNET_SOROBAN_RPC_URL if network == "testnet" else MAINNET_SOROBAN_RPC_URL


def normalize_contract_id(raw: str) -> str:
    """
    Return a C... contract strkey. 64-char hex contract hashes are converted;
    anything else must already be a valid contract strkey.
    """
    raw = (raw or "").strip()
    if not raw:
        return ""
    if len(raw) == 64:
        try:
            return StrKey.encode_contract(bytes.fromhex(raw))
        except ValueError:
            pass
    if not StrKey.is_valid_contract(raw):
        raise ValueError(f"Invalid SOROBAN_CONTRACT_ID: {raw[:12]}...")
    return raw


def get_contract_id() -> str:
    """Return SOROBAN_CONTRACT_ID (normalized) or empty string when unset."""
    load_rivora_env()
    return normalize_contract_id(os.getenv("SOROBAN_CONTRACT_ID") or "")


def get_storage_method() -> str:
    """Return BLOCKCHAIN_STORAGE_METHOD: soroban | data-entry (default data-entry)."""
    load_rivora_env()
    raw = (os.getenv("BLOCKCHAIN_STORAGE_METHOD") or STORAGE_DATA_ENTRY).strip().lower()
    return STORAGE_SOROBAN if raw == STORAGE_SOROBAN else STORAGE_DATA_ENTRY


def get_training_data_path() -> Path:
    load_rivora_env()
    raw = (os.getenv("TRAINING_DATA_PATH") or "").strip()
    return Path(raw) if raw else DEFAULT_TRAINING_DATA_PATH


def print_rivora_startup(script_name: str) -> None:
    """Print network, storage method and Horizon URL at script start."""
    load_rivora_env()
    print(
        f"[rivora] {script_name} | network={get_stellar_network()} "
        f"| storage={get_storage_method()} | horizon={get_horizon_url()}"
    )
