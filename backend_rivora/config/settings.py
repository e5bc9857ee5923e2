"""
Application settings.

Typed settings object built from environment variables (see config/env.py)
for use across scoring, persistence, and the API server.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from backend_rivora.config.env import (
    STORAGE_SOROBAN,
    get_contract_id,
    get_horizon_url,
    get_network_name,
    get_network_passphrase,
    get_soroban_rpc_url,
    get_stellar_network,
    get_storage_method,
    get_training_data_path,
    load_rivora_env,
)


def _optional_int(name: str) -> int | None:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


@dataclass
class Settings:
    """Service configuration (env or explicit)."""

    network: str = field(default_factory=get_stellar_network)
    horizon_url: str = ""
    soroban_rpc_url: str = ""
    contract_id: str = field(default_factory=get_contract_id)
    storage_method: str = field(default_factory=get_storage_method)
    training_data_path: Path = field(default_factory=get_training_data_path)
    training_seed: int | None = field(default_factory=lambda: _optional_int("ML_TRAINING_SEED"))
    api_host: str = field(default_factory=lambda: (os.getenv("API_HOST") or "0.0.0.0").strip())
    api_port: int = field(default_factory=lambda: _optional_int("API_PORT") or 8000)

    def __post_init__(self) -> None:
        if not self.horizon_url:
            self.horizon_url = get_horizon_url(self.network)
        if not self.soroban_rpc_url:
            self.soroban_rpc_url = get_soroban_rpc_url(self.network)

    @property
    def network_name(self) -> str:
        """'testnet' or 'public', as returned in drafts."""
        return get_network_name(self.network)

    @property
    def network_passphrase(self) -> str:
        return get_network_passphrase(self.network)

    @property
    def use_soroban(self) -> bool:
        """Contract storage is attempted only when selected and a contract id is configured."""
        return self.storage_method == STORAGE_SOROBAN and bool(self.contract_id)


def get_settings() -> Settings:
    """Return the current application settings from the environment."""
    load_rivora_env()
    return Settings()
