"""
Configuration management for Backend Rivora.

Loads settings from environment variables and an optional .env file.
Exposes a single source of truth for network, storage, and ML configuration.
"""

from backend_rivora.config.settings import Settings, get_settings  # noqa: F401

__all__ = ["Settings", "get_settings"]
