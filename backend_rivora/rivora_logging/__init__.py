"""
Structured logging for Backend Rivora.

Use get_logger(__name__) in all modules; short_wallet() for account ids.
"""

from backend_rivora.rivora_logging.logger import (
    bind_request,
    clear_request,
    configure_logging,
    get_logger,
    short_wallet,
)

__all__ = ["bind_request", "clear_request", "configure_logging", "get_logger", "short_wallet"]
