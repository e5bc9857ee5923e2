"""
Main entrypoint: FastAPI server for Rivora scores.

Model training starts in the background on startup (training-data.json);
scoring falls back to the rule-based scorer until models are loaded.

Env: STELLAR_NETWORK, SOROBAN_CONTRACT_ID, BLOCKCHAIN_STORAGE_METHOD, TRAINING_DATA_PATH, API_HOST, API_PORT, etc.

Equivalent: uvicorn backend_rivora.api_server.app:app --host 0.0.0.0 --port 8000
"""

import os

# Configure structured JSON logging before other imports that may log
from backend_rivora.rivora_logging import configure_logging, get_logger

logger = get_logger("main")


def main() -> None:
    """Run the FastAPI server in the main thread."""
    from backend_rivora.config import get_settings
    from backend_rivora.config.env import print_rivora_startup

    settings = get_settings()
    print_rivora_startup("main")
    # .env may set LOG_LEVEL / LOG_FORMAT
    configure_logging()

    from backend_rivora.api_server.app import app
    import uvicorn

    logger.info("main_server_starting", host=settings.api_host, port=settings.api_port)
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


if __name__ == "__main__":
    main()
