#!/usr/bin/env python3
"""FastAPI server runner."""

import os

import structlog
import uvicorn

from yield_core.api.app import app, get_config
from yield_core.logging.setup import setup_logging

logger = structlog.get_logger()


def main():
    """Run the FastAPI server."""
    cfg = get_config()
    setup_logging(level=cfg.logging.level, log_format=cfg.logging.format)
    port = int(os.environ.get("YIELD_API_PORT", "8000"))

    logger.info("Starting FastAPI server", port=port)

    try:
        uvicorn.run(
            app,
            host="0.0.0.0",
            port=port,
            log_config=None,  # Use our structlog setup
        )
    except Exception as e:
        logger.error("Failed to start server", error=str(e))
        raise


if __name__ == "__main__":
    main()
