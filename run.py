#!/usr/bin/env python3
"""
Credit Module Entry Point

Starts the FastAPI server with host and port taken from configuration.
"""

import sys

from credit_module.config import get_config
from credit_module.logging_config import setup_logging
from credit_module.api import run_server


if __name__ == "__main__":
    config = get_config()
    logger = setup_logging(level=config.log_level, log_format=config.log_format)

    logger.info(f"Starting credit module API at http://{config.api_host}:{config.api_port}")
    logger.info(f"Storage: {config.database_url}")

    try:
        run_server(
            host=config.api_host,
            port=config.api_port,
            debug=config.api_debug
        )
    except KeyboardInterrupt:
        logger.info("Shutting down credit module")
    except Exception as e:
        logger.error(f"Error starting server: {e}")
        sys.exit(1)
