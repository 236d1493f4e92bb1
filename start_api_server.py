#!/usr/bin/env python3
"""
Start the wallbox bridge API server together with the wallbox monitoring sweep.
"""

import uvicorn
from loguru import logger

from wallbox_bridge import config

if __name__ == "__main__":
    logger.info("Starting wallbox bridge API server...")
    logger.info(f"REST API will be available at: http://localhost:{config.API_PORT}")
    logger.info(f"API documentation: http://localhost:{config.API_PORT}/docs")
    if config.ENABLE_CFOS_MOCK_ENDPOINT:
        logger.info(f"cFos mock endpoint: http://localhost:{config.API_PORT}/api/cfos-mock/cnf")

    uvicorn.run(
        "wallbox_bridge.api_server:app",
        host=config.API_HOST,
        port=config.API_PORT,
        reload=True,
        log_level="info",
    )
