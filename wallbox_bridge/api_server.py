"""
FastAPI REST API server for the wallbox bridge.
Serves the admin API and runs the wallbox monitoring sweep in the background.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from wallbox_bridge import config
from wallbox_bridge.api import cfos_mock
from wallbox_bridge.api.routes import router
from wallbox_bridge.clients.cfos import get_cfos_client
from wallbox_bridge.clients.cobot import get_cobot_client
from wallbox_bridge.services.charging_control import get_charging_control_service
from wallbox_bridge.services.charging_sessions import ChargingSessionService
from wallbox_bridge.services.wallbox_monitor import WallboxMonitor
from wallbox_bridge.storage import get_space_settings_store, get_storage

# Configure logging
logger.add(
    str(config.LOG_DIR / "wallbox_bridge.log"),
    rotation="1 day",
    retention="7 days",
    level=config.LOG_LEVEL,
    format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}",
)


# Create FastAPI app
app = FastAPI(
    title="Wallbox Bridge API",
    description="Charging sessions on cFos wallboxes, billed through Cobot bookings",
    version="1.0.0",
)

# Add CORS middleware for the admin UI
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router)

if config.ENABLE_CFOS_MOCK_ENDPOINT:
    logger.warning("cFos mock endpoint enabled, do not use in production")
    app.include_router(cfos_mock.router)


# Background reconciliation sweep
wallbox_monitor = None


@app.get("/health")
async def health_check():
    """Health check for monitoring."""
    status = wallbox_monitor.get_status() if wallbox_monitor else {"is_running": False}
    return {"status": "healthy", "monitor": status}


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    global wallbox_monitor
    logger.info("Starting wallbox bridge API server...")

    wallbox_monitor = WallboxMonitor(
        get_cfos_client(),
        ChargingSessionService(get_cobot_client()),
        get_charging_control_service(),
        get_space_settings_store(),
    )
    wallbox_monitor.start()

    logger.info("API server startup complete")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    logger.info("Shutting down wallbox bridge API server...")

    if wallbox_monitor:
        await wallbox_monitor.stop()

    await get_storage().close()
    await get_cfos_client().aclose()
    await get_cobot_client().aclose()

    logger.info("API server shutdown complete")


if __name__ == "__main__":
    import uvicorn

    logger.info("Starting wallbox bridge API server with uvicorn...")
    uvicorn.run(
        "wallbox_bridge.api_server:app",
        host=config.API_HOST,
        port=config.API_PORT,
        log_level="info",
    )
