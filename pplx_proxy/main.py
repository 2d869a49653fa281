"""Main FastAPI application for pplx-proxy."""

import logging
import socket

from fastapi import FastAPI

from .api.app import register_routes
from .config_loader import load_config
from .core import ModelTable, SessionPool
from .core.failover import FailoverController
from .core.registry import set_controller
from .jobs import SessionRefresher
from .logging import mask_token, setup_logging
from .settings import Settings

# Initialize logging
logger = setup_logging()

# Load configuration
config = load_config()
settings = Settings.from_config(config)
setup_logging(settings.log_level)

pool = SessionPool(settings.sessions)
models = ModelTable(settings.model_aliases)
controller = FailoverController(pool, settings, models)
refresher = SessionRefresher(pool, settings)
logger.info(f"Failover controller initialized with {len(pool)} configured sessions")

# Set the controller in the registry for routes to access
set_controller(controller)

# Server configuration - environment variables take priority over config file
SERVER_HOST = settings.host
SERVER_PORT = settings.port

# Create FastAPI application
app = FastAPI(title="pplx-proxy")
logger.info("FastAPI application created")


@app.on_event("startup")
async def startup_event():
    """Handle application startup."""
    logger.info("pplx-proxy server starting up...")
    logger.info("Configured bind address %s:%s", SERVER_HOST, SERVER_PORT)
    if SERVER_HOST == "0.0.0.0":
        hostname = socket.gethostname()
        logger.info("Reachable on local network at http://%s:%s", hostname, SERVER_PORT)

    refresher.load_state()
    for index, session in enumerate(pool.snapshot()):
        logger.info(f"  - session {index}: {mask_token(session.token)}")
    if not settings.api_key:
        logger.warning("No api_key configured; /v1 endpoints are unauthenticated")
    refresher.start()
    logger.info("pplx-proxy server ready to handle requests")


@app.on_event("shutdown")
async def shutdown_event():
    """Handle application shutdown."""
    await refresher.stop()


# Register routes
register_routes(app)


def create_app() -> FastAPI:
    """Factory function to create the FastAPI application.

    Returns:
        The configured FastAPI application instance.
    """
    return app


def run() -> None:
    import uvicorn

    uvicorn.run(app, host=SERVER_HOST, port=SERVER_PORT)


if __name__ == "__main__":
    run()


# Export for external use
__all__ = ["app", "create_app", "controller", "config", "settings", "SERVER_HOST", "SERVER_PORT"]
