"""Relay Backend Application.

This is the main entry point for the relay service: an ephemeral,
session-scoped file relay.  A client obtains a short session token, then
uploads and downloads client-encrypted blobs under it.

Modules:
    - config: YAML settings (storage roots, token generation, logging)
    - storage: session allocation, file store, metadata ledger, activity log
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from relay.config import get_config
from relay.storage.router import router as relay_router
from relay.storage.service import RelayService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Silence verbose third-party loggers.
for _noisy in (
    "httpx",
    "httpcore",
    "multipart",
    "python_multipart",
):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config = get_config()

    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    service = RelayService.get_instance(config)
    logger.info(
        "Relay storage ready: uploads=%s logs=%s",
        service.sessions.uploads_dir,
        config.storage.logs_dir,
    )
    logger.info(f"Server running on http://{config.server.host}:{config.server.port}")

    yield  # Application runs here

    # Shutdown
    logger.info("Application shutdown complete")


# Create FastAPI application with metadata
app = FastAPI(
    title="Relay API",
    description="Ephemeral session-scoped file relay",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(relay_router)


@app.get("/health")
async def health() -> dict:
    """Health check endpoint.

    Returns:
        dict: Status object indicating the server is running.
    """
    return {"status": "ok"}
