"""FastAPI application entry point for BloodLink."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bloodlink import __version__
from bloodlink.api import routes
from bloodlink.api.routes import router
from bloodlink.config import get_settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    # Startup
    logger.info(f"Starting BloodLink Server v{__version__} on port {settings.port}")
    logger.info(f"Debug mode: {settings.debug}")
    routes.get_event_handler()

    yield

    # Shutdown
    handler = routes.get_event_handler()
    await handler.lifecycle.drain()
    logger.info("Shutting down BloodLink Server")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="BloodLink",
        description="Hybrid live/push dispatch of urgent blood donation alerts",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )

    # Mobile clients connect from anywhere
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.include_router(router)

    return app


# Create app instance for uvicorn
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "bloodlink.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
