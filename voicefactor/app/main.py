"""FastAPI application for the voicefactor server."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from voicefactor import __version__
from voicefactor.database.session import init_db

from .exception_handlers import register_exception_handlers
from .service_loader import get_service_loader
from .settings import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler.

    Initializes database tables and loads the extractor on startup.
    """
    init_db()
    loader = get_service_loader()
    loader.preload_all()
    yield
    loader.unload_all()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="voicefactor",
        description="Voice biometric second factor",
        version=__version__,
        lifespan=lifespan,
    )

    # Health check endpoint
    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Check server health status."""
        return {"status": "healthy", "version": __version__}

    register_exception_handlers(app)

    from .routers.auth import router as auth_router

    app.include_router(auth_router)

    return app


def run_server() -> None:
    """Run the server using uvicorn."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app()
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )


# Application instance for ASGI servers
app = create_app()
