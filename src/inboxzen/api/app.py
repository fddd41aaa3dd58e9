"""
FastAPI application for the conversation classification service.

Exposes classification, the category cache, the store channel and the
settings surface over one session opened at startup.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import structlog

from ..version import API_VERSION
from ..config import settings
from ..logging_config import setup_logging
from ..pipeline.session import open_session
from .routes import health, version, classification, cache
from .routes import settings as settings_routes
from .middleware import setup_logging_middleware, setup_error_handling_middleware

# Setup logging on module import
setup_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Open the session at startup, release remote clients at shutdown.
    """
    if getattr(app.state, "session", None) is None:
        app.state.session = open_session()
    logger.info(
        "service_starting",
        version=API_VERSION,
        log_level=settings.log_level,
        store_url=settings.store_url,
        remote_enabled=app.state.session.classifier.remote_enabled,
    )
    yield
    await app.state.session.aclose()
    logger.info("service_stopped")


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="InboxZen - Conversation Classification",
        description="Incremental classification of conversation snippets into fixed categories",
        version=API_VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Custom middleware (order matters)
    setup_error_handling_middleware(app)
    setup_logging_middleware(app)

    app.include_router(health.router, tags=["Health"])
    app.include_router(version.router, prefix="/api/v1", tags=["Version"])
    app.include_router(classification.router, tags=["Classification"])
    app.include_router(cache.router, tags=["Cache"])
    app.include_router(settings_routes.router, tags=["Settings"])

    return app


# Create app instance
app = create_app()


def main() -> None:
    """
    Entry point for running the API server directly.

    For development use. In production, use uvicorn directly.
    """
    import uvicorn

    uvicorn.run(
        "inboxzen.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
