"""
FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from citrus_farms.config import Settings, settings
from citrus_farms.infrastructure.repository import FarmRepository
from citrus_farms.middleware.error_handler import ErrorHandlerMiddleware
from citrus_farms.api.v1.routers import farms

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Handles startup and shutdown events using the modern FastAPI pattern.
    """
    config: Settings = app.state.settings

    # Startup
    logger.info(f"Starting {config.app_name} v{config.app_version}")
    logger.info(f"Log level: {config.log_level}")
    logger.info(f"Storage backend: {config.storage_backend}")
    if config.rate_limit_enabled:
        logger.info(f"Rate limit: {config.rate_limit_requests} requests/minute")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    repository: Optional[FarmRepository] = app.state.repository
    if repository is not None:
        repository.close()
    logger.info("Shutdown complete")


def create_app(
    config: Optional[Settings] = None,
    repository: Optional[FarmRepository] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Settings to run with (defaults to the environment)
        repository: Gateway to use instead of the configured backend

    Returns:
        Configured FastAPI application
    """
    config = config or settings

    app = FastAPI(
        title=config.app_name,
        version=config.app_version,
        debug=config.debug,
        description="""
    Citrus Farm Records API

    Record management for citrus farms: farm and plot identity, facilities,
    support programs, service subscriptions, corporate contracts,
    consultation logs and year-over-year yield data.

    ## Features

    - **Farm CRUD**: Whole-record upserts; deletes cascade to plots and
      every plot-owned record
    - **Search & Filter**: Name/contact search plus service, support program,
      project and alternate-bearing filters
    - **Backup & Restore**: JSON backups; restores accept every historical
      record shape and migrate it on import
    - **Spreadsheet Export**: Summary sheet with links to one detail sheet
      per farm, or a contacts-only list
    - **Interchangeable Storage**: In-memory, JSON file, relational database
      or a remote farm records API
    """,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = config
    app.state.repository = repository

    # Rate limiter
    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[f"{config.rate_limit_requests}/minute"],
        enabled=config.rate_limit_enabled,
    )
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # Add CORS middleware with configurable origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add global error handling middleware
    app.add_middleware(ErrorHandlerMiddleware)

    # Include routers
    app.include_router(farms.router, prefix="/api/v1")

    @app.get("/", tags=["health"])
    async def root():
        """
        Root endpoint for health check.

        Returns:
            Status message
        """
        return {
            "status": "healthy",
            "service": config.app_name,
            "version": config.app_version,
        }

    @app.get("/health", tags=["health"])
    async def health_check():
        """
        Health check endpoint.

        Returns:
            Health status
        """
        return {
            "status": "healthy",
            "service": config.app_name,
        }

    return app


# Create FastAPI application
app = create_app()
