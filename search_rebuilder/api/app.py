"""Main FastAPI application for Search Rebuilder."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from search_rebuilder import __version__
from search_rebuilder.api.health import router as health_router
from search_rebuilder.api.middleware import setup_middleware
from search_rebuilder.api.rebuild import router as rebuild_router
from search_rebuilder.core.config import RebuildConfig, settings
from search_rebuilder.core.errors import ConfigurationError
from search_rebuilder.observability.tracing import setup_tracing as setup_base_tracing

# Configure logging with consistent format
LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format=LOG_FORMAT,
    datefmt=LOG_DATE_FORMAT,
)

logger = logging.getLogger(__name__)


def setup_tracing(app: FastAPI) -> None:
    """Initialize OpenTelemetry tracing if an OTLP endpoint is configured."""
    if not setup_base_tracing(settings.app_name, __version__):
        return

    # Instrument FastAPI (exclude health/docs paths)
    excluded = ",".join(
        [
            r"^/$",
            r"^/api/v1/health$",
            r"^/docs$",
            r"^/openapi\.json$",
        ]
    )
    FastAPIInstrumentor.instrument_app(app, excluded_urls=excluded)
    logger.info("OpenTelemetry tracing initialized (FastAPI + libs instrumented)")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan context manager for startup and shutdown."""
    logger.info(f"Starting up {settings.app_name}...")

    try:
        config = RebuildConfig.from_settings()
        logger.info(f"Source mode: {config.source_mode.value}")
        logger.info(
            f"Storage: {config.storage_backend.value} container {config.storage_container}"
        )
        logger.info(f"Search endpoint: {config.search_endpoint or 'not configured'}")
        logger.info("Startup completed successfully")
    except ConfigurationError as e:
        # Keep serving so health checks can report the problem
        logger.error(f"Startup configuration invalid: {e}")

    yield

    logger.info("Shutting down FastAPI application...")


app = FastAPI(
    title=settings.app_name,
    description="Rebuilds a managed search index from staged source documents",
    version=__version__,
    lifespan=lifespan,
    debug=settings.debug,
)

# Setup tracing (no-op if not configured)
setup_tracing(app)

setup_middleware(app)


@app.get("/", response_class=PlainTextResponse)
@app.head("/")
async def root_health_check():
    """Simple, fast health check for load balancers - no external dependencies."""
    return f"{settings.app_name} is running!"


app.include_router(health_router, prefix="/api/v1", tags=["Health"])
app.include_router(rebuild_router, prefix="/api/v1", tags=["Rebuild"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "search_rebuilder.api.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
