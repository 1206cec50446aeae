"""
FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from forest_biomass.config import settings
from forest_biomass.middleware.error_handler import ErrorHandlerMiddleware
from forest_biomass.api.rate_limit import limiter
from forest_biomass.api.v1.routers import parcels, species

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
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Log level: {settings.log_level}")
    if settings.debug:
        logger.warning("Debug mode is enabled; error responses include exception details")
    logger.info(f"Acquisition window: {settings.acquisition_lookback_years} years back, "
                f"season {settings.season_start}..{settings.season_end}, "
                f"max cloud cover {settings.max_cloud_cover}%")
    logger.info(f"Upstream pacing: {settings.request_delay_seconds}s per request, "
                f"{settings.year_delay_seconds}s per year")
    logger.info(f"Rate limit: {settings.rate_limit_requests} requests/minute")

    yield

    # Shutdown
    from forest_biomass.infrastructure.sentinel_hub_client import get_api_client
    logger.info("Shutting down application...")
    client = get_api_client()
    await client.close()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Forest Biomass Analysis API

    This API turns Sentinel-2 imagery of a drawn land parcel into a time series
    of estimated forest biomass.

    ## Features

    - **Acquisition Discovery**: Finds low-cloud summer acquisitions for the last
      few years through the Sentinel Hub catalog
    - **NDVI Rasters**: Fetches a single-band NDVI raster per acquisition, with
      output resolution adapted to the parcel size
    - **Biomass Estimation**: Species growth curves scaled by observed NDVI
    - **Smoothing**: Trailing moving averages of biomass and NDVI
    - **Failure Isolation**: A failed acquisition is skipped, never fatal
    - **Rate Limiting**: Protects the API and the upstream quota

    ## Authentication

    Pass a Copernicus Data Space bearer token in the `Authorization` header; it
    is forwarded unchanged to Sentinel Hub.
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    debug=settings.debug,
    lifespan=lifespan,
)

# Add rate limiter to app state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware with configurable origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add global error handling middleware
app.add_middleware(ErrorHandlerMiddleware, debug=settings.debug)

# Include routers
app.include_router(parcels.router, prefix="/api/v1")
app.include_router(species.router, prefix="/api/v1")


@app.get("/", tags=["health"])
async def root():
    """
    Root endpoint for health check.

    Returns:
        Status message
    """
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
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
        "service": settings.app_name,
    }
