"""
API router for parcel biomass endpoints.
"""
import logging
from fastapi import APIRouter, Request

from forest_biomass.api.dependencies import AccessTokenDep, BiomassServiceDep
from forest_biomass.api.rate_limit import ANALYSIS_RATE_LIMIT, limiter
from forest_biomass.api.v1.models.requests import BiomassAnalysisRequest
from forest_biomass.api.v1.models.responses import (
    BiomassSeriesResponse,
    ExportTableResponse,
)
from forest_biomass.domain.models import BiomassSeries
from forest_biomass.services.domain.export import export_headers, series_to_rows

logger = logging.getLogger(__name__)


router = APIRouter(
    prefix="/parcels",
    tags=["parcels"],
)

ANALYSIS_RESPONSES = {
    400: {
        "description": "Invalid parcel geometry or unknown species",
    },
    401: {
        "description": "Missing bearer credential",
    },
    429: {
        "description": "Rate limit exceeded",
    },
    500: {
        "description": "Internal server error",
    },
}


async def _run_analysis(
    payload: BiomassAnalysisRequest,
    biomass_service,
    access_token,
) -> BiomassSeries:
    """Run the analysis; run-fatal errors are mapped by ErrorHandlerMiddleware."""
    return await biomass_service.analyze_parcel(
        parcel=payload.to_parcel(),
        base_age=payload.base_age,
        access_token=access_token,
    )


@router.post(
    "/biomass",
    response_model=BiomassSeriesResponse,
    summary="Estimate a biomass time series for a parcel",
    description="""
    Build a forest biomass time series for a drawn parcel.

    This endpoint:
    1. Discovers low-cloud Sentinel-2 acquisitions for each summer season
    2. Fetches an NDVI raster per acquisition date, sized to the parcel footprint
    3. Decodes each raster into index statistics
    4. Converts the mean index and stand age into biomass with a species growth curve
    5. Sorts and smooths the series with a trailing moving average

    Failed acquisitions are skipped and listed; quality warnings are returned
    as advisories. A run without any usable acquisition returns status `no_data`.
    """,
    responses=ANALYSIS_RESPONSES,
)
@limiter.limit(ANALYSIS_RATE_LIMIT)
async def analyze_parcel_biomass(
    request: Request,
    payload: BiomassAnalysisRequest,
    biomass_service: BiomassServiceDep,
    access_token: AccessTokenDep,
) -> BiomassSeries:
    """
    Estimate the biomass time series for a parcel.

    Args:
        request: Incoming request (used by the rate limiter)
        payload: Parcel geometry, species and stand age
        biomass_service: Biomass service (injected dependency)
        access_token: Bearer credential from the Authorization header

    Returns:
        Finalized biomass series
    """
    return await _run_analysis(payload, biomass_service, access_token)


@router.post(
    "/biomass/rows",
    response_model=ExportTableResponse,
    summary="Biomass time series as export rows",
    description="Same analysis as /parcels/biomass, flattened into formatted table rows.",
    responses=ANALYSIS_RESPONSES,
)
@limiter.limit(ANALYSIS_RATE_LIMIT)
async def export_parcel_biomass(
    request: Request,
    payload: BiomassAnalysisRequest,
    biomass_service: BiomassServiceDep,
    access_token: AccessTokenDep,
) -> ExportTableResponse:
    """
    Estimate the biomass time series and flatten it into rows.

    Args:
        request: Incoming request (used by the rate limiter)
        payload: Parcel geometry, species and stand age
        biomass_service: Biomass service (injected dependency)
        access_token: Bearer credential from the Authorization header

    Returns:
        ExportTableResponse with headers and formatted rows
    """
    series = await _run_analysis(payload, biomass_service, access_token)
    return ExportTableResponse(
        status=series.status.value,
        columns=export_headers(),
        rows=series_to_rows(series),
    )
