"""
Infrastructure layer: Sentinel Hub client with retry logic.
"""
import datetime as dt
import logging
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field
import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from forest_biomass.config import settings
from forest_biomass.domain.models import BoundingBox
from forest_biomass.infrastructure.api_constants import (
    SentinelHubConstants,
    SentinelHubEndpoints,
)

logger = logging.getLogger(__name__)


# Pydantic models for API responses
class CatalogItemProperties(BaseModel):
    """Properties of a catalog search item."""
    datetime: str
    cloud_cover: Optional[float] = Field(default=None, alias="eo:cloud_cover")

    model_config = ConfigDict(populate_by_name=True)


class CatalogItem(BaseModel):
    """A single acquisition returned by catalog search."""
    id: Optional[str] = None
    properties: CatalogItemProperties

    @property
    def acquisition_date(self) -> dt.date:
        return dt.date.fromisoformat(self.properties.datetime[:10])


class CatalogSearchResponse(BaseModel):
    """Response from the catalog search endpoint."""
    features: List[CatalogItem] = Field(default_factory=list)


class ExternalAPIError(Exception):
    """Custom exception for Sentinel Hub errors."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class RetryableAPIError(ExternalAPIError):
    """Upstream failure worth retrying (5xx, 429, transport errors)."""
    pass


class SentinelHubClient:
    """
    Client for the Sentinel Hub catalog and process APIs.
    Implements retry logic with exponential backoff.

    The bearer credential is opaque: it is supplied per call and forwarded
    unchanged. Authorization failures surface as ExternalAPIError.
    """

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        """Initialize the API client with configuration."""
        self.base_url = base_url or settings.sentinel_hub_base_url
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or settings.sentinel_hub_timeout,
        )

    async def __aenter__(self) -> "SentinelHubClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    @retry(
        stop=stop_after_attempt(settings.max_retry_attempts),
        wait=wait_exponential(
            multiplier=settings.retry_backoff_multiplier,
            min=settings.retry_min_wait,
            max=settings.retry_max_wait,
        ),
        retry=retry_if_exception_type(RetryableAPIError),
        reraise=True,
    )
    async def _make_request(
        self,
        method: str,
        endpoint: str,
        access_token: str,
        accept: str = SentinelHubConstants.CONTENT_TYPE_JSON,
        **kwargs
    ) -> httpx.Response:
        """
        Make an HTTP request with retry logic.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint path
            access_token: Bearer credential forwarded as-is
            accept: Expected response media type
            **kwargs: Additional arguments for the request

        Returns:
            The successful response

        Raises:
            ExternalAPIError: If the request fails after retries
        """
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": accept,
        }
        try:
            response = await self.client.request(method, endpoint, headers=headers, **kwargs)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            message = f"Sentinel Hub request failed: {status_code} - {e.response.text}"
            # Retry on server errors (5xx) and throttling
            if status_code >= 500 or status_code == 429:
                logger.warning(f"Retryable upstream error on {endpoint}: {status_code}")
                raise RetryableAPIError(message, status_code=status_code)
            # Don't retry on client errors (4xx)
            raise ExternalAPIError(message, status_code=status_code)
        except httpx.RequestError as e:
            logger.warning(f"Transport error on {endpoint}: {e}")
            raise RetryableAPIError(f"Sentinel Hub request error: {str(e)}", status_code=503)

    async def search_acquisition_dates(
        self,
        bbox: BoundingBox,
        date_from: dt.date,
        date_to: dt.date,
        access_token: str,
        max_cloud_cover: float = 30.0,
        limit: int = 100,
    ) -> List[dt.date]:
        """
        Discover acquisition dates over a bounding box.

        Args:
            bbox: Area of interest
            date_from: First day of the search window
            date_to: Last day of the search window (inclusive)
            access_token: Bearer credential
            max_cloud_cover: Maximum scene cloud cover in percent
            limit: Maximum number of catalog items returned

        Returns:
            Unique acquisition dates in ascending order

        Raises:
            ExternalAPIError: If the request fails or the response cannot be parsed
        """
        payload: Dict[str, Any] = {
            "bbox": bbox.as_list(),
            "datetime": f"{date_from.isoformat()}T00:00:00Z/{date_to.isoformat()}T23:59:59Z",
            "collections": [SentinelHubConstants.COLLECTION_ID],
            "limit": limit,
            "filter": f"eo:cloud_cover < {max_cloud_cover:g}",
            "filter-lang": "cql2-text",
        }
        response = await self._make_request(
            "POST",
            SentinelHubEndpoints.CATALOG_SEARCH,
            access_token,
            json=payload,
        )
        try:
            result = CatalogSearchResponse.model_validate(response.json())
            dates = sorted({item.acquisition_date for item in result.features})
        except ValueError as e:
            logger.warning(f"Malformed catalog response: {e}")
            raise ExternalAPIError(f"Malformed catalog response: {e}", status_code=502)
        logger.info(
            f"Catalog returned {len(result.features)} items, {len(dates)} unique dates "
            f"between {date_from} and {date_to}"
        )
        return dates

    async def fetch_index_raster(
        self,
        bbox: BoundingBox,
        geometry: Dict[str, Any],
        day: dt.date,
        width: int,
        height: int,
        access_token: str,
        max_cloud_cover: float = 30.0,
    ) -> bytes:
        """
        Request a single-band NDVI raster for one acquisition day.

        Args:
            bbox: Bounding box of the parcel
            geometry: GeoJSON polygon of the parcel in (lon, lat) order
            day: Acquisition date; the request covers that whole day
            width: Output width in pixels
            height: Output height in pixels
            access_token: Bearer credential
            max_cloud_cover: Maximum scene cloud cover in percent

        Returns:
            Raw TIFF payload

        Raises:
            ExternalAPIError: If the request fails
        """
        payload = {
            "input": {
                "bounds": {
                    "bbox": bbox.as_list(),
                    "properties": {"crs": SentinelHubConstants.CRS84},
                    "geometry": geometry,
                },
                "data": [{
                    "type": SentinelHubConstants.COLLECTION_ID,
                    "dataFilter": {
                        "timeRange": {
                            "from": f"{day.isoformat()}T00:00:00Z",
                            "to": f"{day.isoformat()}T23:59:59Z",
                        },
                        "maxCloudCoverage": max_cloud_cover,
                        "mosaickingOrder": SentinelHubConstants.MOSAICKING_ORDER,
                    },
                }],
            },
            "output": {
                "width": width,
                "height": height,
                "responses": [{
                    "identifier": "default",
                    "format": {"type": SentinelHubConstants.ACCEPT_TIFF},
                }],
            },
            "evalscript": SentinelHubConstants.NDVI_EVALSCRIPT,
        }
        logger.debug(f"Process request for {day}: bbox={bbox.as_list()}, size={width}x{height}")
        response = await self._make_request(
            "POST",
            SentinelHubEndpoints.PROCESS,
            access_token,
            accept=SentinelHubConstants.ACCEPT_TIFF,
            json=payload,
        )
        return response.content


# Singleton instance
_api_client: Optional[SentinelHubClient] = None


def get_api_client() -> SentinelHubClient:
    """
    Get or create the singleton API client instance.

    Returns:
        SentinelHubClient instance
    """
    global _api_client
    if _api_client is None:
        _api_client = SentinelHubClient()
    return _api_client
