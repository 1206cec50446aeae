"""
Dependency injection for FastAPI.
"""
from typing import Annotated, Optional
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from forest_biomass.infrastructure.sentinel_hub_client import (
    SentinelHubClient,
    get_api_client,
)
from forest_biomass.services.application.acquisition import AcquisitionConfig
from forest_biomass.services.application.biomass_service import BiomassService


bearer_scheme = HTTPBearer(auto_error=False)


def get_acquisition_config() -> AcquisitionConfig:
    """
    Dependency factory for AcquisitionConfig.

    Returns:
        AcquisitionConfig built from application settings
    """
    return AcquisitionConfig.from_settings()


def get_biomass_service(
    api_client: Annotated[SentinelHubClient, Depends(get_api_client)],
    config: Annotated[AcquisitionConfig, Depends(get_acquisition_config)],
) -> BiomassService:
    """
    Dependency factory for BiomassService.

    Args:
        api_client: Sentinel Hub client (injected)
        config: Acquisition policy (injected)

    Returns:
        BiomassService instance
    """
    return BiomassService(api_client=api_client, config=config)


def get_access_token(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
) -> Optional[str]:
    """Extract the opaque bearer credential, if any, from the request."""
    if credentials is None:
        return None
    return credentials.credentials


# Type aliases for cleaner route signatures
BiomassServiceDep = Annotated[BiomassService, Depends(get_biomass_service)]
AccessTokenDep = Annotated[Optional[str], Depends(get_access_token)]
