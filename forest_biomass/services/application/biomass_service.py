"""
Application service: Orchestration layer for parcel biomass analysis.
"""
import logging
from typing import Optional

from forest_biomass.domain.models import BiomassSeries, Parcel
from forest_biomass.infrastructure.sentinel_hub_client import SentinelHubClient
from forest_biomass.services.application.acquisition import (
    AcquisitionConfig,
    AcquisitionRun,
    StateCallback,
)

logger = logging.getLogger(__name__)


class BiomassService:
    """
    Application service for parcel biomass time series.

    Coordinates the Sentinel Hub client with the acquisition run; all
    algorithmic work lives in the domain services.
    """

    def __init__(
        self,
        api_client: SentinelHubClient,
        config: Optional[AcquisitionConfig] = None,
    ):
        """
        Initialize the service with dependencies.

        Args:
            api_client: Sentinel Hub client for discovery and raster fetches
            config: Acquisition policy (defaults to application settings)
        """
        self.api_client = api_client
        self.config = config or AcquisitionConfig.from_settings()

    async def analyze_parcel(
        self,
        parcel: Parcel,
        base_age: float,
        access_token: Optional[str],
        on_state_change: Optional[StateCallback] = None,
    ) -> BiomassSeries:
        """
        Build the biomass time series for a parcel.

        Args:
            parcel: Parcel geometry and species
            base_age: Stand age at the start of the observation window
            access_token: Bearer credential for Sentinel Hub
            on_state_change: Optional progress callback

        Returns:
            Finalized BiomassSeries

        Raises:
            MissingGeometryError: If no parcel geometry was supplied
            MissingCredentialError: If no credential was supplied
            UnknownSpeciesError: If the species is not supported
        """
        run = AcquisitionRun(
            client=self.api_client,
            parcel=parcel,
            base_age=base_age,
            access_token=access_token,
            config=self.config,
            on_state_change=on_state_change,
        )
        return await run.execute()
