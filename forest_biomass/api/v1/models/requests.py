"""
API request models using Pydantic.
"""
from pydantic import ConfigDict, Field

from forest_biomass.domain.models import Parcel


class BiomassAnalysisRequest(Parcel):
    """Request model for parcel biomass analysis."""
    base_age: float = Field(
        default=20.0,
        ge=0,
        description="Stand age in years at the start of the observation window"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "coordinates": [
                    [61.00, 24.00],
                    [61.00, 24.01],
                    [61.01, 24.01],
                    [61.01, 24.00],
                ],
                "species": "pine",
                "base_age": 20,
            }
        }
    )

    def to_parcel(self) -> Parcel:
        return Parcel(coordinates=self.coordinates, species=self.species)
