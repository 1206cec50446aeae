"""
API response models using Pydantic.
"""
from typing import List
from pydantic import BaseModel, Field

from forest_biomass.domain.models import BiomassSeries, SpeciesParameters


class BiomassSeriesResponse(BiomassSeries):
    """Response model for the biomass analysis endpoint."""
    pass


class ExportTableResponse(BaseModel):
    """Row-oriented flattening of a biomass series."""
    status: str = Field(
        description="Run status (complete or no_data)"
    )
    columns: List[str] = Field(
        description="Column headers in export order"
    )
    rows: List[dict[str, str]] = Field(
        description="One row per sample, keyed by column header"
    )


class SpeciesEntry(SpeciesParameters):
    """Growth parameters of one supported species."""
    species: str = Field(
        description="Species tag accepted by the analysis endpoints",
        examples=["pine"]
    )


class SpeciesListResponse(BaseModel):
    """Response model for the species endpoint."""
    species: List[SpeciesEntry]
