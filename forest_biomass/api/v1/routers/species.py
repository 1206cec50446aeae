"""
API router for species parameters.
"""
from fastapi import APIRouter

from forest_biomass.api.v1.models.responses import SpeciesEntry, SpeciesListResponse
from forest_biomass.services.domain.growth_model import SPECIES_PARAMETERS


router = APIRouter(
    prefix="/species",
    tags=["species"],
)


@router.get(
    "",
    response_model=SpeciesListResponse,
    summary="List supported species and their growth parameters",
)
async def list_species() -> SpeciesListResponse:
    """Return the species growth parameter table."""
    return SpeciesListResponse(
        species=[
            SpeciesEntry(species=name, **params.model_dump())
            for name, params in SPECIES_PARAMETERS.items()
        ]
    )
