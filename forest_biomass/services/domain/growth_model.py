"""
Domain service: Forest biomass estimation from a vegetation index.

Biomass follows an exponential saturation curve in stand age, scaled by how
close the observed index is to the species' closed-canopy saturation value.
"""
import math
from types import MappingProxyType
from typing import Mapping, Union

from forest_biomass.domain.models import SpeciesParameters


class UnknownSpeciesError(ValueError):
    """Raised when a species tag has no growth parameters."""
    pass


SPECIES_PARAMETERS: Mapping[str, SpeciesParameters] = MappingProxyType({
    "pine": SpeciesParameters(
        max_biomass=450.0,
        growth_rate=0.08,
        saturation_index=0.85,
        young_biomass=20.0,
    ),
    "fir": SpeciesParameters(
        max_biomass=500.0,
        growth_rate=0.07,
        saturation_index=0.88,
        young_biomass=25.0,
    ),
    "birch": SpeciesParameters(
        max_biomass=300.0,
        growth_rate=0.12,
        saturation_index=0.82,
        young_biomass=15.0,
    ),
    "aspen": SpeciesParameters(
        max_biomass=250.0,
        growth_rate=0.15,
        saturation_index=0.80,
        young_biomass=12.0,
    ),
})


def get_species_parameters(species: str) -> SpeciesParameters:
    """
    Look up growth parameters for a species tag.

    Args:
        species: Species tag (case-insensitive)

    Returns:
        SpeciesParameters for the species

    Raises:
        UnknownSpeciesError: If the tag is not in the table
    """
    key = species.strip().lower()
    try:
        return SPECIES_PARAMETERS[key]
    except KeyError:
        known = ", ".join(sorted(SPECIES_PARAMETERS))
        raise UnknownSpeciesError(f"Unknown species '{species}' (known: {known})") from None


def estimate_biomass(
    index_value: float,
    species: Union[str, SpeciesParameters],
    elapsed_years: float,
    base_age: float,
) -> float:
    """
    Estimate above-ground biomass for a stand.

    Args:
        index_value: Mean vegetation index of the parcel
        species: Species tag or explicit parameters
        elapsed_years: Years since the start of the observation window
        base_age: Stand age at the start of the observation window

    Returns:
        Biomass in t/ha, never negative; 0 for water (negative index)
    """
    if index_value < 0:
        return 0.0

    params = species if isinstance(species, SpeciesParameters) else get_species_parameters(species)

    current_age = base_age + elapsed_years
    growth_factor = 1 - math.exp(-params.growth_rate * current_age)
    index_factor = min(1.0, max(0.0, index_value) / params.saturation_index)

    biomass = (
        params.young_biomass
        + (params.max_biomass - params.young_biomass) * growth_factor * index_factor
    )
    return max(0.0, biomass)
