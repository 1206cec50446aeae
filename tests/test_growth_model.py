"""
Unit tests for the biomass growth model.

Tests cover:
- Water signature handling
- Monotonicity in stand age
- Output bounds
- Species parameter lookup
"""
import math

import pytest

from forest_biomass.domain.models import SpeciesParameters
from forest_biomass.services.domain.growth_model import (
    SPECIES_PARAMETERS,
    UnknownSpeciesError,
    estimate_biomass,
    get_species_parameters,
)


SPECIES = sorted(SPECIES_PARAMETERS)


class TestWaterSignature:
    """Negative index values mean water and carry no biomass."""

    @pytest.mark.parametrize("species", SPECIES)
    @pytest.mark.parametrize("index_value", [-1.0, -0.5, -0.01])
    def test_negative_index_is_zero(self, species, index_value):
        """Negative index should short-circuit to zero."""
        for elapsed, base_age in [(0, 0), (1.5, 20), (3.9, 120)]:
            assert estimate_biomass(index_value, species, elapsed, base_age) == 0

    def test_zero_index_is_young_biomass(self):
        """Zero index keeps the establishment biomass only."""
        assert estimate_biomass(0.0, "pine", 2, 30) == pytest.approx(20.0)


class TestGrowthCurve:
    """Tests for the exponential saturation curve."""

    def test_reference_pine_value(self):
        """Mature-canopy pine at 20 years matches the closed form."""
        biomass = estimate_biomass(0.85, "pine", 0, 20)

        expected = 20 + (450 - 20) * (1 - math.exp(-0.08 * 20)) * 1
        assert biomass == pytest.approx(expected)
        assert biomass == pytest.approx(363.2, abs=0.05)

    @pytest.mark.parametrize("species", SPECIES)
    @pytest.mark.parametrize("index_value", [0.0, 0.3, 0.6, 0.95])
    def test_monotonic_in_elapsed_years(self, species, index_value):
        """Biomass never decreases as the stand ages."""
        values = [
            estimate_biomass(index_value, species, elapsed / 4, 10)
            for elapsed in range(0, 80)
        ]
        assert all(b >= a for a, b in zip(values, values[1:]))

    @pytest.mark.parametrize("species", SPECIES)
    def test_bounded_by_max_biomass(self, species):
        """Output stays within [0, max_biomass] for index in [0, saturation]."""
        params = SPECIES_PARAMETERS[species]
        for step in range(11):
            index_value = params.saturation_index * step / 10
            for base_age in [0, 5, 40, 200, 1000]:
                biomass = estimate_biomass(index_value, species, 0.5, base_age)
                assert 0 <= biomass <= params.max_biomass

    def test_index_factor_saturates(self):
        """Index values above saturation do not increase biomass."""
        at_saturation = estimate_biomass(0.85, "pine", 1, 30)
        above = estimate_biomass(0.99, "pine", 1, 30)

        assert above == pytest.approx(at_saturation)

    def test_accepts_explicit_parameters(self):
        """A SpeciesParameters instance can replace the tag."""
        params = SpeciesParameters(
            max_biomass=100, growth_rate=1.0, saturation_index=0.5, young_biomass=10
        )

        biomass = estimate_biomass(0.25, params, 0, 1)

        assert biomass == pytest.approx(10 + 90 * (1 - math.exp(-1)) * 0.5)

    def test_deterministic(self):
        """Identical inputs give identical outputs."""
        first = estimate_biomass(0.61, "birch", 2.37, 14)
        second = estimate_biomass(0.61, "birch", 2.37, 14)

        assert first == second


class TestSpeciesParameters:
    """Tests for the species parameter table."""

    def test_known_species(self):
        """The table carries the four supported species."""
        assert set(SPECIES_PARAMETERS) == {"pine", "fir", "birch", "aspen"}
        fir = get_species_parameters("fir")
        assert fir.max_biomass == 500
        assert fir.growth_rate == 0.07

    def test_lookup_is_case_insensitive(self):
        """Tags are normalized before lookup."""
        assert get_species_parameters(" Birch ") is SPECIES_PARAMETERS["birch"]

    def test_unknown_species(self):
        """Unknown tags raise a defined error."""
        with pytest.raises(UnknownSpeciesError, match="oak"):
            get_species_parameters("oak")

        with pytest.raises(ValueError):
            estimate_biomass(0.5, "oak", 0, 10)

    def test_table_is_immutable(self):
        """The table cannot be modified at runtime."""
        with pytest.raises(TypeError):
            SPECIES_PARAMETERS["oak"] = SPECIES_PARAMETERS["pine"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
