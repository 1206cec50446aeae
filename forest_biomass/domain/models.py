"""
Domain models for parcels, raster statistics and biomass time series.

These models represent the core domain entities and should be independent
of any infrastructure concerns (API clients, databases, etc.).
"""
import datetime as dt
from enum import Enum
from typing import List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator

from forest_biomass.utils.geometry import (
    compute_bounding_box,
    geodesic_area_hectares,
    is_simple_polygon,
    open_ring,
)


class BoundingBox(BaseModel):
    """Geographic bounding box in degrees."""
    west: float
    south: float
    east: float
    north: float

    model_config = ConfigDict(frozen=True)

    def as_list(self) -> List[float]:
        return [self.west, self.south, self.east, self.north]


class Parcel(BaseModel):
    """
    A user-drawn land parcel.

    Coordinates are stored as (latitude, longitude) pairs. The polygon is
    implicitly closed: an explicit closing vertex is accepted and ignored.
    """
    coordinates: List[Tuple[float, float]] = Field(
        description="Polygon vertices as (latitude, longitude) pairs"
    )
    species: str = Field(
        default="pine",
        description="Species tag used to select growth parameters"
    )

    @field_validator("coordinates")
    @classmethod
    def validate_coordinates(cls, value: List[Tuple[float, float]]) -> List[Tuple[float, float]]:
        for lat, lon in value:
            if not -90.0 <= lat <= 90.0:
                raise ValueError(f"Latitude {lat} outside [-90, 90]")
            if not -180.0 <= lon <= 180.0:
                raise ValueError(f"Longitude {lon} outside [-180, 180]")
        if len(open_ring(value)) < 3:
            raise ValueError("A parcel needs at least 3 distinct vertices")
        if not is_simple_polygon(value):
            raise ValueError("Parcel polygon must not self-intersect")
        return value

    @field_validator("species")
    @classmethod
    def normalize_species(cls, value: str) -> str:
        return value.strip().lower()

    @property
    def bounding_box(self) -> BoundingBox:
        west, south, east, north = compute_bounding_box(self.coordinates)
        return BoundingBox(west=west, south=south, east=east, north=north)

    @property
    def area_hectares(self) -> float:
        return geodesic_area_hectares(self.coordinates)


class SpeciesParameters(BaseModel):
    """Growth curve parameters for one species."""
    max_biomass: float = Field(gt=0, description="Biomass at maturity (t/ha)")
    growth_rate: float = Field(gt=0, description="Exponential growth rate per year")
    saturation_index: float = Field(gt=0, description="Index value of a closed mature canopy")
    young_biomass: float = Field(gt=0, description="Biomass of a newly established stand (t/ha)")

    model_config = ConfigDict(frozen=True)


class IndexStatistics(BaseModel):
    """Summary statistics of one decoded vegetation index raster."""
    mean: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    valid_pixel_count: int = 0
    total_pixel_count: int = 0
    vegetation_pixel_count: int = 0
    sparse_vegetation_pixel_count: int = 0
    bare_pixel_count: int = 0
    water_pixel_count: int = 0
    vegetation_percent: float = 0.0
    width: int
    height: int
    little_endian: bool

    model_config = ConfigDict(frozen=True)

    @property
    def has_data(self) -> bool:
        return self.valid_pixel_count > 0

    @property
    def coverage_percent(self) -> float:
        if self.total_pixel_count == 0:
            return 0.0
        return self.valid_pixel_count / self.total_pixel_count * 100


class Sample(BaseModel):
    """One point of the biomass time series."""
    date: dt.date
    year: int
    month: int
    day: int
    elapsed_years: float
    index_mean: float
    index_min: float
    index_max: float
    biomass: float = Field(description="Estimated biomass in t/ha")
    stand_age: float
    valid_pixels: int
    total_pixels: int
    coverage_percent: float
    vegetation_percent: float
    is_water: bool
    is_forested: bool
    biomass_rolling_avg: Optional[float] = None
    index_mean_rolling_avg: Optional[float] = None

    model_config = ConfigDict(frozen=True)


class AdvisoryCode(str, Enum):
    """Warning conditions surfaced alongside a completed run."""
    LOW_VEGETATION = "low_vegetation"
    WATER_BODY = "water_body"
    LOW_COVERAGE = "low_coverage"
    DIMENSION_MISMATCH = "dimension_mismatch"


class Advisory(BaseModel):
    """A non-fatal quality signal."""
    code: AdvisoryCode
    message: str
    date: Optional[dt.date] = None


class AcquisitionOutcome(BaseModel):
    """Result of processing one candidate acquisition date."""
    date: dt.date
    sample: Optional[Sample] = None
    error: Optional[str] = None
    advisories: List[Advisory] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.sample is not None


class RunStatus(str, Enum):
    COMPLETE = "complete"
    NO_DATA = "no_data"


class SeriesSummary(BaseModel):
    """Headline figures of a completed series."""
    observation_count: int
    average_index: float
    index_min: float = Field(description="Lowest per-acquisition mean index")
    index_max: float = Field(description="Highest per-acquisition mean index")
    biomass_growth_percent: Optional[float] = Field(
        default=None,
        description="Biomass change from the first to the last sample; None if the first is zero"
    )
    average_coverage_percent: float

    model_config = ConfigDict(frozen=True)


class BiomassSeries(BaseModel):
    """Finalized output of one acquisition run."""
    status: RunStatus
    species: str
    parcel_area_hectares: float
    samples: List[Sample] = Field(default_factory=list)
    advisories: List[Advisory] = Field(default_factory=list)
    skipped: List[AcquisitionOutcome] = Field(default_factory=list)
    summary: Optional[SeriesSummary] = None
    message: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def has_data(self) -> bool:
        return self.status == RunStatus.COMPLETE
