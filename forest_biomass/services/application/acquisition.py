"""
Application service: Multi-year acquisition of biomass samples.

Drives discovery, per-date raster fetches, decoding and biomass estimation
for one parcel, strictly sequentially and under upstream rate limits:
- Year loop over a seasonal window, skipping an unfinished current season
- Catalog discovery per year (failures degrade to zero dates)
- Per-date fetch with failure isolation
- Adaptive output resolution from the parcel footprint
- Sorting, smoothing, summary and quality advisories on the finished series
"""
import asyncio
import datetime as dt
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional

import httpx

from forest_biomass.config import Settings, settings
from forest_biomass.domain.models import (
    AcquisitionOutcome,
    Advisory,
    AdvisoryCode,
    BiomassSeries,
    BoundingBox,
    IndexStatistics,
    Parcel,
    RunStatus,
    Sample,
    SpeciesParameters,
)
from forest_biomass.infrastructure.sentinel_hub_client import (
    ExternalAPIError,
    SentinelHubClient,
)
from forest_biomass.services.domain.growth_model import (
    estimate_biomass,
    get_species_parameters,
)
from forest_biomass.services.domain.raster_decoder import (
    RasterDecodeError,
    decode_index_raster,
)
from forest_biomass.services.domain.series_summary import summarize_series
from forest_biomass.services.domain.smoother import rolling_average
from forest_biomass.utils.geometry import (
    ground_footprint_meters,
    parcel_geojson,
    select_grid_size,
)

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365
NO_DATA_MESSAGE = (
    "No valid satellite data found. Please try a different location "
    "or check your API access."
)


class AcquisitionError(Exception):
    """Base exception for conditions that abort a whole run."""
    pass


class MissingGeometryError(AcquisitionError):
    """No usable parcel geometry was supplied."""
    pass


class MissingCredentialError(AcquisitionError):
    """No bearer credential was supplied."""
    pass


class AcquisitionState(str, Enum):
    """Progress of one acquisition run."""
    IDLE = "idle"
    DISCOVERING = "discovering"
    FETCHING = "fetching"
    FAILED = "failed"
    AGGREGATING = "aggregating"
    SMOOTHING = "smoothing"
    DONE = "done"


def _parse_month_day(value: str) -> tuple[int, int]:
    month, day = value.split("-")
    return int(month), int(day)


@dataclass
class AcquisitionConfig:
    """Scheduling and quality policy for acquisition runs."""

    lookback_years: int = 3
    """Years analysed before the current one"""

    season_start: tuple[int, int] = (6, 1)
    """(month, day) the seasonal window opens"""

    season_end: tuple[int, int] = (8, 31)
    """(month, day) the seasonal window closes (inclusive)"""

    season_complete_month: int = 9
    """Month from which the current year's season is considered elapsed"""

    max_cloud_cover: float = 30.0
    discovery_limit: int = 100

    request_delay_seconds: float = 1.0
    """Pause after every per-date request, successful or not"""

    year_delay_seconds: float = 3.0
    """Pause after every processed year"""

    rolling_window: int = 7

    forested_vegetation_percent: float = 30.0
    low_vegetation_fraction: float = 0.5
    water_index_threshold: float = 0.1
    water_sample_fraction: float = 0.7
    low_coverage_percent: float = 50.0

    resolution_breakpoints: list[tuple[float, int]] = field(
        default_factory=lambda: [(1000.0, 50), (5000.0, 100), (20000.0, 200)]
    )
    max_resolution: int = 300

    @classmethod
    def from_settings(cls, source: Settings = settings) -> "AcquisitionConfig":
        return cls(
            lookback_years=source.acquisition_lookback_years,
            season_start=_parse_month_day(source.season_start),
            season_end=_parse_month_day(source.season_end),
            season_complete_month=source.season_complete_month,
            max_cloud_cover=source.max_cloud_cover,
            discovery_limit=source.discovery_limit,
            request_delay_seconds=source.request_delay_seconds,
            year_delay_seconds=source.year_delay_seconds,
            rolling_window=source.rolling_window,
            forested_vegetation_percent=source.forested_vegetation_percent,
            low_vegetation_fraction=source.low_vegetation_fraction,
            water_index_threshold=source.water_index_threshold,
            water_sample_fraction=source.water_sample_fraction,
            low_coverage_percent=source.low_coverage_percent,
            resolution_breakpoints=list(source.resolution_breakpoints),
            max_resolution=source.max_resolution,
        )


StateCallback = Callable[[AcquisitionState, str], None]


class AcquisitionRun:
    """
    One acquisition run for a single parcel.

    A run is used once: construct it, then await execute(). Cancelling the
    awaiting task abandons the run at its next suspension point.
    """

    def __init__(
        self,
        client: SentinelHubClient,
        parcel: Optional[Parcel],
        base_age: float,
        access_token: Optional[str],
        config: Optional[AcquisitionConfig] = None,
        today: Optional[dt.date] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_state_change: Optional[StateCallback] = None,
    ):
        """
        Initialize the run.

        Args:
            client: Sentinel Hub client used for discovery and fetches
            parcel: Parcel to analyse
            base_age: Stand age at the start of the observation window
            access_token: Opaque bearer credential
            config: Run policy (defaults to application settings)
            today: Reference date for the year window (defaults to today)
            sleep: Awaitable delay used for rate limiting
            on_state_change: Optional progress callback
        """
        self.client = client
        self.parcel = parcel
        self.base_age = base_age
        self.access_token = access_token
        self.config = config or AcquisitionConfig.from_settings()
        self.today = today or dt.date.today()
        self._sleep = sleep
        self._on_state_change = on_state_change
        self.state = AcquisitionState.IDLE

    def _transition(self, state: AcquisitionState, detail: str = "") -> None:
        self.state = state
        logger.debug(f"Acquisition state -> {state.value} {detail}".rstrip())
        if self._on_state_change:
            self._on_state_change(state, detail)

    def _validate(self) -> SpeciesParameters:
        if self.parcel is None or not self.parcel.coordinates:
            raise MissingGeometryError("Draw at least one parcel polygon")
        if not self.access_token or not self.access_token.strip():
            raise MissingCredentialError("A bearer credential is required")
        return get_species_parameters(self.parcel.species)

    def grid_size(self, bbox: BoundingBox) -> int:
        """Output grid size for the parcel footprint."""
        lat_distance, lon_distance = ground_footprint_meters(bbox.as_list())
        size = select_grid_size(
            max(lat_distance, lon_distance),
            self.config.resolution_breakpoints,
            self.config.max_resolution,
        )
        logger.info(
            f"Parcel footprint {lat_distance / 1000:.1f}km x {lon_distance / 1000:.1f}km, "
            f"using {size}x{size} pixels"
        )
        return size

    def years(self) -> list[int]:
        """Years to process, oldest first."""
        current = self.today.year
        years = []
        for year in range(current - self.config.lookback_years, current + 1):
            if year == current and self.today.month < self.config.season_complete_month:
                logger.info(f"Skipping {year}: season not complete yet")
                continue
            years.append(year)
        return years

    async def execute(self) -> BiomassSeries:
        """
        Run discovery and acquisition for every year in the window.

        Returns:
            Finalized BiomassSeries (status NO_DATA if nothing was collected)

        Raises:
            MissingGeometryError: If no parcel geometry was supplied
            MissingCredentialError: If no credential was supplied
            UnknownSpeciesError: If the parcel species has no parameters
        """
        species = self._validate()
        bbox = self.parcel.bounding_box
        geometry = parcel_geojson(self.parcel.coordinates)
        size = self.grid_size(bbox)
        start_year = self.today.year - self.config.lookback_years

        logger.info(
            f"Starting acquisition for {self.parcel.species} parcel "
            f"({self.parcel.area_hectares:.2f} ha), base age {self.base_age}"
        )

        outcomes: list[AcquisitionOutcome] = []
        for year in self.years():
            dates = await self._discover(year, bbox)
            for day in dates:
                outcome = await self._acquire(
                    day, bbox, geometry, size, species, year - start_year
                )
                outcomes.append(outcome)
                await self._sleep(self.config.request_delay_seconds)
            await self._sleep(self.config.year_delay_seconds)

        return self._finalize(outcomes)

    async def _discover(self, year: int, bbox: BoundingBox) -> list[dt.date]:
        self._transition(AcquisitionState.DISCOVERING, str(year))
        date_from = dt.date(year, *self.config.season_start)
        date_to = dt.date(year, *self.config.season_end)
        try:
            dates = await self.client.search_acquisition_dates(
                bbox,
                date_from,
                date_to,
                self.access_token,
                max_cloud_cover=self.config.max_cloud_cover,
                limit=self.config.discovery_limit,
            )
        except (ExternalAPIError, httpx.HTTPError) as e:
            logger.warning(f"Discovery failed for {year}, treating as no acquisitions: {e}")
            return []
        dates = sorted(set(dates))
        logger.info(f"Found {len(dates)} acquisition dates in {year}")
        return dates

    async def _acquire(
        self,
        day: dt.date,
        bbox: BoundingBox,
        geometry: dict,
        size: int,
        species: SpeciesParameters,
        year_offset: int,
    ) -> AcquisitionOutcome:
        self._transition(AcquisitionState.FETCHING, day.isoformat())
        try:
            payload = await self.client.fetch_index_raster(
                bbox,
                geometry,
                day,
                size,
                size,
                self.access_token,
                max_cloud_cover=self.config.max_cloud_cover,
            )
            statistics = decode_index_raster(payload, size, size)
        except (ExternalAPIError, httpx.HTTPError, RasterDecodeError) as e:
            return self._failed(day, f"{type(e).__name__}: {e}")

        if not statistics.has_data:
            return self._failed(day, "no valid pixels")

        sample = self._build_sample(day, statistics, species, year_offset)
        logger.info(
            f"{day}: index={sample.index_mean:.3f}, biomass={sample.biomass:.2f} t/ha, "
            f"coverage={sample.coverage_percent:.1f}%"
        )
        return AcquisitionOutcome(
            date=day,
            sample=sample,
            advisories=self._acquisition_advisories(day, statistics, size),
        )

    def _failed(self, day: dt.date, reason: str) -> AcquisitionOutcome:
        logger.warning(f"Skipping acquisition {day}: {reason}")
        self._transition(AcquisitionState.FAILED, day.isoformat())
        return AcquisitionOutcome(date=day, error=reason)

    def _build_sample(
        self,
        day: dt.date,
        statistics: IndexStatistics,
        species: SpeciesParameters,
        year_offset: int,
    ) -> Sample:
        elapsed_years = year_offset + day.timetuple().tm_yday / DAYS_PER_YEAR
        biomass = estimate_biomass(statistics.mean, species, elapsed_years, self.base_age)
        return Sample(
            date=day,
            year=day.year,
            month=day.month,
            day=day.day,
            elapsed_years=elapsed_years,
            index_mean=statistics.mean,
            index_min=statistics.min,
            index_max=statistics.max,
            biomass=biomass,
            stand_age=self.base_age + elapsed_years,
            valid_pixels=statistics.valid_pixel_count,
            total_pixels=statistics.total_pixel_count,
            coverage_percent=statistics.coverage_percent,
            vegetation_percent=statistics.vegetation_percent,
            is_water=statistics.mean < self.config.water_index_threshold,
            is_forested=statistics.vegetation_percent > self.config.forested_vegetation_percent,
        )

    def _acquisition_advisories(
        self,
        day: dt.date,
        statistics: IndexStatistics,
        size: int,
    ) -> list[Advisory]:
        advisories = []
        if statistics.coverage_percent < self.config.low_coverage_percent:
            advisories.append(Advisory(
                code=AdvisoryCode.LOW_COVERAGE,
                message=f"Only {statistics.coverage_percent:.1f}% of pixels were usable",
                date=day,
            ))
        if statistics.width != size or statistics.height != size:
            advisories.append(Advisory(
                code=AdvisoryCode.DIMENSION_MISMATCH,
                message=(
                    f"Raster is {statistics.width}x{statistics.height}, "
                    f"requested {size}x{size}"
                ),
                date=day,
            ))
        return advisories

    def _finalize(self, outcomes: list[AcquisitionOutcome]) -> BiomassSeries:
        self._transition(AcquisitionState.AGGREGATING)
        samples = [o.sample for o in outcomes if o.succeeded]
        skipped = [o for o in outcomes if not o.succeeded]
        area = self.parcel.area_hectares

        if not samples:
            logger.warning(f"No samples collected ({len(skipped)} acquisitions skipped)")
            self._transition(AcquisitionState.DONE)
            return BiomassSeries(
                status=RunStatus.NO_DATA,
                species=self.parcel.species,
                parcel_area_hectares=area,
                skipped=skipped,
                message=NO_DATA_MESSAGE,
            )

        self._transition(AcquisitionState.SMOOTHING)
        samples.sort(key=lambda s: s.date)
        samples = rolling_average(samples, "biomass", self.config.rolling_window)
        samples = rolling_average(samples, "index_mean", self.config.rolling_window)

        advisories = [a for o in outcomes for a in o.advisories]
        advisories.extend(self._series_advisories(samples))
        summary = summarize_series(samples)

        logger.info(
            f"Series complete: {len(samples)} samples, {len(skipped)} skipped, "
            f"{len(advisories)} advisories"
        )
        self._transition(AcquisitionState.DONE)
        return BiomassSeries(
            status=RunStatus.COMPLETE,
            species=self.parcel.species,
            parcel_area_hectares=area,
            samples=samples,
            advisories=advisories,
            skipped=skipped,
            summary=summary,
        )

    def _series_advisories(self, samples: list[Sample]) -> list[Advisory]:
        advisories = []
        forested = sum(1 for s in samples if s.is_forested)
        if forested < len(samples) * self.config.low_vegetation_fraction:
            advisories.append(Advisory(
                code=AdvisoryCode.LOW_VEGETATION,
                message=(
                    f"Only {forested}/{len(samples)} acquisitions show forest cover; "
                    f"select a polygon over forested area"
                ),
            ))
        water = sum(1 for s in samples if s.is_water)
        if water > len(samples) * self.config.water_sample_fraction:
            advisories.append(Advisory(
                code=AdvisoryCode.WATER_BODY,
                message=(
                    "This area shows characteristics of a water body (low index); "
                    "biomass estimates may not be accurate"
                ),
            ))
        return advisories
