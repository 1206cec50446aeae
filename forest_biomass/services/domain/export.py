"""
Domain service: Row-oriented flattening of a biomass series for export.

Every sample field maps to exactly one column. Numbers are rendered with
fixed precision so that exported tables are stable across runs.
"""
from typing import Any, Callable, Optional

from forest_biomass.domain.models import BiomassSeries, Sample

NOT_AVAILABLE = "N/A"


def _fixed(digits: int) -> Callable[[Optional[float]], str]:
    def format_value(value: Optional[float]) -> str:
        if value is None:
            return NOT_AVAILABLE
        return f"{value:.{digits}f}"
    return format_value


def _yes_no(value: bool) -> str:
    return "Yes" if value else "No"


def _plain(value: Any) -> str:
    return NOT_AVAILABLE if value is None else str(value)


index_format = _fixed(4)
mass_format = _fixed(2)
elapsed_format = _fixed(3)
percent_format = _fixed(1)


# (column header, sample field, formatter)
EXPORT_COLUMNS: list[tuple[str, str, Callable[[Any], str]]] = [
    ("Date", "date", lambda d: d.isoformat()),
    ("Year", "year", _plain),
    ("Month", "month", _plain),
    ("Day", "day", _plain),
    ("Elapsed Years", "elapsed_years", elapsed_format),
    ("Stand Age (years)", "stand_age", mass_format),
    ("Index Mean", "index_mean", index_format),
    ("Index Min", "index_min", index_format),
    ("Index Max", "index_max", index_format),
    ("Index Rolling Avg", "index_mean_rolling_avg", index_format),
    ("Biomass (t/ha)", "biomass", mass_format),
    ("Biomass Rolling Avg (t/ha)", "biomass_rolling_avg", mass_format),
    ("Valid Pixels", "valid_pixels", _plain),
    ("Total Pixels", "total_pixels", _plain),
    ("Coverage (%)", "coverage_percent", percent_format),
    ("Vegetation (%)", "vegetation_percent", percent_format),
    ("Is Water Body", "is_water", _yes_no),
    ("Is Forested", "is_forested", _yes_no),
]

PARCEL_COLUMNS = ["Species", "Parcel Area (ha)"]


def export_headers() -> list[str]:
    """Column headers in export order."""
    return [header for header, _, _ in EXPORT_COLUMNS] + PARCEL_COLUMNS


def sample_to_row(sample: Sample, species: str, area_hectares: float) -> dict[str, str]:
    """
    Flatten one sample into formatted column values.

    Args:
        sample: Smoothed time-series sample
        species: Species tag of the parcel
        area_hectares: Parcel area

    Returns:
        Mapping of column header to formatted value
    """
    row = {
        header: formatter(getattr(sample, field))
        for header, field, formatter in EXPORT_COLUMNS
    }
    row["Species"] = species
    row["Parcel Area (ha)"] = mass_format(area_hectares)
    return row


def series_to_rows(series: BiomassSeries) -> list[dict[str, str]]:
    """Flatten a finalized series into export rows, one per sample."""
    return [
        sample_to_row(sample, series.species, series.parcel_area_hectares)
        for sample in series.samples
    ]
