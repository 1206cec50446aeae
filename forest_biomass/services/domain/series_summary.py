"""
Domain service: Headline figures of a finished biomass series.
"""
from typing import Optional, Sequence

from forest_biomass.domain.models import Sample, SeriesSummary


def biomass_growth_percent(first: float, last: float) -> Optional[float]:
    """Relative change from first to last biomass, or None if first is zero."""
    if first == 0:
        return None
    return (last - first) / first * 100


def summarize_series(samples: Sequence[Sample]) -> Optional[SeriesSummary]:
    """
    Summarize a date-sorted series.

    Args:
        samples: Samples in chronological order

    Returns:
        SeriesSummary, or None for an empty series
    """
    if not samples:
        return None

    index_means = [s.index_mean for s in samples]
    count = len(samples)
    return SeriesSummary(
        observation_count=count,
        average_index=sum(index_means) / count,
        index_min=min(index_means),
        index_max=max(index_means),
        biomass_growth_percent=biomass_growth_percent(samples[0].biomass, samples[-1].biomass),
        average_coverage_percent=sum(s.coverage_percent for s in samples) / count,
    )
