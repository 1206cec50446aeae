"""
Domain service: Trailing moving averages over a time series.
"""
from typing import Sequence

from forest_biomass.domain.models import Sample


ROLLING_SUFFIX = "_rolling_avg"


def trailing_mean(values: Sequence[float], window_size: int) -> list[float]:
    """
    Causal moving average whose window shrinks at the start of the series.

    Element i is the mean of values[max(0, i - window_size + 1):i + 1].

    Args:
        values: Ordered values
        window_size: Number of trailing elements averaged (>= 1)

    Returns:
        List of averages, same length as values
    """
    if window_size < 1:
        raise ValueError(f"Window size must be at least 1, got {window_size}")

    averages = []
    for i in range(len(values)):
        window = values[max(0, i - window_size + 1):i + 1]
        averages.append(sum(window) / len(window))
    return averages


def rolling_average(
    samples: Sequence[Sample],
    field: str,
    window_size: int,
) -> list[Sample]:
    """
    Attach a trailing average of one sample field to every sample.

    Args:
        samples: Samples in series order
        field: Name of a numeric Sample field (e.g. "biomass")
        window_size: Trailing window size

    Returns:
        New samples with `<field>_rolling_avg` set; order and length preserved

    Raises:
        ValueError: If the field has no rolling average slot or the window is invalid
    """
    target = f"{field}{ROLLING_SUFFIX}"
    if field not in Sample.model_fields or target not in Sample.model_fields:
        raise ValueError(f"Field '{field}' cannot be smoothed")

    averages = trailing_mean([getattr(s, field) for s in samples], window_size)
    return [
        sample.model_copy(update={target: average})
        for sample, average in zip(samples, averages)
    ]
