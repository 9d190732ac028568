"""Magnitude and reporting-period rescaling."""
from __future__ import annotations

from ..models.schema import Scale, TimeScale


def rescale_magnitude(value: float, from_scale: Scale, to_scale: Scale) -> float:
    """Re-express *value* from one power-of-ten bucket in another.

    ``rescale_magnitude(5, Scale.BILLIONS, Scale.MILLIONS) == 5000``.
    """
    if from_scale == to_scale:
        return value
    return value * from_scale.multiplier / to_scale.multiplier


def magnitude_factor(from_scale: Scale, to_scale: Scale) -> float:
    return from_scale.multiplier / to_scale.multiplier


def rescale_time(value: float, from_period: TimeScale, to_period: TimeScale) -> float:
    """Re-express a per-period value over another period.

    Month to year multiplies by 12, year to month divides by 12.
    """
    if from_period == to_period:
        return value
    return value * time_factor(from_period, to_period)


def time_factor(from_period: TimeScale, to_period: TimeScale) -> float:
    return from_period.periods_per_year / to_period.periods_per_year
