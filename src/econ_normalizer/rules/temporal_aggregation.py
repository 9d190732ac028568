"""Resampling of observation windows according to temporal aggregation semantics."""
from __future__ import annotations

from ..models.schema import TemporalAggregation, TimeScale, coerce_temporal_aggregation
from ..normalization.scaling import rescale_time

AGGREGATION_DESCRIPTIONS: dict[TemporalAggregation, str] = {
    TemporalAggregation.PERIOD_TOTAL: "Sum values across period",
    TemporalAggregation.PERIOD_AVERAGE: "Average values across period",
    TemporalAggregation.PERIOD_RATE: "Sum and rescale flow rate",
    TemporalAggregation.PERIOD_CUMULATIVE: "Take last value (already cumulative)",
    TemporalAggregation.POINT_IN_TIME: "Take last observation (snapshot)",
    TemporalAggregation.NOT_APPLICABLE: "Take last value (dimensionless)",
}


def aggregate_by_temporal_type(
    values: list[float],
    temporal_aggregation: str | TemporalAggregation,
    from_period: TimeScale,
    to_period: TimeScale,
) -> float:
    """Collapse a window of observations into one value for the target period.

    Raises ``ValueError`` for an empty window or an unknown aggregation.
    """
    if not values:
        raise ValueError("Cannot aggregate empty value array")
    aggregation = coerce_temporal_aggregation(temporal_aggregation)
    if aggregation is None:
        raise ValueError(
            f"Unknown temporal aggregation type: {temporal_aggregation!r}. "
            f"Expected one of: {', '.join(a.value for a in TemporalAggregation)}"
        )

    if aggregation == TemporalAggregation.PERIOD_TOTAL:
        return sum(values)
    if aggregation == TemporalAggregation.PERIOD_AVERAGE:
        return sum(values) / len(values)
    if aggregation == TemporalAggregation.PERIOD_RATE:
        return rescale_time(sum(values), from_period, to_period)
    # cumulative, snapshot and dimensionless series keep the latest observation
    return values[-1]


def allows_resampling(temporal_aggregation: str | TemporalAggregation | None) -> bool:
    aggregation = coerce_temporal_aggregation(temporal_aggregation)
    return aggregation is not None and aggregation != TemporalAggregation.NOT_APPLICABLE


def describe_aggregation(temporal_aggregation: str | TemporalAggregation | None) -> str:
    aggregation = coerce_temporal_aggregation(temporal_aggregation)
    if aggregation is None:
        return "Unknown aggregation method"
    return AGGREGATION_DESCRIPTIONS[aggregation]
