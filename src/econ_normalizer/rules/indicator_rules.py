"""Indicator semantics: which conversions are legal for which indicator kinds.

A single table keyed by ``IndicatorType`` drives time, magnitude and currency
eligibility, and a second table lists the (indicator_type,
temporal_aggregation) pairs that contradict each other. Every lookup is pure.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from ..models.schema import (
    IndicatorType,
    TemporalAggregation,
    coerce_indicator_type,
    coerce_temporal_aggregation,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class NormalizationRules:
    allow_time_dimension: bool
    allow_magnitude: bool
    allow_currency: bool
    skip_time_in_unit: bool
    description: str


def _rules(time: bool, magnitude: bool, currency: bool, description: str) -> NormalizationRules:
    return NormalizationRules(
        allow_time_dimension=time,
        allow_magnitude=magnitude,
        allow_currency=currency,
        skip_time_in_unit=not time,
        description=description,
    )


# ---------------------------------------------------------------------------
# Rule table
# ---------------------------------------------------------------------------

INDICATOR_TYPE_RULES: dict[IndicatorType, NormalizationRules] = {
    # Physical / fundamental
    IndicatorType.STOCK: _rules(False, True, True, "Absolute levels at a point in time (debt, reserves, population)"),
    IndicatorType.FLOW: _rules(True, True, True, "Throughput over a period (GDP, income, spending)"),
    IndicatorType.BALANCE: _rules(False, True, True, "Net positions that can be negative (trade balance, deficit)"),
    IndicatorType.CAPACITY: _rules(False, True, True, "Maximum potential levels (potential GDP)"),
    IndicatorType.VOLUME: _rules(True, True, False, "Transaction quantities over time (contract volumes)"),
    # Numeric / measurement
    IndicatorType.COUNT: _rules(True, True, False, "Discrete units per period (jobs, housing starts, registrations)"),
    IndicatorType.PERCENTAGE: _rules(False, False, False, "0-100% bounded values (unemployment rate)"),
    IndicatorType.RATIO: _rules(False, False, False, "Dimensionless multiples (debt-to-GDP)"),
    IndicatorType.SPREAD: _rules(False, False, False, "Absolute differences (yield spread)"),
    IndicatorType.SHARE: _rules(False, False, False, "Compositional breakdown (labour share)"),
    # Price / value
    IndicatorType.PRICE: _rules(False, True, True, "Market-clearing levels (commodity prices, FX rates)"),
    IndicatorType.YIELD: _rules(False, False, False, "Returns and efficiency (bond yields)"),
    # Change / movement
    IndicatorType.RATE: _rules(True, False, False, "Directional change or flow rate (inflation, growth)"),
    IndicatorType.VOLATILITY: _rules(False, False, False, "Statistical dispersion (VIX)"),
    IndicatorType.GAP: _rules(False, True, True, "Deviation from potential or trend (output gap)"),
    # Composite / derived
    IndicatorType.INDEX: _rules(False, False, False, "Composite indicators with a base period (CPI, PMI)"),
    IndicatorType.CORRELATION: _rules(False, False, False, "Relationship strength between -1 and 1"),
    IndicatorType.ELASTICITY: _rules(False, False, False, "Responsiveness to a percentage change"),
    IndicatorType.MULTIPLIER: _rules(False, False, False, "Transmission coefficients (fiscal multiplier)"),
    # Temporal
    IndicatorType.DURATION: _rules(False, False, False, "Time-based measures (unemployment duration)"),
    IndicatorType.PROBABILITY: _rules(False, False, False, "Likelihood between 0 and 1 (recession probability)"),
    IndicatorType.THRESHOLD: _rules(False, True, True, "Critical levels or targets (debt ceiling)"),
    # Qualitative
    IndicatorType.SENTIMENT: _rules(False, False, False, "Ordinal survey measures (consumer confidence)"),
    IndicatorType.ALLOCATION: _rules(False, False, False, "Portfolio or budget composition"),
    # Fallback
    IndicatorType.OTHER: _rules(True, True, True, "Uncategorised indicators"),
}

# Aggregations that contradict the indicator type; time conversion is blocked for these.
INCOMPATIBLE_AGGREGATIONS: dict[IndicatorType, frozenset[TemporalAggregation]] = {
    IndicatorType.STOCK: frozenset({TemporalAggregation.PERIOD_RATE, TemporalAggregation.PERIOD_TOTAL}),
    IndicatorType.PRICE: frozenset({TemporalAggregation.PERIOD_RATE, TemporalAggregation.PERIOD_TOTAL}),
    IndicatorType.RATIO: frozenset({
        TemporalAggregation.PERIOD_RATE,
        TemporalAggregation.PERIOD_TOTAL,
        TemporalAggregation.PERIOD_CUMULATIVE,
    }),
    IndicatorType.INDEX: frozenset({
        TemporalAggregation.PERIOD_RATE,
        TemporalAggregation.PERIOD_TOTAL,
        TemporalAggregation.PERIOD_CUMULATIVE,
    }),
    IndicatorType.PERCENTAGE: frozenset({
        TemporalAggregation.PERIOD_RATE,
        TemporalAggregation.PERIOD_TOTAL,
        TemporalAggregation.PERIOD_CUMULATIVE,
    }),
    IndicatorType.FLOW: frozenset({TemporalAggregation.NOT_APPLICABLE}),
    IndicatorType.VOLUME: frozenset({TemporalAggregation.NOT_APPLICABLE}),
    IndicatorType.COUNT: frozenset({TemporalAggregation.NOT_APPLICABLE}),
}

TIME_CONVERTIBLE_AGGREGATIONS: frozenset[TemporalAggregation] = frozenset({
    TemporalAggregation.PERIOD_RATE,
    TemporalAggregation.PERIOD_TOTAL,
    TemporalAggregation.PERIOD_AVERAGE,
})

# Never currency-converted, whatever the upstream flag says
CURRENCY_INELIGIBLE_TYPES: frozenset[IndicatorType] = frozenset({
    IndicatorType.COUNT,
    IndicatorType.VOLUME,
    IndicatorType.PERCENTAGE,
    IndicatorType.INDEX,
    IndicatorType.SENTIMENT,
    IndicatorType.RATE,
})


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def get_normalization_rules(indicator_type: str | IndicatorType | None) -> NormalizationRules:
    """Rules for *indicator_type*; missing or unknown types get the ``other`` rules."""
    kind = coerce_indicator_type(indicator_type) or IndicatorType.OTHER
    return INDICATOR_TYPE_RULES[kind]


def should_skip_time_in_unit(indicator_type: str | IndicatorType | None) -> bool:
    return get_normalization_rules(indicator_type).skip_time_in_unit


def check_temporal_compatibility(
    indicator_type: str | IndicatorType | None,
    temporal_aggregation: str | TemporalAggregation | None,
) -> tuple[bool, str | None]:
    """Return ``(compatible, reason)`` for an indicator type / aggregation pair."""
    kind = coerce_indicator_type(indicator_type)
    aggregation = coerce_temporal_aggregation(temporal_aggregation)
    if kind is None or aggregation is None:
        return True, None
    if aggregation in INCOMPATIBLE_AGGREGATIONS.get(kind, frozenset()):
        return False, f"{kind.value} indicator with {aggregation.value} temporal aggregation is incompatible"
    return True, None


def allows_time_conversion(
    indicator_type: str | IndicatorType | None,
    temporal_aggregation: str | TemporalAggregation | None = None,
) -> bool:
    """Whether a per-period value may be re-expressed over another period.

    ``temporal_aggregation`` decides when present; the indicator type is only
    consulted when it is missing or unrecognised.
    """
    aggregation = coerce_temporal_aggregation(temporal_aggregation)
    if aggregation is not None:
        compatible, reason = check_temporal_compatibility(indicator_type, aggregation)
        if not compatible:
            logger.warning(
                "temporal_aggregation_conflict",
                indicator_type=str(indicator_type),
                temporal_aggregation=aggregation.value,
                reason=reason,
            )
            return False
        return aggregation in TIME_CONVERTIBLE_AGGREGATIONS
    return get_normalization_rules(indicator_type).allow_time_dimension


def currency_eligible(
    indicator_type: str | IndicatorType | None,
    is_currency_denominated: bool | None = None,
    detected_currency: str | None = None,
) -> bool:
    """Whether currency conversion may be attempted at all."""
    kind = coerce_indicator_type(indicator_type)
    if kind in CURRENCY_INELIGIBLE_TYPES:
        if is_currency_denominated:
            logger.warning(
                "currency_flag_conflict",
                indicator_type=kind.value,
                is_currency_denominated=True,
            )
        return False
    if is_currency_denominated is not None:
        return is_currency_denominated
    return detected_currency is not None
