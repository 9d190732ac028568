"""Value normalization: currency, magnitude and time conversions under indicator rules.

Each dimension is resolved independently (explicit metadata first, then the
parsed unit), converted only when the rules allow it, and the output label is
assembled from the conversions that were actually applied.
"""

from __future__ import annotations

from typing import TypeVar

import structlog

from ..errors import UnresolvableUnit
from ..models.schema import (
    UNKNOWN_CURRENCY,
    Explain,
    FXTable,
    IndicatorType,
    NormalizationResult,
    ParsedUnit,
    Scale,
    TemporalAggregation,
    TimeScale,
    UnitCategory,
    UnitsExplain,
    coerce_indicator_type,
    coerce_temporal_aggregation,
)
from ..rules.indicator_rules import allows_time_conversion, currency_eligible
from ..units.custom import CustomUnitRegistry, parse_unit_with_custom
from ..units.parser import (
    currency_label,
    extract_currency,
    parse_scale,
    parse_time_scale,
)
from ..units.vocabulary import CURRENCY_CODES
from .explain import (
    conversion_explain,
    fx_explain,
    magnitude_explain,
    periodicity_explain,
)
from .fx import convert_currency
from .scaling import magnitude_factor, rescale_magnitude, rescale_time, time_factor

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Unit categories returned unchanged with their canonical label
PASSTHROUGH_CATEGORIES = frozenset({
    UnitCategory.PERCENTAGE,
    UnitCategory.INDEX,
    UnitCategory.RATIO,
    UnitCategory.FX_RATIO,
})

PASSTHROUGH_TYPES = frozenset({
    IndicatorType.PERCENTAGE,
    IndicatorType.INDEX,
    IndicatorType.SENTIMENT,
})

# Base units whose label already fixes the magnitude
NO_MAGNITUDE_CATEGORIES = frozenset({
    UnitCategory.PHYSICAL,
    UnitCategory.ENERGY,
    UnitCategory.TEMPERATURE,
    UnitCategory.CUSTOM,
})

LABELLED_CATEGORIES = NO_MAGNITUDE_CATEGORIES | {UnitCategory.COUNT}


def resolve(explicit: T | None, parsed: T | None) -> T | None:
    """Explicit metadata wins; the parsed value is only a fallback."""
    return explicit if explicit is not None else parsed


def coerce_currency(value: str | None) -> str | None:
    """Validate an explicit currency field. Invalid or empty values become ``None``."""
    if value is None or not value.strip():
        return None
    code = value.strip().upper()
    if code in CURRENCY_CODES or code == UNKNOWN_CURRENCY:
        return code
    detected = extract_currency(value)
    if detected is None:
        logger.warning("explicit_currency_invalid", currency_code=value)
    return detected


def coerce_scale(value: str | Scale | None) -> Scale | None:
    if value is None or isinstance(value, Scale):
        return value
    return parse_scale(value)


def coerce_time_scale(value: str | TimeScale | None) -> TimeScale | None:
    if value is None or isinstance(value, TimeScale):
        return value
    return parse_time_scale(value)


def normalize_value(
    value: float,
    unit: str | None,
    *,
    to_currency: str | None = None,
    to_scale: Scale | str | None = None,
    to_time_scale: TimeScale | str | None = None,
    fx: FXTable | None = None,
    explicit_currency: str | None = None,
    explicit_scale: Scale | str | None = None,
    explicit_time_scale: TimeScale | str | None = None,
    indicator_type: str | IndicatorType | None = None,
    temporal_aggregation: str | TemporalAggregation | None = None,
    is_currency_denominated: bool | None = None,
    custom_units: CustomUnitRegistry | None = None,
    explain: bool = False,
    fx_source: str | None = None,
    fx_source_id: str | None = None,
) -> NormalizationResult:
    """Normalize one value.

    Raises:
        UnresolvableUnit: the unit matched neither the general parser nor a
            custom domain and no explicit currency identifies it.
        MissingExchangeRate: currency conversion is eligible but a rate is
            missing from ``fx``.
    """
    original_unit = (unit or "").strip()
    parsed = parse_unit_with_custom(original_unit, custom_units)
    kind = coerce_indicator_type(indicator_type)
    aggregation = coerce_temporal_aggregation(temporal_aggregation)
    target_currency = coerce_currency(to_currency)
    target_scale = coerce_scale(to_scale)
    target_time = coerce_time_scale(to_time_scale)

    currency = resolve(coerce_currency(explicit_currency), parsed.currency)
    scale = resolve(coerce_scale(explicit_scale), parsed.scale)
    if parsed.scale == Scale.HUNDRED_MILLIONS:
        scale = Scale.HUNDRED_MILLIONS
    time_scale = resolve(coerce_time_scale(explicit_time_scale), parsed.time_scale)

    if _is_passthrough(parsed, kind, currency):
        label = parsed.normalized_label or original_unit
        return NormalizationResult(
            normalized_value=value,
            normalized_unit=label,
            explain=_passthrough_explain(original_unit, label) if explain else None,
        )

    if parsed.is_unknown and currency is None:
        raise UnresolvableUnit(original_unit)

    result = value
    steps: list[str] = []
    factors: list[float] = []
    record = Explain() if explain else None

    # ── Currency ──────────────────────────────────────────────────────────
    currency_converted = False
    if (
        currency is not None
        and target_currency is not None
        and fx is not None
        and currency != target_currency
        and currency_eligible(kind, is_currency_denominated, currency)
    ):
        if currency == UNKNOWN_CURRENCY:
            logger.info("currency_conversion_skipped", reason="unidentified local currency", unit=original_unit)
        else:
            result, from_rate, to_rate = convert_currency(result, currency, target_currency, fx)
            currency_converted = True
            steps.append(f"{currency}→{target_currency}")
            factors.append(to_rate / from_rate)
            if record is not None:
                record.fx = fx_explain(currency, target_currency, fx, from_rate, to_rate, fx_source, fx_source_id)

    # ── Magnitude ─────────────────────────────────────────────────────────
    magnitude_applied = False
    if target_scale is None and parsed.category == UnitCategory.COUNT and currency is None:
        # plain counts are expressed in ones unless a magnitude is requested
        target_scale = Scale.ONES
    if target_scale is not None and parsed.category not in NO_MAGNITUDE_CATEGORIES:
        source_scale = scale or Scale.ONES
        if source_scale != target_scale:
            result = rescale_magnitude(result, source_scale, target_scale)
            factors.append(magnitude_factor(source_scale, target_scale))
            steps.append(f"{source_scale.value}→{target_scale.value}")
            if record is not None:
                record.magnitude = magnitude_explain(source_scale, target_scale)
        scale = source_scale
        magnitude_applied = True

    # ── Time ──────────────────────────────────────────────────────────────
    time_allowed = allows_time_conversion(kind, aggregation)
    time_converted = False
    if target_time is not None:
        blocked_reason = None
        if not time_allowed:
            blocked_reason = str(aggregation or kind or "indicator rules")
            if time_scale is not None and time_scale != target_time:
                logger.debug(
                    "time_conversion_blocked",
                    indicator_type=kind,
                    temporal_aggregation=aggregation,
                    source=time_scale,
                    target=target_time,
                )
        elif time_scale is not None and time_scale != target_time:
            result = rescale_time(result, time_scale, target_time)
            factors.append(time_factor(time_scale, target_time))
            steps.append(f"{time_scale.value}→{target_time.value}")
            time_converted = True
        if record is not None:
            record.periodicity = periodicity_explain(time_scale, target_time, time_converted, blocked_reason)

    label = _build_label(
        parsed,
        original_unit,
        currency=target_currency if currency_converted else currency,
        scale=target_scale if magnitude_applied else scale,
        time=_time_label(parsed, time_scale, target_time, time_allowed, time_converted),
    )

    if record is not None:
        record.units = UnitsExplain(original_unit=original_unit, normalized_unit=label)
        record.conversion = conversion_explain(steps, factors, original_unit, label)

    return NormalizationResult(normalized_value=result, normalized_unit=label, explain=record)


def _is_passthrough(parsed: ParsedUnit, kind: IndicatorType | None, currency: str | None) -> bool:
    if parsed.category in PASSTHROUGH_CATEGORIES:
        return True
    if kind in PASSTHROUGH_TYPES:
        return True
    # a rate with no money attached is a dimensionless change
    return kind == IndicatorType.RATE and (currency is None or currency == UNKNOWN_CURRENCY)


def _passthrough_explain(original_unit: str, label: str) -> Explain:
    return Explain(
        units=UnitsExplain(original_unit=original_unit, normalized_unit=label),
        conversion=conversion_explain([], [], original_unit, label),
    )


def _time_label(
    parsed: ParsedUnit,
    time_scale: TimeScale | None,
    target: TimeScale | None,
    allowed: bool,
    converted: bool,
) -> TimeScale | None:
    if target is not None and allowed and (converted or time_scale == target):
        return target
    # otherwise only a suffix already present in the unit text survives
    return parsed.time_scale


def _build_label(
    parsed: ParsedUnit,
    original_unit: str,
    *,
    currency: str | None,
    scale: Scale | None,
    time: TimeScale | None,
) -> str:
    base_label = parsed.normalized_label if parsed.category in LABELLED_CATEGORIES else None
    parts: list[str] = []
    if currency is not None:
        parts.append(currency_label(currency))
    # "ones" is only spelled out when nothing else names the unit
    if scale is not None and not (scale == Scale.ONES and (currency is not None or base_label)):
        parts.append(scale.value)
    if base_label:
        parts.append(base_label)
    if parsed.denominator and parsed.category == UnitCategory.CURRENCY_AMOUNT:
        parts.append(f"per {parsed.denominator}")
    if time is not None:
        parts.append(f"per {time.value}")
    return " ".join(parts) if parts else original_unit
