"""Builders for the per-item explain (audit) record."""
from __future__ import annotations

from ..models.schema import (
    ConversionExplain,
    FXExplain,
    FXTable,
    MagnitudeExplain,
    PeriodicityExplain,
    Scale,
    TimeScale,
)
from .scaling import magnitude_factor, time_factor


def _fmt(factor: float) -> str:
    return f"{factor:g}"


def fx_explain(
    currency: str,
    target_currency: str,
    fx: FXTable,
    rate: float,
    target_rate: float,
    source: str | None = None,
    source_id: str | None = None,
) -> FXExplain:
    return FXExplain(
        currency=currency,
        target_currency=target_currency,
        base=fx.base,
        rate=rate,
        target_rate=target_rate,
        as_of=fx.dates.get(currency) or fx.as_of,
        source=source or "fallback",
        source_id=source_id,
    )


def magnitude_explain(original: Scale, target: Scale) -> MagnitudeExplain:
    factor = magnitude_factor(original, target)
    if factor == 1:
        direction = "none"
    elif original.multiplier > target.multiplier:
        direction = "downscale"
    else:
        direction = "upscale"
    return MagnitudeExplain(
        original_scale=original,
        target_scale=target,
        factor=factor,
        direction=direction,
        description=f"{original.value} → {target.value} (×{_fmt(factor)})",
    )


def periodicity_explain(
    original: TimeScale | None,
    target: TimeScale,
    adjusted: bool,
    blocked_reason: str | None = None,
) -> PeriodicityExplain:
    """Describe a time conversion, or why none happened.

    ``upsample`` means moving to a finer period (year to month, divide);
    ``downsample`` a coarser one (month to year, multiply).
    """
    if adjusted and original is not None:
        factor = time_factor(original, target)
        if original.periods_per_year < target.periods_per_year:
            direction = "upsample"
            description = f"{original.value} → {target.value} (÷{_fmt(1 / factor)})"
        else:
            direction = "downsample"
            description = f"{original.value} → {target.value} (×{_fmt(factor)})"
        return PeriodicityExplain(
            original=original,
            target=target,
            adjusted=True,
            factor=factor,
            direction=direction,
            description=description,
        )

    if blocked_reason:
        description = f"Time conversion blocked ({blocked_reason})"
    elif original is not None:
        description = f"No conversion needed ({original.value})"
    else:
        description = "No source time scale available"
    return PeriodicityExplain(original=original, target=target, adjusted=False, description=description)


def conversion_explain(steps: list[str], factors: list[float], original_unit: str, normalized_unit: str) -> ConversionExplain:
    total = 1.0
    for factor in factors:
        total *= factor
    chain = " → ".join(steps) if steps else "no conversion"
    return ConversionExplain(
        steps=steps,
        summary=f"{original_unit or '(none)'} → {normalized_unit}: {chain}",
        total_factor=total,
    )
