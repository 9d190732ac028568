"""Currency conversion against an FX snapshot, plus sanity checks on the snapshot."""
from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from ..errors import MissingExchangeRate
from ..models.schema import FXTable

logger = structlog.get_logger(__name__)

# Plausible units-per-USD ranges; only checked when the table is USD-based
REASONABLE_FX_RANGES: dict[str, tuple[float, float]] = {
    "EUR": (0.7, 1.3),
    "GBP": (0.6, 1.0),
    "CHF": (0.7, 1.2),
    "CAD": (1.0, 1.6),
    "AUD": (1.0, 1.8),
    "NZD": (1.2, 2.0),
    "JPY": (80.0, 200.0),
    "CNY": (6.0, 8.0),
    "KRW": (1000.0, 1500.0),
    "INR": (70.0, 100.0),
    "XOF": (400.0, 700.0),
    "XAF": (400.0, 700.0),
    "NGN": (400.0, 2000.0),
    "ZAR": (10.0, 25.0),
    "BRL": (3.0, 8.0),
    "MXN": (15.0, 25.0),
    "ARS": (100.0, 2000.0),
    "AED": (3.5, 4.0),
    "SAR": (3.5, 4.0),
}


@dataclass
class FXValidation:
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def convert_currency(value: float, from_currency: str, to_currency: str, fx: FXTable) -> tuple[float, float, float]:
    """Convert through the table base: ``value / rate[from] * rate[to]``.

    Returns ``(converted, from_rate, to_rate)``; rates are units per one unit
    of ``fx.base``. Raises ``MissingExchangeRate`` when either rate is absent
    or not positive.
    """
    from_rate = fx.rate_for(from_currency)
    if from_rate is None or from_rate <= 0:
        raise MissingExchangeRate(from_currency, fx.base)
    to_rate = fx.rate_for(to_currency)
    if to_rate is None or to_rate <= 0:
        raise MissingExchangeRate(to_currency, fx.base)
    return value / from_rate * to_rate, from_rate, to_rate


def validate_fx_rates(fx: FXTable) -> FXValidation:
    """Flag non-positive rates and rates far outside their usual range.

    A rate more than 10x outside its range is an error, a smaller deviation a
    warning. Currencies without a known range only get coarse bounds.
    """
    result = FXValidation()
    check_ranges = fx.base == "USD"
    for currency, rate in fx.rates.items():
        if rate <= 0:
            result.errors.append(f"{currency}: Rate {rate} is zero or negative")
            continue
        bounds = REASONABLE_FX_RANGES.get(currency) if check_ranges else None
        if bounds is None:
            if rate < 0.001:
                result.warnings.append(f"{currency}: Rate {rate} seems very low (< 0.001)")
            elif rate > 100_000:
                result.warnings.append(f"{currency}: Rate {rate} seems very high (> 100,000)")
            continue
        low, high = bounds
        if rate < low:
            factor = low / rate
            if factor > 10:
                result.errors.append(f"{currency}: Rate {rate} is {factor:.1f}x too low (expected {low}-{high})")
            else:
                result.warnings.append(f"{currency}: Rate {rate} is below expected range {low}-{high}")
        elif rate > high:
            factor = rate / high
            if factor > 10:
                result.errors.append(f"{currency}: Rate {rate} is {factor:.1f}x too high (expected {low}-{high})")
            else:
                result.warnings.append(f"{currency}: Rate {rate} is above expected range {low}-{high}")

    if result.errors or result.warnings:
        logger.warning("fx_table_suspicious", base=fx.base, errors=len(result.errors), warnings=len(result.warnings))
    return result


def suggest_fx_rate_correction(currency: str, rate: float) -> float | None:
    """Guess the intended rate for a value off by a power of ten; midpoint otherwise."""
    bounds = REASONABLE_FX_RANGES.get(currency.upper())
    if bounds is None:
        return None
    low, high = bounds
    if rate < low / 10:
        for factor in (1000, 100, 10):
            if low <= rate * factor <= high:
                return rate * factor
    if rate > high * 10:
        for factor in (1000, 100, 10):
            if low <= rate / factor <= high:
                return rate / factor
    return (low + high) / 2
