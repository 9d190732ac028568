"""Common schema for economic series normalization.

Enumerations for units, magnitudes and reporting periods, the upstream
classification vocabulary (indicator type and temporal aggregation), and the
records that flow between the parser, the normalizer, the quality assessor
and the batch orchestrator.
"""

from __future__ import annotations

import math
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class UnitCategory(StrEnum):
    CURRENCY_AMOUNT = "currency-amount"
    PERCENTAGE = "percentage"
    INDEX = "index"
    COUNT = "count"
    RATIO = "ratio"
    PHYSICAL = "physical"
    ENERGY = "energy"
    TEMPERATURE = "temperature"
    FX_RATIO = "fx-ratio"
    CUSTOM = "custom"
    UNKNOWN = "unknown"


class Scale(StrEnum):
    ONES = "ones"
    HUNDREDS = "hundreds"
    THOUSANDS = "thousands"
    MILLIONS = "millions"
    HUNDRED_MILLIONS = "hundred-millions"
    BILLIONS = "billions"
    TRILLIONS = "trillions"

    @property
    def multiplier(self) -> float:
        return SCALE_MULTIPLIERS[self]


class TimeScale(StrEnum):
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"

    @property
    def periods_per_year(self) -> int:
        return PERIODS_PER_YEAR[self]


class IndicatorType(StrEnum):
    STOCK = "stock"
    FLOW = "flow"
    BALANCE = "balance"
    CAPACITY = "capacity"
    VOLUME = "volume"
    COUNT = "count"
    PERCENTAGE = "percentage"
    RATIO = "ratio"
    SPREAD = "spread"
    SHARE = "share"
    PRICE = "price"
    YIELD = "yield"
    RATE = "rate"
    VOLATILITY = "volatility"
    GAP = "gap"
    INDEX = "index"
    CORRELATION = "correlation"
    ELASTICITY = "elasticity"
    MULTIPLIER = "multiplier"
    DURATION = "duration"
    PROBABILITY = "probability"
    THRESHOLD = "threshold"
    SENTIMENT = "sentiment"
    ALLOCATION = "allocation"
    OTHER = "other"


class TemporalAggregation(StrEnum):
    POINT_IN_TIME = "point-in-time"
    PERIOD_RATE = "period-rate"
    PERIOD_CUMULATIVE = "period-cumulative"
    PERIOD_AVERAGE = "period-average"
    PERIOD_TOTAL = "period-total"
    NOT_APPLICABLE = "not-applicable"


class ErrorPolicy(StrEnum):
    THROW = "throw"
    SKIP = "skip"
    DEFAULT = "default"


class Severity(StrEnum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


SCALE_MULTIPLIERS: dict[Scale, float] = {
    Scale.ONES: 1.0,
    Scale.HUNDREDS: 1e2,
    Scale.THOUSANDS: 1e3,
    Scale.MILLIONS: 1e6,
    Scale.HUNDRED_MILLIONS: 1e8,  # Chinese 亿 (yi)
    Scale.BILLIONS: 1e9,
    Scale.TRILLIONS: 1e12,
}

PERIODS_PER_YEAR: dict[TimeScale, int] = {
    TimeScale.YEAR: 1,
    TimeScale.QUARTER: 4,
    TimeScale.MONTH: 12,
    TimeScale.WEEK: 52,
    TimeScale.DAY: 365,
    TimeScale.HOUR: 365 * 24,
}

UNKNOWN_CURRENCY = "UNKNOWN"


def coerce_indicator_type(value: str | IndicatorType | None) -> IndicatorType | None:
    """Map an upstream indicator type label onto the taxonomy.

    Unrecognised labels become ``OTHER``; empty values stay ``None``.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        return IndicatorType(str(value).strip().lower())
    except ValueError:
        return IndicatorType.OTHER


def coerce_temporal_aggregation(
    value: str | TemporalAggregation | None,
) -> TemporalAggregation | None:
    """Map an upstream temporal aggregation label; unknown labels become ``None``."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        return TemporalAggregation(str(value).strip().lower())
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Parsing and FX
# ---------------------------------------------------------------------------


class ParsedUnit(BaseModel):
    """Structured view of a free-form unit string."""

    model_config = ConfigDict(frozen=True)

    original: str = ""
    category: UnitCategory = UnitCategory.UNKNOWN
    currency: str | None = None
    scale: Scale | None = None
    time_scale: TimeScale | None = None
    normalized_label: str | None = None
    denominator: str | None = None
    domain: str | None = None

    @property
    def is_unknown(self) -> bool:
        return self.category == UnitCategory.UNKNOWN

    @property
    def has_known_currency(self) -> bool:
        return self.currency is not None and self.currency != UNKNOWN_CURRENCY


class FXTable(BaseModel):
    """Snapshot of exchange rates expressed relative to ``base``.

    ``rates[code]`` is the number of units of ``code`` per one unit of base.
    """

    model_config = ConfigDict(frozen=True)

    base: str = "USD"
    rates: dict[str, float] = Field(default_factory=dict)
    dates: dict[str, str] = Field(default_factory=dict)
    as_of: str | None = None

    @field_validator("base")
    @classmethod
    def _upper_base(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("rates")
    @classmethod
    def _upper_rates(cls, v: dict[str, float]) -> dict[str, float]:
        return {code.strip().upper(): float(rate) for code, rate in v.items()}

    def rate_for(self, currency: str) -> float | None:
        code = currency.upper()
        if code == self.base:
            return 1.0
        return self.rates.get(code)


# ---------------------------------------------------------------------------
# Explain audit trail
# ---------------------------------------------------------------------------


class FXExplain(BaseModel):
    currency: str
    target_currency: str
    base: str
    rate: float
    target_rate: float = 1.0
    as_of: str | None = None
    source: str = "fallback"
    source_id: str | None = None


class MagnitudeExplain(BaseModel):
    original_scale: Scale
    target_scale: Scale
    factor: float
    direction: str  # "upscale", "downscale", "none"
    description: str


class PeriodicityExplain(BaseModel):
    original: TimeScale | None = None
    target: TimeScale
    adjusted: bool
    factor: float = 1.0
    direction: str = "none"  # "upsample", "downsample", "none"
    description: str | None = None


class UnitsExplain(BaseModel):
    original_unit: str
    normalized_unit: str


class ConversionExplain(BaseModel):
    steps: list[str] = Field(default_factory=list)
    summary: str = ""
    total_factor: float = 1.0


class Explain(BaseModel):
    """Audit record describing exactly which conversions were applied."""

    fx: FXExplain | None = None
    magnitude: MagnitudeExplain | None = None
    periodicity: PeriodicityExplain | None = None
    units: UnitsExplain | None = None
    conversion: ConversionExplain | None = None


class NormalizationResult(BaseModel):
    normalized_value: float
    normalized_unit: str
    explain: Explain | None = None


# ---------------------------------------------------------------------------
# Batch input
# ---------------------------------------------------------------------------


class BatchItem(BaseModel):
    """A single record submitted for normalization.

    Explicit metadata fields take precedence over whatever can be parsed from
    ``unit``; ``metadata`` is carried through untouched.
    """

    id: str | int | None = None
    name: str | None = None
    value: float
    unit: str = ""
    currency_code: str | None = None
    scale: str | None = None
    periodicity: str | None = None
    reporting_frequency: str | None = None
    indicator_type: str | None = None
    temporal_aggregation: str | None = None
    is_currency_denominated: bool | None = None
    unit_type: str | None = None
    timestamp: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def explicit_periodicity(self) -> str | None:
        return self.periodicity or self.reporting_frequency


# ---------------------------------------------------------------------------
# Quality
# ---------------------------------------------------------------------------


class QualityDataPoint(BaseModel):
    value: float | None = None
    unit: str | None = None
    timestamp: datetime | None = None
    source: str | None = None
    indicator_name: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def has_value(self) -> bool:
        return self.value is not None and not math.isnan(self.value)


class QualityIssue(BaseModel):
    """A single data quality problem."""

    severity: Severity
    type: str
    message: str
    record: QualityDataPoint | None = None
    index: int | None = None


class QualityDimensions(BaseModel):
    completeness: float = 100.0
    validity: float = 100.0
    consistency: float = 100.0
    accuracy: float = 100.0
    timeliness: float = 100.0
    uniqueness: float = 100.0


class QualityScore(BaseModel):
    overall: int = Field(ge=0, le=100)
    dimensions: QualityDimensions
    issues: list[QualityIssue] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Auto targets
# ---------------------------------------------------------------------------


class AutoTargetResult(BaseModel):
    """Consensus normalization target for one indicator group."""

    currency: str | None = None
    scale: Scale | None = None
    time_scale: TimeScale | None = None
    dominance: dict[str, float] = Field(default_factory=dict)
    shares: dict[str, dict[str, float]] = Field(default_factory=dict)
    group_size: int = 0
    used_fallback: bool = False
    fallback_reason: str | None = None
    reason: str | None = None
