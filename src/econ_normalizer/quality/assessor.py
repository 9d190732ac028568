"""Data quality assessment across six dimensions.

Each dimension check is independent and returns a score in 0-100 plus the
issues it found; the overall score is their weighted average. Issues carry the
index of the offending point so callers can map them back to their records.
"""

from __future__ import annotations

import math
import statistics
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog

from ..models.schema import (
    QualityDataPoint,
    QualityDimensions,
    QualityIssue,
    QualityScore,
    Severity,
    UnitCategory,
)
from ..units.parser import parse_unit

logger = structlog.get_logger(__name__)

DIMENSION_WEIGHTS: dict[str, float] = {
    "completeness": 0.25,
    "validity": 0.25,
    "consistency": 0.15,
    "accuracy": 0.15,
    "timeliness": 0.10,
    "uniqueness": 0.10,
}

STALE_DAYS = 365
AGING_DAYS = 90
MIN_GAP_DAYS = 45.0
GAP_TOLERANCE = 1.5
MAX_PERCENTAGE = 1000
MAX_CV = 2.0

OutlierMethod = str | Callable[[list[float]], list[int]]


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class QualityRule:
    """Caller-supplied check; ``check`` returns False for a failing point."""

    name: str
    check: Callable[[QualityDataPoint], bool]
    severity: Severity = Severity.WARNING
    message: str = ""


@dataclass
class DataSchema:
    required_fields: list[str] = field(default_factory=list)
    min_value: float | None = None
    max_value: float | None = None
    allowed_units: list[str] | None = None


@dataclass
class QualityOptions:
    check_completeness: bool = True
    check_consistency: bool = True
    check_outliers: bool = True
    outlier_method: OutlierMethod = "iqr"
    zscore_threshold: float = 3.0
    expected_schema: DataSchema | None = None
    custom_rules: list[QualityRule] = field(default_factory=list)
    as_of: datetime | None = None


@dataclass
class _DimensionResult:
    score: float = 100.0
    issues: list[QualityIssue] = field(default_factory=list)

    def add(self, severity: Severity, type_: str, message: str, point=None, index=None) -> None:
        self.issues.append(QualityIssue(severity=severity, type=type_, message=message, record=point, index=index))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def assess_data_quality(
    points: Sequence[QualityDataPoint] | QualityDataPoint,
    options: QualityOptions | None = None,
) -> QualityScore:
    opts = options or QualityOptions()
    data = [points] if isinstance(points, QualityDataPoint) else list(points)

    if not data:
        dimensions = QualityDimensions(**{name: 0.0 for name in DIMENSION_WEIGHTS})
        issues = [QualityIssue(severity=Severity.CRITICAL, type="no_data", message="No data points to assess")]
        return QualityScore(
            overall=0,
            dimensions=dimensions,
            issues=issues,
            recommendations=generate_recommendations(issues, dimensions),
        )

    dimensions = QualityDimensions()
    issues: list[QualityIssue] = []

    if opts.check_completeness:
        result = check_completeness(data, opts.expected_schema)
        dimensions.completeness = result.score
        issues.extend(result.issues)

    result = check_validity(data, opts.expected_schema)
    dimensions.validity = result.score
    issues.extend(result.issues)

    if opts.check_consistency and len(data) > 1:
        result = check_consistency(data)
        dimensions.consistency = result.score
        issues.extend(result.issues)

    if opts.check_outliers and len(data) > 2:
        result = detect_outliers(data, opts.outlier_method, opts.zscore_threshold)
        dimensions.accuracy = result.score
        issues.extend(result.issues)

    if any(p.timestamp is not None for p in data):
        result = check_timeliness(data, opts.as_of)
        dimensions.timeliness = result.score
        issues.extend(result.issues)

    result = check_uniqueness(data)
    dimensions.uniqueness = result.score
    issues.extend(result.issues)

    for rule in opts.custom_rules:
        for index, point in enumerate(data):
            if not rule.check(point):
                issues.append(QualityIssue(
                    severity=rule.severity,
                    type=f"custom_{rule.name}",
                    message=rule.message or f"Custom rule {rule.name} failed",
                    record=point,
                    index=index,
                ))

    overall = calculate_overall_score(dimensions)
    logger.debug("quality_assessed", points=len(data), overall=overall, issues=len(issues))
    return QualityScore(
        overall=overall,
        dimensions=dimensions,
        issues=issues,
        recommendations=generate_recommendations(issues, dimensions),
    )


# ---------------------------------------------------------------------------
# Dimension checks
# ---------------------------------------------------------------------------


def check_completeness(data: list[QualityDataPoint], schema: DataSchema | None = None) -> _DimensionResult:
    result = _DimensionResult()
    missing = 0

    for index, point in enumerate(data):
        if not point.has_value:
            result.add(Severity.CRITICAL, "missing_value", "Missing or invalid value", point, index)
            missing += 1
        if not point.unit or not point.unit.strip() or point.unit.strip().lower() == "unknown":
            result.add(Severity.WARNING, "missing_unit", "Missing or unknown unit", point, index)
            missing += 1
        if schema is not None:
            for name in schema.required_fields:
                if _field_value(point, name) is None:
                    result.add(Severity.WARNING, "missing_field", f"Missing required field: {name}", point, index)
                    missing += 1

    for index, gap_days in _temporal_gaps(data):
        result.add(
            Severity.WARNING,
            "temporal_gap",
            f"Gap of {gap_days:.0f} days before this observation",
            data[index],
            index,
        )
        missing += 1

    result.score = max(0.0, 100 - missing / len(data) * 100)
    return result


def check_validity(data: list[QualityDataPoint], schema: DataSchema | None = None) -> _DimensionResult:
    result = _DimensionResult()
    invalid = 0

    for index, point in enumerate(data):
        if point.has_value and not math.isfinite(point.value):
            result.add(Severity.CRITICAL, "non_finite_value", f"Non-finite value: {point.value}", point, index)
            invalid += 1
            continue

        if schema is not None and point.has_value:
            if schema.min_value is not None and point.value < schema.min_value:
                result.add(
                    Severity.WARNING,
                    "value_out_of_range",
                    f"Value {point.value} below minimum {schema.min_value}",
                    point,
                    index,
                )
                invalid += 1
            if schema.max_value is not None and point.value > schema.max_value:
                result.add(
                    Severity.WARNING,
                    "value_out_of_range",
                    f"Value {point.value} above maximum {schema.max_value}",
                    point,
                    index,
                )
                invalid += 1

        parsed = parse_unit(point.unit)
        if point.unit and parsed.category == UnitCategory.UNKNOWN:
            result.add(Severity.WARNING, "invalid_unit", f"Unrecognized unit: {point.unit}", point, index)
            invalid += 1

        if schema is not None and schema.allowed_units is not None and point.unit not in schema.allowed_units:
            result.add(Severity.WARNING, "unexpected_unit", f'Unit "{point.unit}" not in allowed list', point, index)
            invalid += 1

        if parsed.category == UnitCategory.PERCENTAGE and point.has_value and abs(point.value) > MAX_PERCENTAGE:
            result.add(
                Severity.WARNING,
                "suspicious_percentage",
                f"Percentage value {point.value} seems unusually large",
                point,
                index,
            )
            invalid += 1

    result.score = max(0.0, 100 - invalid / len(data) * 50)
    return result


def check_consistency(data: list[QualityDataPoint]) -> _DimensionResult:
    result = _DimensionResult()

    units = sorted({p.unit.strip() for p in data if p.unit and p.unit.strip()})
    if len(units) > 1:
        result.add(Severity.WARNING, "inconsistent_units", f"Multiple units found: {', '.join(units)}")

    values = _finite_values(data)
    if len(values) > 1:
        numbers = [v for _, v in values]
        # exact mean; fmean overflows near the float limit
        mean = statistics.mean(numbers)
        if mean != 0:
            cv = statistics.pstdev(numbers) / abs(mean)
            if cv > MAX_CV:
                result.add(Severity.INFO, "high_variability", f"High coefficient of variation: {cv:.2f}")

        signs = {math.copysign(1, v) if v else 0 for _, v in values}
        if len(signs) > 1 and 0 not in signs:
            result.add(Severity.WARNING, "sign_changes", "Values change sign (positive/negative)")

    result.score = max(0.0, 100 - len(result.issues) * 20)
    return result


def detect_outliers(
    data: list[QualityDataPoint],
    method: OutlierMethod = "iqr",
    zscore_threshold: float = 3.0,
) -> _DimensionResult:
    result = _DimensionResult()
    indexed = _finite_values(data)
    values = [v for _, v in indexed]
    if len(values) < 3:
        return result

    if callable(method):
        positions = method(values)
    elif method == "zscore":
        positions = outliers_zscore(values, zscore_threshold)
    else:
        positions = outliers_iqr(values)

    for position in positions:
        index, value = indexed[position]
        result.add(Severity.WARNING, "outlier", f"Potential outlier detected: {value}", data[index], index)

    result.score = max(0.0, 100 - len(positions) / len(data) * 100)
    return result


def outliers_iqr(values: list[float]) -> list[int]:
    ordered = sorted(values)
    q1 = ordered[math.floor(len(ordered) * 0.25)]
    q3 = ordered[math.floor(len(ordered) * 0.75)]
    spread = q3 - q1
    lower, upper = q1 - 1.5 * spread, q3 + 1.5 * spread
    return [i for i, v in enumerate(values) if v < lower or v > upper]


def outliers_zscore(values: list[float], threshold: float = 3.0) -> list[int]:
    mean = statistics.mean(values)
    std = statistics.pstdev(values)
    if std == 0:
        return []
    return [i for i, v in enumerate(values) if abs((v - mean) / std) > threshold]


def check_timeliness(data: list[QualityDataPoint], as_of: datetime | None = None) -> _DimensionResult:
    result = _DimensionResult()
    now = _aware(as_of or datetime.now(timezone.utc))
    stale = 0

    for index, point in enumerate(data):
        if point.timestamp is None:
            continue
        days = (now - _aware(point.timestamp)).total_seconds() / 86400
        if days > STALE_DAYS:
            result.add(Severity.WARNING, "stale_data", f"Data is {math.floor(days)} days old", point, index)
            stale += 1
        elif days > AGING_DAYS:
            result.add(Severity.INFO, "aging_data", f"Data is {math.floor(days)} days old", point, index)

    result.score = max(0.0, 100 - stale / len(data) * 50)
    return result


def check_uniqueness(data: list[QualityDataPoint]) -> _DimensionResult:
    result = _DimensionResult()
    seen: set[tuple] = set()
    duplicates = 0

    for index, point in enumerate(data):
        key = (point.value, point.unit, point.timestamp)
        if key in seen:
            result.add(Severity.WARNING, "duplicate", "Duplicate data point detected", point, index)
            duplicates += 1
        seen.add(key)

    result.score = max(0.0, 100 - duplicates / len(data) * 100)
    return result


# ---------------------------------------------------------------------------
# Scoring and recommendations
# ---------------------------------------------------------------------------


def calculate_overall_score(dimensions: QualityDimensions) -> int:
    weighted = sum(getattr(dimensions, name) * weight for name, weight in DIMENSION_WEIGHTS.items())
    total = sum(DIMENSION_WEIGHTS.values())
    # half-up rounding, then clamp
    return min(100, max(0, math.floor(weighted / total + 0.5)))


def generate_recommendations(issues: list[QualityIssue], dimensions: QualityDimensions) -> list[str]:
    recommendations: list[str] = []

    critical = sum(1 for i in issues if i.severity == Severity.CRITICAL)
    if critical:
        recommendations.append(f"Address {critical} critical data quality issues immediately")

    if dimensions.completeness < 80:
        recommendations.append("Improve data completeness by filling missing values")
    if dimensions.consistency < 80:
        recommendations.append("Standardize units and formats for consistency")
    if dimensions.validity < 80:
        recommendations.append("Validate data against expected ranges and formats")
    if dimensions.accuracy < 80:
        recommendations.append("Review and validate outliers before processing")
    if dimensions.timeliness < 80:
        recommendations.append("Update stale data to ensure current relevance")
    if dimensions.uniqueness < 90:
        recommendations.append("Remove duplicate entries to ensure data integrity")

    types = {i.type for i in issues}
    if "invalid_unit" in types:
        recommendations.append("Standardize unit formats so they can be parsed")
    if "outlier" in types:
        recommendations.append("Investigate outliers - they may be data errors or significant events")
    if "temporal_gap" in types:
        recommendations.append("Backfill missing periods in the series")
    if "no_data" in types:
        recommendations.append("Provide at least one data point")

    return recommendations


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _finite_values(data: list[QualityDataPoint]) -> list[tuple[int, float]]:
    return [(i, p.value) for i, p in enumerate(data) if p.has_value and math.isfinite(p.value)]


def _field_value(point: QualityDataPoint, name: str):
    if name in QualityDataPoint.model_fields:
        return getattr(point, name)
    return point.metadata.get(name)


def _aware(ts: datetime) -> datetime:
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


def _temporal_gaps(data: list[QualityDataPoint]) -> list[tuple[int, float]]:
    """Return ``(index, gap_days)`` for gaps well beyond the series' usual spacing."""
    stamped = sorted(
        ((_aware(p.timestamp), i) for i, p in enumerate(data) if p.timestamp is not None),
        key=lambda pair: pair[0],
    )
    if len(stamped) < 3:
        return []
    gaps = [
        ((stamped[k][0] - stamped[k - 1][0]).total_seconds() / 86400, stamped[k][1])
        for k in range(1, len(stamped))
    ]
    usual = statistics.median(g for g, _ in gaps)
    limit = max(GAP_TOLERANCE * usual, MIN_GAP_DAYS)
    return [(index, gap) for gap, index in gaps if gap > limit]
