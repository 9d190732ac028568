"""Batch orchestration data models.

Options accepted by the orchestrator and the partitioned result it returns.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from .schema import (
    AutoTargetResult,
    BatchItem,
    ErrorPolicy,
    Explain,
    FXTable,
    QualityScore,
    Scale,
    TimeScale,
)

if TYPE_CHECKING:
    from ..config import Settings


class TieBreakers(BaseModel):
    """Fallback preference per dimension when no value reaches the majority share.

    ``prefer-target`` uses the caller's explicit target, ``prefer-default``
    uses USD / millions / month, ``none`` leaves the dimension unconverted.
    """

    currency: str = "prefer-target"
    magnitude: str = "prefer-target"
    time: str = "prefer-target"


class AutoTargetOptions(BaseModel):
    dimensions: list[str] = Field(default_factory=lambda: ["currency", "magnitude", "time"])
    min_majority_share: float = Field(default=0.5, ge=0.0, le=1.0)
    tie_breakers: TieBreakers = Field(default_factory=TieBreakers)
    target_currency: str | None = None
    target_scale: Scale | None = None
    target_time_scale: TimeScale | None = None
    allow_list: list[str] | None = None
    deny_list: list[str] | None = None


class BatchOptions(BaseModel):
    """Controls validation, error handling, parallelism and conversion targets."""

    validate_quality: bool = Field(default=True, alias="validate")
    handle_errors: ErrorPolicy = ErrorPolicy.SKIP
    default_value: float | None = None
    default_unit: str | None = None
    parallel: bool = True
    concurrency: int = Field(default=10, ge=1)
    quality_threshold: float = Field(default=70.0, ge=0.0, le=100.0)
    to_currency: str | None = None
    to_magnitude: Scale | None = None
    to_time_scale: TimeScale | None = None
    fx: FXTable | None = None
    explain: bool = False
    fx_source: str | None = None
    fx_source_id: str | None = None
    auto_target_by_indicator: bool = False
    auto_targets: AutoTargetOptions = Field(default_factory=AutoTargetOptions)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_settings(cls, settings: Settings, **overrides) -> BatchOptions:
        """Build options from application settings, then apply *overrides*."""
        values = {
            "validate_quality": settings.validate_quality,
            "handle_errors": settings.handle_errors,
            "parallel": settings.parallel,
            "concurrency": settings.concurrency,
            "quality_threshold": settings.quality_threshold,
            "fx_source": settings.fx_source,
            "fx_source_id": settings.fx_source_id,
            "auto_targets": AutoTargetOptions(min_majority_share=settings.auto_target_min_share),
        }
        values.update(overrides)
        return cls.model_validate(values)


class NormalizedItem(BaseModel):
    item: BatchItem
    normalized: float
    normalized_unit: str
    explain: Explain | None = None
    used_default: bool = False


class FailedItem(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    item: BatchItem
    error: Exception
    reason: str


class SkippedItem(BaseModel):
    item: BatchItem
    reason: str


class BatchStats(BaseModel):
    total: int = 0
    processed: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    processing_time_ms: float = 0.0
    average_time_ms: float = 0.0


class BatchResult(BaseModel):
    successful: list[NormalizedItem] = Field(default_factory=list)
    failed: list[FailedItem] = Field(default_factory=list)
    skipped: list[SkippedItem] = Field(default_factory=list)
    quality: QualityScore | None = None
    auto_targets: dict[str, AutoTargetResult] = Field(default_factory=dict)
    stats: BatchStats = Field(default_factory=BatchStats)
