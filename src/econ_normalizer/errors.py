"""Exceptions raised while normalizing economic series."""
from __future__ import annotations


class NormalizationError(Exception):
    """Base class for all normalization failures."""

    reason: str = "normalization failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.reason)


class UnresolvableUnit(NormalizationError):
    """The unit string matched neither the general parser nor a custom domain."""

    reason = "unresolvable unit"

    def __init__(self, unit: str):
        self.unit = unit
        super().__init__(f"Unresolvable unit: {unit!r}")


class MissingExchangeRate(NormalizationError):
    """An eligible currency conversion was requested but the FX table lacks a rate."""

    reason = "missing exchange rate"

    def __init__(self, currency: str, base: str):
        self.currency = currency
        self.base = base
        super().__init__(f"No exchange rate for {currency} (FX base {base})")


class QualityBelowThreshold(NormalizationError):
    """Batch-level quality gate failure."""

    reason = "quality below threshold"

    def __init__(self, score: int, threshold: float):
        self.score = score
        self.threshold = threshold
        super().__init__(f"Batch quality score {score} below threshold {threshold}")


class ItemProcessingError(NormalizationError):
    """Any other exception raised while normalizing a single item."""

    reason = "item processing error"

    def __init__(self, item_id: str | int | None, cause: BaseException):
        self.item_id = item_id
        super().__init__(f"Failed to normalize item {item_id!r}: {cause}")
        self.__cause__ = cause
