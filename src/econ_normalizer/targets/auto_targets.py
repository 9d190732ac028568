"""Consensus normalization targets for groups of same-indicator records.

For each indicator group and each dimension (currency, magnitude, time) the
most common value is selected when its share of the group reaches
``min_majority_share``; otherwise the configured tie-breaker decides.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Iterable

import structlog

from ..models.batch import AutoTargetOptions
from ..models.schema import AutoTargetResult, BatchItem, Scale, TimeScale
from ..normalization.normalizer import coerce_currency, coerce_scale, coerce_time_scale
from ..units.parser import parse_unit

logger = structlog.get_logger(__name__)

DIMENSIONS = ("currency", "magnitude", "time")

DEFAULT_TARGETS: dict[str, str] = {
    "currency": "USD",
    "magnitude": Scale.MILLIONS.value,
    "time": TimeScale.MONTH.value,
}

KeyResolver = Callable[[BatchItem], str | None]


def _default_key(item: BatchItem) -> str | None:
    return item.name


def _observed(item: BatchItem) -> dict[str, str | None]:
    """Per-dimension value of one item, explicit metadata before the parsed unit."""
    parsed = parse_unit(item.unit)
    currency = coerce_currency(item.currency_code) or parsed.currency
    scale = coerce_scale(item.scale) or parsed.scale
    if parsed.scale == Scale.HUNDRED_MILLIONS:
        scale = parsed.scale
    time_scale = coerce_time_scale(item.explicit_periodicity) or parsed.time_scale
    return {
        "currency": currency,
        "magnitude": (scale or Scale.ONES).value if currency or scale else None,
        "time": time_scale.value if time_scale else None,
    }


def _tie_break(dimension: str, options: AutoTargetOptions) -> tuple[str | None, str]:
    preference = getattr(options.tie_breakers, dimension)
    if preference == "prefer-target":
        explicit = {
            "currency": options.target_currency.upper() if options.target_currency else None,
            "magnitude": options.target_scale.value if options.target_scale else None,
            "time": options.target_time_scale.value if options.target_time_scale else None,
        }[dimension]
        return explicit, preference
    if preference == "prefer-default":
        return DEFAULT_TARGETS[dimension], preference
    return None, preference


def _select(
    dimension: str,
    counts: Counter,
    group_size: int,
    options: AutoTargetOptions,
) -> tuple[str | None, float, str, str | None]:
    """Return ``(chosen, dominance, reason_part, fallback_reason)``."""
    ranked = counts.most_common()
    if not ranked:
        # nothing to harmonize
        return None, 0.0, f"{dimension}=none", None

    top, top_count = ranked[0]
    dominance = top_count / max(group_size, 1)
    tied = len(ranked) > 1 and ranked[1][1] == top_count
    if dominance >= options.min_majority_share and not tied:
        return top, dominance, f"{dimension}=majority({top},{dominance:.2f})", None
    if tied:
        why = f"{dimension}: tie between {ranked[0][0]} and {ranked[1][0]}"
    else:
        why = f"{dimension}: top share {dominance:.2f} below {options.min_majority_share:.2f}"

    chosen, preference = _tie_break(dimension, options)
    if chosen is None:
        return None, dominance, f"{dimension}=none", why
    return chosen, dominance, f"{dimension}=tie-break({preference})", why


def compute_auto_targets(
    items: Iterable[BatchItem],
    options: AutoTargetOptions | None = None,
    key: KeyResolver | None = None,
) -> dict[str, AutoTargetResult]:
    """Compute one target per indicator group.

    Items without a key, or excluded by the allow/deny lists, are not grouped.
    """
    opts = options or AutoTargetOptions()
    resolve_key = key or _default_key
    dimensions = [d for d in DIMENSIONS if d in opts.dimensions]

    groups: dict[str, dict[str, Counter]] = {}
    sizes: Counter = Counter()
    for item in items:
        group = resolve_key(item)
        if not group:
            continue
        if opts.deny_list and group in opts.deny_list:
            continue
        if opts.allow_list is not None and group not in opts.allow_list:
            continue
        tallies = groups.setdefault(group, {d: Counter() for d in DIMENSIONS})
        for dimension, value in _observed(item).items():
            if value is not None:
                tallies[dimension][value] += 1
        sizes[group] += 1

    results: dict[str, AutoTargetResult] = {}
    for group, tallies in groups.items():
        size = sizes[group]
        result = AutoTargetResult(group_size=size)
        reasons: list[str] = []
        fallbacks: list[str] = []

        for dimension in DIMENSIONS:
            counts = tallies[dimension]
            total = sum(counts.values())
            if total:
                result.shares[dimension] = {value: count / total for value, count in counts.items()}

        for dimension in dimensions:
            chosen, dominance, reason, fallback = _select(dimension, tallies[dimension], size, opts)
            result.dominance[dimension] = dominance
            reasons.append(reason)
            if fallback is not None:
                fallbacks.append(fallback)
            if chosen is None:
                continue
            if dimension == "currency":
                result.currency = chosen
            elif dimension == "magnitude":
                result.scale = Scale(chosen)
            else:
                result.time_scale = TimeScale(chosen)

        result.reason = "; ".join(reasons) or None
        if fallbacks:
            result.used_fallback = True
            result.fallback_reason = "; ".join(fallbacks)
        results[group] = result
        logger.debug("auto_target_selected", indicator=group, reason=result.reason, used_fallback=result.used_fallback)

    return results
