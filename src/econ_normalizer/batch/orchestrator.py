"""Batch orchestrator: quality gate → auto targets → per-item normalization → aggregation.

Workers never touch the result directly. Every item produces exactly one
outcome record; outcomes are pushed onto a queue and a single collector task
owns the accumulator. Anything that cannot be normalized ends up in
``failed`` or ``skipped`` with a reason.
"""
from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import AsyncIterable, AsyncIterator, Callable, Iterable
from dataclasses import dataclass

from ..config import Settings
from ..errors import ItemProcessingError, NormalizationError, QualityBelowThreshold, UnresolvableUnit
from ..models.batch import (
    BatchOptions,
    BatchResult,
    BatchStats,
    FailedItem,
    NormalizedItem,
    SkippedItem,
)
from ..models.schema import (
    AutoTargetResult,
    BatchItem,
    ErrorPolicy,
    NormalizationResult,
    QualityDataPoint,
    Scale,
    Severity,
    TimeScale,
)
from ..normalization.normalizer import normalize_value
from ..quality.assessor import assess_data_quality
from ..targets.auto_targets import compute_auto_targets
from ..units.custom import CustomUnitRegistry
from ..utils.logging import get_logger, setup_logging

logger = get_logger(__name__)

QUALITY_SKIP_REASON = "failed quality validation"
CANCELLED_REASON = "cancelled"

ProgressCallback = Callable[[int, int], object]
Normalizer = Callable[..., NormalizationResult]


@dataclass(frozen=True)
class Targets:
    currency: str | None = None
    scale: Scale | None = None
    time_scale: TimeScale | None = None


@dataclass
class _Outcome:
    index: int
    item: BatchItem
    success: NormalizedItem | None = None
    failure: FailedItem | None = None
    skip: SkippedItem | None = None


class _Collector:
    """Single owner of the accumulator; drains outcomes from a queue."""

    def __init__(self, total: int, progress_callback: ProgressCallback | None):
        self.queue: asyncio.Queue[_Outcome | None] = asyncio.Queue()
        self.total = total
        self.progress_callback = progress_callback
        self.outcomes: list[_Outcome] = []
        self.processed = 0

    async def run(self) -> None:
        while True:
            outcome = await self.queue.get()
            if outcome is None:
                return
            self.outcomes.append(outcome)
            if outcome.skip is not None:
                continue
            self.processed += 1
            if self.progress_callback is not None:
                ret = self.progress_callback(self.processed, self.total)
                if inspect.isawaitable(ret):
                    await ret

    def fill(self, result: BatchResult) -> None:
        for outcome in sorted(self.outcomes, key=lambda o: o.index):
            if outcome.success is not None:
                result.successful.append(outcome.success)
            elif outcome.failure is not None:
                result.failed.append(outcome.failure)
            elif outcome.skip is not None:
                result.skipped.append(outcome.skip)


class BatchProcessor:
    """Normalizes batches of items under a configurable error and concurrency policy."""

    def __init__(
        self,
        options: BatchOptions | None = None,
        *,
        settings: Settings | None = None,
        custom_units: CustomUnitRegistry | None = None,
        normalizer: Normalizer = normalize_value,
    ):
        if settings is not None:
            setup_logging(settings)
        self.settings = settings or Settings()
        self.options = options or BatchOptions.from_settings(self.settings)
        self.custom_units = custom_units
        self._normalize = normalizer

    # ── Public API ───────────────────────────────────────────────────────

    async def process(
        self,
        items: Iterable[BatchItem],
        *,
        progress_callback: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> BatchResult:
        start = time.perf_counter()
        batch = list(items)
        opts = self.options
        result = BatchResult(stats=BatchStats(total=len(batch)))
        logger.info("batch_started", total=len(batch), parallel=opts.parallel, policy=opts.handle_errors.value)

        collector = _Collector(len(batch), progress_callback)
        collector_task = asyncio.create_task(collector.run())
        try:
            rejected = await self._quality_gate(batch, result, collector)
            pending = [(i, item) for i, item in enumerate(batch) if i not in rejected]
            targets = self._resolve_targets([item for _, item in pending], result)

            if opts.parallel and len(pending) > 1:
                await self._run_parallel(pending, targets, collector, cancel_event)
            else:
                await self._run_sequential(pending, targets, collector, cancel_event)
        finally:
            await collector.queue.put(None)
            await collector_task

        collector.fill(result)
        self._finish_stats(result, start)
        logger.info(
            "batch_completed",
            total=result.stats.total,
            successful=result.stats.successful,
            failed=result.stats.failed,
            skipped=result.stats.skipped,
            processing_time_ms=round(result.stats.processing_time_ms, 2),
        )
        return result

    async def process_with_retry(
        self,
        items: Iterable[BatchItem],
        max_retries: int | None = None,
        base_delay: float | None = None,
    ) -> BatchResult:
        """Run ``process`` and resubmit only the failed subset, with exponential backoff.

        ``max_retries`` is the total number of attempts. Successes and skips
        accumulate across attempts; ``failed`` holds the last attempt's failures.
        """
        attempts = max_retries if max_retries is not None else self.settings.max_retries
        delay = base_delay if base_delay is not None else self.settings.retry_base_delay
        batch = list(items)
        start = time.perf_counter()

        merged: BatchResult | None = None
        pending = batch
        for attempt in range(max(attempts, 1)):
            current = await self.process(pending)
            if merged is None:
                merged = current
            else:
                merged.successful.extend(current.successful)
                merged.skipped.extend(current.skipped)
                merged.failed = current.failed

            if not current.failed:
                break
            if attempt < attempts - 1:
                pending = [f.item for f in current.failed]
                wait = delay * 2**attempt
                logger.warning("batch_retry", attempt=attempt + 1, failed=len(pending), delay_s=wait)
                await asyncio.sleep(wait)

        merged.stats.total = len(batch)
        self._finish_stats(merged, start)
        return merged

    async def stream(self, items: Iterable[BatchItem] | AsyncIterable[BatchItem]) -> AsyncIterator[NormalizedItem]:
        """Normalize items one at a time, yielding successes as they are produced.

        The input is never buffered, so neither the quality gate nor auto
        targets apply; the explicit ``to_*`` options are the targets.
        """
        targets = self._explicit_targets()
        index = 0
        async for item in _iterate(items):
            outcome = self._run_item(index, item, targets)
            index += 1
            if outcome.success is not None:
                yield outcome.success
                continue
            entry = outcome.failure or outcome.skip
            logger.warning("stream_item_skipped", item_id=item.id, reason=entry.reason)

    # ── Stages ───────────────────────────────────────────────────────────

    async def _quality_gate(self, batch: list[BatchItem], result: BatchResult, collector: _Collector) -> set[int]:
        opts = self.options
        if not opts.validate_quality or not batch:
            return set()

        points = [
            QualityDataPoint(value=item.value, unit=item.unit, timestamp=item.timestamp, indicator_name=item.name)
            for item in batch
        ]
        score = assess_data_quality(points)
        result.quality = score
        if score.overall >= opts.quality_threshold:
            return set()

        logger.warning("quality_gate_failed", score=score.overall, threshold=opts.quality_threshold)
        if opts.handle_errors == ErrorPolicy.THROW:
            raise QualityBelowThreshold(score.overall, opts.quality_threshold)

        rejected = {
            issue.index
            for issue in score.issues
            if issue.severity == Severity.CRITICAL and issue.index is not None
        }
        for index in sorted(rejected):
            item = batch[index]
            await collector.queue.put(_Outcome(index, item, skip=SkippedItem(item=item, reason=QUALITY_SKIP_REASON)))
        return rejected

    def _explicit_targets(self) -> Targets:
        opts = self.options
        return Targets(
            currency=opts.to_currency.upper() if opts.to_currency else None,
            scale=opts.to_magnitude,
            time_scale=opts.to_time_scale,
        )

    def _resolve_targets(self, items: list[BatchItem], result: BatchResult) -> dict[str, Targets]:
        """Per-group targets; groups without an auto target use the explicit options."""
        opts = self.options
        if not opts.auto_target_by_indicator or not items:
            return {}

        auto = opts.auto_targets.model_copy(update={
            "target_currency": opts.auto_targets.target_currency or opts.to_currency,
            "target_scale": opts.auto_targets.target_scale or opts.to_magnitude,
            "target_time_scale": opts.auto_targets.target_time_scale or opts.to_time_scale,
        })
        selected = compute_auto_targets(items, auto)
        result.auto_targets = selected
        explicit = self._explicit_targets()
        return {group: _merge_targets(selection, explicit, auto.dimensions) for group, selection in selected.items()}

    async def _run_sequential(
        self,
        pending: list[tuple[int, BatchItem]],
        targets: dict[str, Targets],
        collector: _Collector,
        cancel_event: asyncio.Event | None,
    ) -> None:
        explicit = self._explicit_targets()
        for position, (index, item) in enumerate(pending):
            if cancel_event is not None and cancel_event.is_set():
                await self._cancel_rest(pending[position:], collector)
                return
            outcome = self._run_item(index, item, targets.get(item.name or "", explicit))
            await collector.queue.put(outcome)
            # yield so the collector can report progress between items
            await asyncio.sleep(0)

    async def _run_parallel(
        self,
        pending: list[tuple[int, BatchItem]],
        targets: dict[str, Targets],
        collector: _Collector,
        cancel_event: asyncio.Event | None,
    ) -> None:
        explicit = self._explicit_targets()
        size = self.options.concurrency

        async def worker(index: int, item: BatchItem) -> None:
            outcome = await asyncio.to_thread(self._run_item, index, item, targets.get(item.name or "", explicit))
            await collector.queue.put(outcome)

        for offset in range(0, len(pending), size):
            if cancel_event is not None and cancel_event.is_set():
                await self._cancel_rest(pending[offset:], collector)
                return
            chunk = pending[offset:offset + size]
            tasks = [asyncio.create_task(worker(index, item)) for index, item in chunk]

            if self.options.handle_errors == ErrorPolicy.THROW:
                done, rest = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
                for task in rest:
                    task.cancel()
                errors = [task.exception() for task in done if task.exception() is not None]
                if errors:
                    raise errors[0]
                continue

            settled = await asyncio.gather(*tasks, return_exceptions=True)
            for (index, item), outcome in zip(chunk, settled):
                if isinstance(outcome, Exception):
                    # worker bookkeeping failed after the item was evaluated
                    error = ItemProcessingError(item.id, outcome)
                    await collector.queue.put(
                        _Outcome(index, item, failure=FailedItem(item=item, error=error, reason=str(error)))
                    )
                elif isinstance(outcome, BaseException):
                    raise outcome

    async def _cancel_rest(self, rest: list[tuple[int, BatchItem]], collector: _Collector) -> None:
        logger.info("batch_cancelled", remaining=len(rest))
        for index, item in rest:
            await collector.queue.put(_Outcome(index, item, skip=SkippedItem(item=item, reason=CANCELLED_REASON)))

    # ── Per item ─────────────────────────────────────────────────────────

    def _run_item(self, index: int, item: BatchItem, targets: Targets) -> _Outcome:
        """Normalize one item and route any error through the configured policy.

        Under the ``throw`` policy errors propagate; otherwise exactly one
        outcome is returned.
        """
        opts = self.options
        try:
            normalized = self._normalize(
                item.value,
                item.unit,
                to_currency=targets.currency,
                to_scale=targets.scale,
                to_time_scale=targets.time_scale,
                fx=opts.fx,
                explicit_currency=item.currency_code,
                explicit_scale=item.scale,
                explicit_time_scale=item.explicit_periodicity,
                indicator_type=item.indicator_type,
                temporal_aggregation=item.temporal_aggregation,
                is_currency_denominated=item.is_currency_denominated,
                custom_units=self.custom_units,
                explain=opts.explain,
                fx_source=opts.fx_source,
                fx_source_id=opts.fx_source_id,
            )
        except NormalizationError as exc:
            return self._handle_error(index, item, exc)
        except Exception as exc:
            return self._handle_error(index, item, ItemProcessingError(item.id, exc))

        return _Outcome(
            index,
            item,
            success=NormalizedItem(
                item=item,
                normalized=normalized.normalized_value,
                normalized_unit=normalized.normalized_unit,
                explain=normalized.explain,
            ),
        )

    def _handle_error(self, index: int, item: BatchItem, error: NormalizationError) -> _Outcome:
        opts = self.options
        logger.warning("item_failed", item_id=item.id, error=str(error), policy=opts.handle_errors.value)

        if opts.handle_errors == ErrorPolicy.THROW:
            raise error

        if opts.handle_errors == ErrorPolicy.DEFAULT and opts.default_value is not None:
            return _Outcome(
                index,
                item,
                success=NormalizedItem(
                    item=item,
                    normalized=opts.default_value,
                    normalized_unit=opts.default_unit if opts.default_unit is not None else item.unit,
                    used_default=True,
                ),
            )

        if isinstance(error, UnresolvableUnit) and opts.handle_errors == ErrorPolicy.SKIP:
            return _Outcome(index, item, skip=SkippedItem(item=item, reason=str(error)))

        return _Outcome(index, item, failure=FailedItem(item=item, error=error, reason=str(error)))

    @staticmethod
    def _finish_stats(result: BatchResult, start: float) -> None:
        stats = result.stats
        stats.successful = len(result.successful)
        stats.failed = len(result.failed)
        stats.skipped = len(result.skipped)
        stats.processed = stats.successful + stats.failed
        stats.processing_time_ms = (time.perf_counter() - start) * 1000
        stats.average_time_ms = stats.processing_time_ms / stats.processed if stats.processed else 0.0


def _merge_targets(selection: AutoTargetResult, explicit: Targets, dimensions: list[str]) -> Targets:
    return Targets(
        currency=selection.currency if "currency" in dimensions else explicit.currency,
        scale=selection.scale if "magnitude" in dimensions else explicit.scale,
        time_scale=selection.time_scale if "time" in dimensions else explicit.time_scale,
    )


async def _iterate(items: Iterable[BatchItem] | AsyncIterable[BatchItem]) -> AsyncIterator[BatchItem]:
    if isinstance(items, AsyncIterable):
        async for item in items:
            yield item
    else:
        for item in items:
            yield item


# ---------------------------------------------------------------------------
# Module-level conveniences
# ---------------------------------------------------------------------------


async def process_batch(
    items: Iterable[BatchItem],
    options: BatchOptions | None = None,
    *,
    progress_callback: ProgressCallback | None = None,
    cancel_event: asyncio.Event | None = None,
    custom_units: CustomUnitRegistry | None = None,
) -> BatchResult:
    processor = BatchProcessor(options, custom_units=custom_units)
    return await processor.process(items, progress_callback=progress_callback, cancel_event=cancel_event)


async def stream_process(
    items: Iterable[BatchItem] | AsyncIterable[BatchItem],
    options: BatchOptions | None = None,
    *,
    custom_units: CustomUnitRegistry | None = None,
) -> AsyncIterator[NormalizedItem]:
    processor = BatchProcessor(options, custom_units=custom_units)
    async for normalized in processor.stream(items):
        yield normalized
