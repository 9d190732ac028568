"""Test batch orchestration: error policies, quality gate, concurrency, retries and streaming."""
import asyncio
from unittest.mock import MagicMock

import pytest

from econ_normalizer.batch.orchestrator import (
    CANCELLED_REASON,
    QUALITY_SKIP_REASON,
    BatchProcessor,
    process_batch,
    stream_process,
)
from econ_normalizer.errors import (
    ItemProcessingError,
    MissingExchangeRate,
    QualityBelowThreshold,
    UnresolvableUnit,
)
from econ_normalizer.models.batch import BatchOptions
from econ_normalizer.models.schema import ErrorPolicy, Scale
from econ_normalizer.normalization.normalizer import normalize_value
from tests.factories import make_fx, make_item, make_items, make_options


def _assert_partitioned(result):
    stats = result.stats
    assert stats.total == stats.successful + stats.failed + stats.skipped
    assert stats.processed == stats.successful + stats.failed
    assert stats.successful == len(result.successful)
    assert stats.failed == len(result.failed)
    assert stats.skipped == len(result.skipped)


def _mixed_batch():
    return [
        make_item(100.0, "USD Million", item_id="ok"),
        make_item(1.0, "widgets", item_id="unknown-unit"),
        make_item(5.0, "CHF Million", item_id="no-rate"),
    ]


class TestProcess:
    @pytest.mark.asyncio
    async def test_all_successful(self):
        result = await process_batch(make_items(5), make_options())
        assert result.stats.successful == 5
        assert [n.item.id for n in result.successful] == [0, 1, 2, 3, 4]
        _assert_partitioned(result)

    @pytest.mark.asyncio
    async def test_empty_batch(self):
        result = await process_batch([], make_options(validate_quality=True))
        assert result.stats.total == 0
        assert result.quality is None
        _assert_partitioned(result)

    @pytest.mark.asyncio
    async def test_explicit_targets_applied(self):
        options = make_options(to_currency="usd", to_magnitude=Scale.BILLIONS, fx=make_fx())
        result = await process_batch([make_item(850.0, "EUR Million")], options)
        normalized = result.successful[0]
        assert normalized.normalized == pytest.approx(1.0)
        assert normalized.normalized_unit == "USD billions"

    @pytest.mark.asyncio
    async def test_explain_attached(self):
        options = make_options(to_currency="USD", fx=make_fx(), explain=True, fx_source="live")
        result = await process_batch([make_item(85.0, "EUR Million")], options)
        assert result.successful[0].explain.fx.source == "live"

    @pytest.mark.asyncio
    async def test_custom_units(self, custom_registry):
        result = await process_batch([make_item(2.0, "bitcoin")], make_options(), custom_units=custom_registry)
        assert result.successful[0].normalized_unit == "BTC"

    @pytest.mark.asyncio
    async def test_options_from_settings(self, test_settings):
        processor = BatchProcessor(settings=test_settings)
        assert processor.options.parallel is False
        result = await processor.process(make_items(2))
        assert result.stats.successful == 2


class TestErrorPolicies:
    @pytest.mark.asyncio
    async def test_skip(self):
        options = make_options(handle_errors=ErrorPolicy.SKIP, to_currency="USD", fx=make_fx())
        result = await process_batch(_mixed_batch(), options)
        assert [n.item.id for n in result.successful] == ["ok"]
        assert [s.item.id for s in result.skipped] == ["unknown-unit"]
        assert "Unresolvable unit" in result.skipped[0].reason
        assert [f.item.id for f in result.failed] == ["no-rate"]
        assert isinstance(result.failed[0].error, MissingExchangeRate)
        _assert_partitioned(result)

    @pytest.mark.asyncio
    async def test_default_with_value(self):
        options = make_options(
            handle_errors=ErrorPolicy.DEFAULT,
            default_value=0.0,
            default_unit="n/a",
            to_currency="USD",
            fx=make_fx(),
        )
        result = await process_batch(_mixed_batch(), options)
        assert result.stats.successful == 3
        defaults = [n for n in result.successful if n.used_default]
        assert [n.item.id for n in defaults] == ["unknown-unit", "no-rate"]
        assert all(n.normalized == 0.0 and n.normalized_unit == "n/a" for n in defaults)

    @pytest.mark.asyncio
    async def test_default_unit_falls_back_to_item_unit(self):
        options = make_options(handle_errors=ErrorPolicy.DEFAULT, default_value=-1.0)
        result = await process_batch([make_item(1.0, "widgets")], options)
        assert result.successful[0].normalized_unit == "widgets"

    @pytest.mark.asyncio
    async def test_default_without_value_fails(self):
        options = make_options(handle_errors=ErrorPolicy.DEFAULT)
        result = await process_batch([make_item(1.0, "widgets")], options)
        assert result.stats.failed == 1
        assert isinstance(result.failed[0].error, UnresolvableUnit)

    @pytest.mark.asyncio
    async def test_throw(self):
        with pytest.raises(UnresolvableUnit):
            await process_batch(_mixed_batch(), make_options(handle_errors=ErrorPolicy.THROW))

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_wrapped(self):
        normalizer = MagicMock(side_effect=RuntimeError("boom"))
        processor = BatchProcessor(make_options(), normalizer=normalizer)
        result = await processor.process([make_item(item_id="x")])
        failure = result.failed[0]
        assert isinstance(failure.error, ItemProcessingError)
        assert isinstance(failure.error.__cause__, RuntimeError)
        assert "boom" in failure.reason


class TestQualityGate:
    @pytest.mark.asyncio
    async def test_critical_items_skipped_below_threshold(self):
        items = [make_item(100.0, item_id="good"), make_item(float("inf"), item_id="bad")]
        result = await process_batch(items, make_options(validate_quality=True, quality_threshold=100))
        assert result.quality is not None
        assert result.quality.overall < 100
        assert [n.item.id for n in result.successful] == ["good"]
        assert [(s.item.id, s.reason) for s in result.skipped] == [("bad", QUALITY_SKIP_REASON)]
        _assert_partitioned(result)

    @pytest.mark.asyncio
    async def test_nothing_skipped_at_threshold(self):
        items = [make_item(100.0), make_item(float("inf"))]
        result = await process_batch(items, make_options(validate_quality=True, quality_threshold=0))
        assert result.skipped == []
        assert result.stats.successful == 2

    @pytest.mark.asyncio
    async def test_values_near_float_limit(self):
        items = [make_item(1.7e308, "USD"), make_item(1.7e308, "USD"), make_item(1.0, "USD")]
        result = await process_batch(items, make_options(validate_quality=True, quality_threshold=0))
        assert result.quality is not None
        assert result.stats.successful == 3

    @pytest.mark.asyncio
    async def test_throw_policy_raises(self):
        items = [make_item(100.0), make_item(float("inf"))]
        options = make_options(validate_quality=True, quality_threshold=100, handle_errors=ErrorPolicy.THROW)
        with pytest.raises(QualityBelowThreshold) as exc_info:
            await process_batch(items, options)
        assert exc_info.value.threshold == 100

    @pytest.mark.asyncio
    async def test_validate_alias(self):
        options = BatchOptions.model_validate({"validate": False, "parallel": False})
        assert options.validate_quality is False
        result = await process_batch([make_item(float("inf"))], options)
        assert result.quality is None


class TestParallel:
    @pytest.mark.asyncio
    async def test_results_in_input_order(self):
        result = await process_batch(make_items(10), make_options(parallel=True, concurrency=3))
        assert [n.item.id for n in result.successful] == list(range(10))
        _assert_partitioned(result)

    @pytest.mark.asyncio
    async def test_errors_partitioned(self):
        options = make_options(parallel=True, concurrency=2, to_currency="USD", fx=make_fx())
        result = await process_batch(_mixed_batch() * 2, options)
        assert result.stats.successful == 2
        assert result.stats.skipped == 2
        assert result.stats.failed == 2

    @pytest.mark.asyncio
    async def test_throw_propagates(self):
        options = make_options(parallel=True, handle_errors=ErrorPolicy.THROW)
        with pytest.raises(UnresolvableUnit):
            await process_batch(make_items(3) + [make_item(1.0, "widgets")], options)


class TestProgressAndCancellation:
    @pytest.mark.asyncio
    async def test_progress_reported(self):
        calls = []
        await process_batch(make_items(3), make_options(), progress_callback=lambda done, total: calls.append((done, total)))
        assert calls == [(1, 3), (2, 3), (3, 3)]

    @pytest.mark.asyncio
    async def test_async_progress_callback(self):
        calls = []

        async def on_progress(done, total):
            calls.append(done)

        await process_batch(make_items(4), make_options(parallel=True), progress_callback=on_progress)
        assert sorted(calls) == [1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_skipped_items_not_counted(self):
        calls = []
        items = make_items(2) + [make_item(1.0, "widgets")]
        await process_batch(items, make_options(), progress_callback=lambda done, total: calls.append((done, total)))
        assert calls == [(1, 3), (2, 3)]

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self):
        event = asyncio.Event()
        event.set()
        result = await process_batch(make_items(4), make_options(), cancel_event=event)
        assert result.stats.successful == 0
        assert {s.reason for s in result.skipped} == {CANCELLED_REASON}
        assert result.stats.skipped == 4

    @pytest.mark.asyncio
    async def test_cancelled_mid_batch(self):
        event = asyncio.Event()

        def on_progress(done, total):
            if done == 2:
                event.set()

        result = await process_batch(make_items(10), make_options(), progress_callback=on_progress, cancel_event=event)
        assert 2 <= result.stats.successful < 10
        assert result.skipped
        assert all(s.reason == CANCELLED_REASON for s in result.skipped)
        _assert_partitioned(result)


class TestRetry:
    @pytest.mark.asyncio
    async def test_failed_subset_resubmitted(self, test_settings):
        seen = set()

        def flaky(value, unit, **kwargs):
            if unit == "CHF Million" and unit not in seen:
                seen.add(unit)
                raise MissingExchangeRate("CHF", "USD")
            return normalize_value(value, unit, **kwargs)

        normalizer = MagicMock(side_effect=flaky)
        items = make_items(2) + [make_item(1.0, "CHF Million", item_id="chf")]
        processor = BatchProcessor(make_options(), settings=test_settings, normalizer=normalizer)
        result = await processor.process_with_retry(items)

        assert result.stats.successful == 3
        assert result.failed == []
        assert result.stats.total == 3
        assert normalizer.call_count == 4
        _assert_partitioned(result)

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, test_settings):
        normalizer = MagicMock(side_effect=MissingExchangeRate("CHF", "USD"))
        processor = BatchProcessor(make_options(), settings=test_settings, normalizer=normalizer)
        result = await processor.process_with_retry([make_item(item_id="chf")], max_retries=3)
        assert result.stats.failed == 1
        assert normalizer.call_count == 3

    @pytest.mark.asyncio
    async def test_skips_are_not_retried(self, test_settings):
        processor = BatchProcessor(make_options(), settings=test_settings)
        result = await processor.process_with_retry([make_item(1.0, "widgets"), make_item()])
        assert result.stats.skipped == 1
        assert result.stats.successful == 1


class TestStreaming:
    @pytest.mark.asyncio
    async def test_sync_iterable(self):
        items = make_items(2) + [make_item(1.0, "widgets")]
        streamed = [n async for n in stream_process(items, make_options())]
        assert [n.item.id for n in streamed] == [0, 1]

    @pytest.mark.asyncio
    async def test_async_iterable(self):
        async def source():
            for item in make_items(3):
                yield item

        options = make_options(to_magnitude=Scale.BILLIONS)
        streamed = [n async for n in stream_process(source(), options)]
        assert [n.normalized for n in streamed] == [pytest.approx(0.1), pytest.approx(0.101), pytest.approx(0.102)]

    @pytest.mark.asyncio
    async def test_throw_policy_stops_stream(self):
        processor = BatchProcessor(make_options(handle_errors=ErrorPolicy.THROW))
        with pytest.raises(UnresolvableUnit):
            async for _ in processor.stream([make_item(1.0, "widgets")]):
                pass


class TestAutoTargets:
    @pytest.mark.asyncio
    async def test_majority_currency_applied(self):
        items = make_items(7, "USD Million") + [make_item(85.0, "EUR Million", item_id=f"eur-{i}") for i in range(3)]
        options = make_options(auto_target_by_indicator=True, fx=make_fx())
        result = await process_batch(items, options)

        target = result.auto_targets["GDP"]
        assert target.currency == "USD"
        assert target.dominance["currency"] == pytest.approx(0.7)
        assert {n.normalized_unit for n in result.successful} == {"USD millions"}
        assert [n.normalized for n in result.successful[-3:]] == [pytest.approx(100.0)] * 3

    @pytest.mark.asyncio
    async def test_explicit_target_breaks_tie(self):
        items = make_items(2, "USD Million") + make_items(2, "EUR Million")
        options = make_options(auto_target_by_indicator=True, to_currency="EUR", fx=make_fx())
        result = await process_batch(items, options)
        assert result.auto_targets["GDP"].currency == "EUR"
        assert {n.normalized_unit for n in result.successful} == {"EUR millions"}

    @pytest.mark.asyncio
    async def test_disabled_by_default(self):
        result = await process_batch(make_items(2), make_options())
        assert result.auto_targets == {}
