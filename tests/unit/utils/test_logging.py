"""Test structured logging setup."""
import json

import pytest

from econ_normalizer.batch.orchestrator import BatchProcessor
from econ_normalizer.config import Settings
from econ_normalizer.utils.logging import get_logger, resolve_level, setup_logging
from tests.factories import make_items


def _records(err: str) -> list[dict]:
    return [json.loads(line) for line in err.strip().splitlines()]


class TestLogging:
    def test_json_to_stderr(self, capsys):
        setup_logging(Settings(log_level="INFO"))
        get_logger("econ_normalizer.test").info("batch_started", total=3)
        captured = capsys.readouterr()
        assert captured.out == ""
        record = _records(captured.err)[-1]
        assert record["event"] == "batch_started"
        assert record["total"] == 3
        assert record["level"] == "info"
        assert record["component"] == "econ_normalizer.test"

    def test_level_filters(self, capsys):
        setup_logging(Settings(log_level="WARNING"))
        get_logger("econ_normalizer.test").info("hidden")
        assert capsys.readouterr().err == ""

    def test_level_from_environment(self, monkeypatch, capsys):
        monkeypatch.setenv("ECON_LOG_LEVEL", "error")
        setup_logging()
        get_logger("econ_normalizer.test").warning("hidden")
        assert capsys.readouterr().err == ""

    def test_existing_configuration_kept(self, capsys):
        setup_logging(Settings(log_level="WARNING"))
        setup_logging(Settings(log_level="DEBUG"))
        get_logger("econ_normalizer.test").info("hidden")
        assert capsys.readouterr().err == ""

    def test_force_reconfigures(self, capsys):
        setup_logging(Settings(log_level="WARNING"))
        setup_logging(Settings(log_level="DEBUG"), force=True)
        get_logger("econ_normalizer.test").info("shown")
        assert _records(capsys.readouterr().err)[-1]["event"] == "shown"


class TestResolveLevel:
    def test_names_case_insensitive(self):
        assert resolve_level("debug") == 10
        assert resolve_level(" Warning ") == 30

    def test_unknown_name(self):
        with pytest.raises(ValueError):
            resolve_level("loud")


class TestProcessorLogging:
    @pytest.mark.asyncio
    async def test_settings_level_applied(self, capsys):
        processor = BatchProcessor(settings=Settings(log_level="WARNING", parallel=False, validate_quality=False))
        await processor.process(make_items(2))
        assert capsys.readouterr().err == ""

    @pytest.mark.asyncio
    async def test_info_events_at_info_level(self, capsys):
        processor = BatchProcessor(settings=Settings(log_level="INFO", parallel=False, validate_quality=False))
        await processor.process(make_items(2))
        events = [r["event"] for r in _records(capsys.readouterr().err)]
        assert "batch_started" in events
