"""Shared test fixtures."""
import pytest
import structlog

from econ_normalizer.config import Settings
from econ_normalizer.units.custom import CustomUnitRegistry
from tests.factories import make_fx


@pytest.fixture(autouse=True)
def reset_structlog():
    structlog.reset_defaults()
    yield
    structlog.reset_defaults()


@pytest.fixture
def test_settings():
    """Settings with retries that never actually wait."""
    return Settings(
        log_level="DEBUG",
        parallel=False,
        validate_quality=False,
        max_retries=3,
        retry_base_delay=0.0,
    )


@pytest.fixture
def fx_table():
    return make_fx(dates={"EUR": "2024-06-28"}, as_of="2024-06-30")


@pytest.fixture
def custom_registry():
    registry = CustomUnitRegistry()
    registry.load_domain("emissions")
    registry.load_domain("crypto")
    return registry
