"""Test environment-driven settings and their mapping onto batch options."""
from econ_normalizer.config import Settings
from econ_normalizer.models.batch import BatchOptions
from econ_normalizer.models.schema import ErrorPolicy


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.handle_errors == ErrorPolicy.SKIP
        assert settings.max_retries == 3
        assert settings.quality_threshold == 70.0

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("ECON_HANDLE_ERRORS", "throw")
        monkeypatch.setenv("ECON_CONCURRENCY", "4")
        monkeypatch.setenv("ECON_PARALLEL", "false")
        settings = Settings()
        assert settings.handle_errors == ErrorPolicy.THROW
        assert settings.concurrency == 4
        assert settings.parallel is False


class TestBatchOptionsFromSettings:
    def test_settings_become_defaults(self, test_settings):
        options = BatchOptions.from_settings(test_settings)
        assert options.parallel is False
        assert options.validate_quality is False
        assert options.auto_targets.min_majority_share == 0.5

    def test_overrides_win(self, test_settings):
        options = BatchOptions.from_settings(test_settings, parallel=True, handle_errors="default", default_value=0.0)
        assert options.parallel is True
        assert options.handle_errors == ErrorPolicy.DEFAULT
        assert options.default_value == 0.0
