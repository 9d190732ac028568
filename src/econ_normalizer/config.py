"""Application configuration via environment variables with ECON_ prefix."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models.schema import ErrorPolicy


class Settings(BaseSettings):
    """Normalization pipeline configuration.

    All settings are read from environment variables prefixed with ``ECON_``.
    They provide the defaults for ``BatchOptions``; per-call options still win.
    """

    model_config = SettingsConfigDict(env_prefix="ECON_")

    # ── Logging ──────────────────────────────────────────────────────────
    log_level: str = "INFO"

    # ── Batch Processing ─────────────────────────────────────────────────
    handle_errors: ErrorPolicy = ErrorPolicy.SKIP
    parallel: bool = True
    concurrency: int = Field(default=10, ge=1)

    # ── Quality Gate ─────────────────────────────────────────────────────
    validate_quality: bool = True
    quality_threshold: float = Field(default=70.0, ge=0.0, le=100.0)

    # ── Retries ──────────────────────────────────────────────────────────
    max_retries: int = Field(default=3, ge=1)
    retry_base_delay: float = Field(default=1.0, ge=0.0)

    # ── Auto Targets ─────────────────────────────────────────────────────
    auto_target_min_share: float = Field(default=0.5, ge=0.0, le=1.0)

    # ── FX Provenance (passthrough into explain records) ─────────────────
    fx_source: str | None = None
    fx_source_id: str | None = None
