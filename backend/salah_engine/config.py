"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - get_settings() is cached (lru_cache) — single instance per process
    - Every setting has a default: the engine works offline out-of-the-box (remote disabled
      only by SALAH_REMOTE_ENABLED=false)
    - Method id and Asr convention are validated at load time, not at first request

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - SALAH_ prefix: variables stay unambiguous when deployed next to other services
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from salah_engine.core.calculation_methods import get_method
from salah_engine.core.domain_types import AsrConvention, AsrFormula
from salah_engine.core.errors import UnknownMethodError


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="SALAH_", case_sensitive=False,
    )

    # Remote provider (Aladhan)
    remote_enabled: bool = True
    remote_base_url: str = "https://api.aladhan.com/v1"
    remote_timeout_seconds: float = Field(5.0, gt=0)
    remote_max_retries: int = Field(2, ge=0)
    remote_base_delay_ms: int = Field(250, ge=0)
    remote_max_delay_ms: int = Field(2000, ge=0)

    # Calculation defaults
    default_method_id: str = "MWL"
    default_asr_convention: AsrConvention = AsrConvention.STANDARD
    asr_formula: AsrFormula = AsrFormula.CLOSED_FORM

    # Schedule cache
    cache_precision: int = Field(2, ge=0, le=6)
    cache_max_entries: int = Field(512, ge=1)

    # Countdown
    ticker_interval_seconds: float = Field(1.0, gt=0)

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    @field_validator("default_method_id")
    @classmethod
    def known_method(cls, v: str) -> str:
        """Reject unknown ids early; stored in registry form ("ummalqura" → "UMMALQURA")."""
        try:
            return get_method(v).id
        except UnknownMethodError as e:
            raise ValueError(e.message) from e


@lru_cache
def get_settings() -> Settings:
    return Settings()
