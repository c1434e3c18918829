# app/config.py
from dataclasses import dataclass
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    ENV: str = "dev"
    APP_NAME: str = "Staffing Allocation Service"

    # DB URL – SQLite local by default
    DATABASE_URL: str = "sqlite:///./app.db"

    LOG_LEVEL: str = "info"

    # Named defaults for records created without explicit percentages
    DEFAULT_ALLOCATION_PERCENTAGE: int = 100
    DEFAULT_AVAILABILITY_PERCENTAGE: int = 100

    # Per-person, per-day ceiling on committed allocation percentage
    CAPACITY_CEILING: int = 100

    # Monthly utilization figures are clamped here for chart scale
    UTILIZATION_DISPLAY_CAP: int = 200
    DEFAULT_HORIZON_MONTHS: int = 3

    # "pairwise" keeps the historical check, "sweep" accumulates day by day
    CAPACITY_CHECK_MODE: Literal["pairwise", "sweep"] = "pairwise"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@dataclass(frozen=True)
class EngineConfig:
    """Defaults and limits resolved once from Settings and handed to the services."""

    default_allocation_percentage: int = 100
    default_availability_percentage: int = 100
    capacity_ceiling: int = 100
    utilization_display_cap: int = 200
    default_horizon_months: int = 3
    capacity_check_mode: str = "pairwise"

    @classmethod
    def from_settings(cls, settings: Settings) -> "EngineConfig":
        return cls(
            default_allocation_percentage=settings.DEFAULT_ALLOCATION_PERCENTAGE,
            default_availability_percentage=settings.DEFAULT_AVAILABILITY_PERCENTAGE,
            capacity_ceiling=settings.CAPACITY_CEILING,
            utilization_display_cap=settings.UTILIZATION_DISPLAY_CAP,
            default_horizon_months=settings.DEFAULT_HORIZON_MONTHS,
            capacity_check_mode=settings.CAPACITY_CHECK_MODE,
        )


_settings: Optional[Settings] = None

def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def get_engine_config() -> EngineConfig:
    """
    FastAPI dependency returning the engine configuration.
    Tests override it to exercise the sweep-line capacity mode.
    """
    return EngineConfig.from_settings(get_settings())
