"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
- Clinical thresholds are not configurable; only scheduling knobs are
"""

import os
from functools import lru_cache
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from health_core.domain.units import UnitSystem

# Load environment variables from .env file
load_dotenv()

ReminderGroupName = Literal["screening", "blood_test", "medication_review"]


class UnitsConfig(BaseModel):
    """Display unit defaults."""

    default_unit_system: UnitSystem = Field(
        default=UnitSystem.SI, description="Used when neither inputs nor locale give a preference"
    )


class ReminderConfig(BaseModel):
    """Staleness windows and per-group cooldowns for reminders."""

    blood_test_stale_months: int = Field(
        default=12, gt=0, description="Months before a blood panel is due again"
    )
    medication_review_stale_months: int = Field(
        default=12, gt=0, description="Months before an active medication needs review"
    )

    screening_cooldown_days: int = Field(default=90, gt=0)
    blood_test_cooldown_days: int = Field(default=180, gt=0)
    medication_review_cooldown_days: int = Field(default=365, gt=0)

    def cooldown_days(self, group: ReminderGroupName | str) -> int:
        """Cooldown length for a reminder group."""
        key = str(getattr(group, "value", group))
        if key == "screening":
            return self.screening_cooldown_days
        elif key == "blood_test":
            return self.blood_test_cooldown_days
        elif key == "medication_review":
            return self.medication_review_cooldown_days
        else:
            raise ValueError(f"Unknown reminder group: {group}")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")
    scrub_phi: bool = Field(default=True, description="Redact health data from log events")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    # Component configs
    units: UnitsConfig = Field(default_factory=UnitsConfig)
    reminders: ReminderConfig = Field(default_factory=ReminderConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
    v = val.strip().lower()
    if v in {"dev", "development"}:
        return "development"
    if v in {"stage", "staging"}:
        return "staging"
    return "production"


def _level_to_literal(val: str) -> Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
    v = val.strip().upper()
    return cast(
        Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
    )


def _parse_bool(val: str | None, default: bool) -> bool:
    if val is None:
        return default
    return val.strip().lower() in {"1", "true", "yes", "on"}


def _unit_system(val: str | None) -> UnitSystem:
    if val and val.strip().lower() == UnitSystem.CONVENTIONAL.value:
        return UnitSystem.CONVENTIONAL
    return UnitSystem.SI


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    # Detect environment
    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    units_config = UnitsConfig(
        default_unit_system=_unit_system(os.getenv("HEALTH_DEFAULT_UNIT_SYSTEM")),
    )

    # Reminder windows with environment overrides
    reminder_config = ReminderConfig(
        blood_test_stale_months=int(os.getenv("BLOOD_TEST_STALE_MONTHS", "12")),
        medication_review_stale_months=int(os.getenv("MEDICATION_REVIEW_STALE_MONTHS", "12")),
        screening_cooldown_days=int(os.getenv("SCREENING_COOLDOWN_DAYS", "90")),
        blood_test_cooldown_days=int(os.getenv("BLOOD_TEST_COOLDOWN_DAYS", "180")),
        medication_review_cooldown_days=int(os.getenv("MEDICATION_REVIEW_COOLDOWN_DAYS", "365")),
    )

    # Logging config
    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
        scrub_phi=_parse_bool(os.getenv("LOG_SCRUB_PHI"), True),
    )

    # Application config
    return AppConfig(
        environment=environment,
        debug=debug,
        units=units_config,
        reminders=reminder_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()


def config_summary(config: AppConfig | None = None) -> dict[str, str]:
    """Flat summary of the active configuration, for startup logs."""
    config = config or get_config()
    return {
        "environment": config.environment,
        "debug": str(config.debug),
        "log_level": config.logging.level,
        "log_format": config.logging.format,
        "default_unit_system": config.units.default_unit_system.value,
        "blood_test_stale_months": str(config.reminders.blood_test_stale_months),
        "medication_review_stale_months": str(config.reminders.medication_review_stale_months),
    }
