"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.models import AvailabilityProfile, WeeklySchedule


class DefaultsConfig(BaseModel):
    """Default settings applied to newly registered professionals."""
    interval_minutes: int = 30
    service_duration_minutes: Optional[int] = None
    horizon_days: int = 30
    buffer_minutes: int = 0

    @field_validator("interval_minutes", "horizon_days")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Ensure step and horizon are positive."""
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value

    @field_validator("service_duration_minutes")
    @classmethod
    def validate_duration(cls, value: Optional[int]) -> Optional[int]:
        """Ensure service duration is positive when set."""
        if value is not None and value <= 0:
            raise ValueError("service_duration_minutes must be greater than zero")
        return value

    @field_validator("buffer_minutes")
    @classmethod
    def validate_buffer(cls, value: int) -> int:
        if value < 0:
            raise ValueError("buffer_minutes must be zero or greater")
        return value

    @model_validator(mode="after")
    def validate_duration_fits_day(self) -> "DefaultsConfig":
        """A single job has to fit into one day."""
        duration = self.service_duration_minutes or self.interval_minutes
        if duration >= 24 * 60:
            raise ValueError("service duration must be shorter than one day")
        return self


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "Europe/Berlin"
    database_path: Path = Path("slotengine.db")
    log_level: str = "WARNING"
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        config = cls(**data)

        # Relative database paths are resolved next to the config file
        if not config.database_path.is_absolute():
            config = config.model_copy(
                update={"database_path": config_path.parent / config.database_path}
            )

        return config

    def build_profile(self, professional_id: str) -> AvailabilityProfile:
        """Create a fresh profile for a professional from the defaults."""
        return AvailabilityProfile(
            professional_id=professional_id,
            weekly_schedule=WeeklySchedule.default(),
            timezone=self.timezone,
            buffer_minutes=self.defaults.buffer_minutes,
            interval_minutes=self.defaults.interval_minutes,
            service_duration_minutes=self.defaults.service_duration_minutes,
        )


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """
    Load the config file, falling back to built-in defaults when the
    default location has no config.yaml. An explicit path must exist.
    """
    if config_path is not None:
        return AppConfig.load_from_yaml(config_path)

    default_path = get_default_config_path()
    if default_path.exists():
        return AppConfig.load_from_yaml(default_path)

    return AppConfig()
