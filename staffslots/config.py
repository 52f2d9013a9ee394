"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

from .domain.models import MissingScheduleDataPolicy


class DefaultsConfig(BaseModel):
    """Default settings for slot searches."""
    service_duration_minutes: int = 30

    @field_validator("service_duration_minutes")
    @classmethod
    def validate_duration(cls, value: int) -> int:
        """Ensure service duration is positive."""
        if value <= 0:
            raise ValueError("service_duration_minutes must be greater than zero")
        return value


class AppConfig(BaseModel):
    """Application configuration."""
    supabase_url: str
    supabase_anon_key: str
    timezone: str = "Europe/Berlin"
    slot_interval_minutes: int = 30
    calendar_days_ahead: int = 60
    missing_schedule_policy: MissingScheduleDataPolicy = MissingScheduleDataPolicy.PERMIT_BOOKING
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)

    @field_validator("supabase_url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        """Require an http(s) URL and drop any trailing slash."""
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"supabase_url must be an http(s) URL, got {value!r}")
        return value.rstrip("/")

    @field_validator("slot_interval_minutes", "calendar_days_ahead")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError(f"Value must be greater than zero, got {value}")
        return value

    def get_rest_url(self) -> str:
        """Get the PostgREST base URL."""
        return f"{self.supabase_url}/rest/v1"

    def get_auth_url(self) -> str:
        """Get the Supabase Auth base URL."""
        return f"{self.supabase_url}/auth/v1"

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

        return cls(**data)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    config_path = Path.cwd() / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of staffslots/)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
