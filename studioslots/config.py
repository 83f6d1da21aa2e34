"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Optional

import pendulum
import yaml
from pydantic import BaseModel, field_validator

from .domain.slot_calculator import DEFAULT_BUFFER_MINUTES


class SupabaseConfig(BaseModel):
    """Connection settings for the hosted booking database."""
    url: str
    api_key: str
    timeout_seconds: int = 30

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        """Require an http(s) project URL."""
        if not value.startswith(("https://", "http://")):
            raise ValueError(f"Supabase url must start with http:// or https://, got {value!r}")
        return value.rstrip("/")


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "UTC"
    buffer_minutes: int = DEFAULT_BUFFER_MINUTES
    mock_data_file: Optional[Path] = None
    supabase: Optional[SupabaseConfig] = None

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA identifier."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value!r}") from exc
        return value

    @field_validator("buffer_minutes")
    @classmethod
    def validate_buffer(cls, value: int) -> int:
        """Ensure the gap between candidate slots is not negative."""
        if value < 0:
            raise ValueError("buffer_minutes must not be negative")
        return value

    def require_supabase(self) -> SupabaseConfig:
        """
        Return the Supabase settings.

        Raises:
            ValueError: If no supabase section is configured
        """
        if self.supabase is None:
            raise ValueError(
                "No 'supabase' section in the config file. "
                "Add url and api_key, or run with --mock."
            )
        return self.supabase

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

        # Relative mock data paths are resolved against the config file
        if config.mock_data_file is not None and not config.mock_data_file.is_absolute():
            config.mock_data_file = config_path.parent / config.mock_data_file

        return config


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of studioslots/)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
