"""
Configuration management using Pydantic models.

Settings come from an optional YAML file; the matching knobs can be
overridden through environment variables.
"""

import os
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from .domain.recommendations import RecommendationPolicy
from .domain.selection import SelectionMode

# Environment variable -> MatchingConfig field
ENV_OVERRIDES: Dict[str, str] = {
    "RECOMMENDATION_WINDOW_DAYS": "window_days",
    "MIN_SLOT_DURATION_PERCENT": "min_duration_percent",
    "MIN_SLOT_DURATION_MINUTES": "min_duration_minutes",
    "MAX_RECOMMENDATIONS": "max_results",
    "SELECTION_STRATEGY": "selection_strategy",
    "SLOT_BUFFER_MINUTES": "buffer_minutes",
}


class MatchingConfig(BaseModel):
    """Knobs for provider selection and the recommendation search."""
    window_days: int = 7
    min_duration_percent: int = 50
    min_duration_minutes: int = 30
    max_results: int = 10
    selection_strategy: SelectionMode = SelectionMode.MOST
    buffer_minutes: int = 0

    @field_validator("window_days", "min_duration_minutes", "max_results")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Ensure counts and lengths are positive."""
        if value <= 0:
            raise ValueError(f"Value must be greater than zero, got {value}")
        return value

    @field_validator("min_duration_percent")
    @classmethod
    def validate_percent(cls, value: int) -> int:
        """Validate percent is between 1 and 100."""
        if not 1 <= value <= 100:
            raise ValueError(f"min_duration_percent must be between 1 and 100, got {value}")
        return value

    @field_validator("buffer_minutes")
    @classmethod
    def validate_buffer(cls, value: int) -> int:
        if value < 0:
            raise ValueError(f"buffer_minutes must not be negative, got {value}")
        return value

    @field_validator("selection_strategy", mode="before")
    @classmethod
    def normalize_strategy(cls, value):
        """Accept 'MOST', ' least ' and friends."""
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        base: Optional["MatchingConfig"] = None,
    ) -> "MatchingConfig":
        """
        Build a config from environment variables.

        Args:
            environ: Mapping to read from (defaults to ``os.environ``)
            base: Values used for variables that are not set

        Raises:
            ValueError: If a variable holds an invalid value
        """
        environ = os.environ if environ is None else environ
        values = (base or cls()).model_dump()

        for variable, field_name in ENV_OVERRIDES.items():
            raw = environ.get(variable)
            if raw is not None and raw.strip():
                values[field_name] = raw.strip()

        return cls(**values)

    def recommendation_policy(self) -> RecommendationPolicy:
        """Get the recommendation knobs as a domain value."""
        return RecommendationPolicy(
            window_days=self.window_days,
            min_duration_percent=self.min_duration_percent,
            min_duration_minutes=self.min_duration_minutes,
            max_results=self.max_results,
            buffer_minutes=self.buffer_minutes,
        )


class AppConfig(BaseModel):
    """Application configuration."""
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    timezone: str = "UTC"
    data_file: Path = Path("slotmatch-data.json")

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
                f"Please create a slotmatch.yaml file or pass --config."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)

    @classmethod
    def load(
        cls,
        config_path: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
        required: bool = False,
    ) -> "AppConfig":
        """
        Load YAML settings, then apply environment overrides.

        A missing file falls back to defaults unless ``required`` is set.

        Raises:
            FileNotFoundError: If ``required`` and the file doesn't exist
            ValueError: If config is invalid
        """
        if config_path is not None and (required or config_path.exists()):
            config = cls.load_from_yaml(config_path)
        else:
            config = cls()

        matching = MatchingConfig.from_env(environ, base=config.matching)
        return config.model_copy(update={"matching": matching})


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for slotmatch.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "slotmatch.yaml"

    if not config_path.exists():
        # Try in the project root (parent of slotmatch/)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "slotmatch.yaml"

    return config_path
