"""Configuration management for EEGReviewLab.

Uses attrs with validators for type-safe, validated configuration.
"""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import attrs
from attrs import define, field


def positive_float(instance, attribute, value):
    """Validator: ensure value is a positive float."""
    if value <= 0:
        raise ValueError(f"{attribute.name} must be positive, got {value}")


def nonnegative_float(instance, attribute, value):
    """Validator: ensure value is non-negative."""
    if value < 0:
        raise ValueError(f"{attribute.name} must be non-negative, got {value}")


def _non_empty_list(instance, attribute, value):
    if not value:
        raise ValueError(f"{attribute.name} must not be empty")


@define
class EditingConfig:
    """Region drawing and refinement parameters (all times in seconds)."""

    # Drags narrower than this are treated as clicks
    min_draw_duration: float = field(default=0.1, validator=[attrs.validators.instance_of(float), nonnegative_float])
    # Minimum gap kept between refined start and end
    boundary_epsilon: float = field(default=0.05, validator=[attrs.validators.instance_of(float), positive_float])
    # Context shown either side of the region while refining
    refine_buffer: float = field(default=2.0, validator=[attrs.validators.instance_of(float), nonnegative_float])

    default_label: str = field(default="Unspecified", validator=attrs.validators.instance_of(str))
    default_classification: str = field(default="abnormal", validator=attrs.validators.instance_of(str))
    label_palette: list[str] = field(
        factory=lambda: ["Seizure", "Spike", "Sharp Wave", "Slow Activity", "Artifact", "Other"],
        validator=[attrs.validators.instance_of(list), _non_empty_list],
    )


@define
class ViewConfig:
    """Viewer window and playback settings."""

    window_size: float = field(default=30.0, validator=[attrs.validators.instance_of(float), positive_float])
    skip_seconds: float = field(default=5.0, validator=[attrs.validators.instance_of(float), positive_float])
    # Channels hidden from lanes (case-insensitive)
    excluded_channels: list[str] = field(factory=lambda: ["EDF Annotations"], validator=attrs.validators.instance_of(list))


@define
class PathConfig:
    """File path configuration."""

    exports_dir: str = field(default="exports", validator=attrs.validators.instance_of(str))
    export_prefix: str = field(default="refined_", validator=attrs.validators.instance_of(str))

    # Suffixes accepted by the recording loader (case-insensitive)
    recording_extensions: list[str] = field(factory=lambda: [".edf"], validator=[attrs.validators.instance_of(list), _non_empty_list])

    def get_exports_path(self) -> Path:
        """Get exports_dir as a Path object."""
        return Path(self.exports_dir)


@define
class AppConfig:
    """Main application configuration combining all sub-configs."""

    editing: EditingConfig = field(factory=EditingConfig)
    view: ViewConfig = field(factory=ViewConfig)
    paths: PathConfig = field(factory=PathConfig)

    @classmethod
    def default(cls) -> AppConfig:
        """Create default configuration."""
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AppConfig:
        """Create configuration from dictionary."""
        return cls(
            editing=EditingConfig(**data.get("editing", {})),
            view=ViewConfig(**data.get("view", {})),
            paths=PathConfig(**data.get("paths", {})),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary."""
        return attrs.asdict(self)

    def save(self, filepath: str | Path) -> None:
        """Save configuration to JSON file."""
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        with open(filepath, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, filepath: str | Path) -> AppConfig:
        """Load configuration from JSON file."""
        with open(filepath) as f:
            data = json.load(f)
        return cls.from_dict(data)


class ConfigManager:
    """Manages application configuration with environment variable overrides."""

    ENV_PREFIX = "ERL_"

    def __init__(self, config_dir: str | Path | None = None):
        """Initialize config manager.

        Args:
            config_dir: Directory for config files. Defaults to ~/.eeg_review_lab/
        """
        if config_dir is None:
            config_dir = Path.home() / ".eeg_review_lab"
        self.config_dir = Path(config_dir)
        self.config_dir.mkdir(parents=True, exist_ok=True)

        self.user_config_path = self.config_dir / "user_config.json"
        self.default_config_path = self.config_dir / "default_config.json"

        self._config: AppConfig | None = None

    def get_config(self) -> AppConfig:
        """Get current configuration with environment variable overrides."""
        if self._config is None:
            self._config = self._load_config()
            self._apply_env_overrides()
        return self._config

    def _load_config(self) -> AppConfig:
        """Load configuration from user or default file."""
        if self.user_config_path.exists():
            return AppConfig.load(self.user_config_path)

        if self.default_config_path.exists():
            return AppConfig.load(self.default_config_path)

        config = AppConfig.default()
        config.save(self.default_config_path)
        return config

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides to config.

        Environment variables like ERL_WINDOW_SIZE=10 override config.view.window_size
        """
        if self._config is None:
            return

        for attr in ["min_draw_duration", "boundary_epsilon", "refine_buffer"]:
            env_var = f"{self.ENV_PREFIX}{attr.upper()}"
            if env_var in os.environ:
                setattr(self._config.editing, attr, float(os.environ[env_var]))

        for attr in ["window_size", "skip_seconds"]:
            env_var = f"{self.ENV_PREFIX}{attr.upper()}"
            if env_var in os.environ:
                setattr(self._config.view, attr, float(os.environ[env_var]))

        env_var = f"{self.ENV_PREFIX}EXPORTS_DIR"
        if env_var in os.environ:
            self._config.paths.exports_dir = os.environ[env_var]


# Global singleton instance
_config_manager: ConfigManager | None = None


def get_config() -> AppConfig:
    """Get global configuration singleton.

    Returns:
        AppConfig instance with current settings.

    Example:
        >>> from eeg_review_lab.config.settings import get_config
        >>> config = get_config()
        >>> print(config.view.window_size)
        30.0
    """
    return get_config_manager().get_config()


def get_config_manager() -> ConfigManager:
    """Get global config manager singleton.

    Returns:
        ConfigManager instance for advanced config management.
    """
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager
