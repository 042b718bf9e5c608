"""Configuration management for EEGReviewLab."""

from .settings import (
    AppConfig,
    ConfigManager,
    EditingConfig,
    PathConfig,
    ViewConfig,
    get_config,
    get_config_manager,
)

__all__ = [
    "AppConfig",
    "EditingConfig",
    "ViewConfig",
    "PathConfig",
    "ConfigManager",
    "get_config",
    "get_config_manager",
]
