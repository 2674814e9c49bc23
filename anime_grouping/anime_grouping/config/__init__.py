"""
Configuration package for the anime grouping engine.

This package provides centralized, type-safe configuration management.
"""

from .manager import (
    GroupingConfig,
    LearningConfig,
    StorageConfig,
    LoggingConfig,
    AnimeGroupingConfig,
    setup_config,
    get_config,
    reload_config,
    get_grouping_config,
    get_learning_config,
    get_storage_config,
    get_logging_config,
)

__all__ = [
    "GroupingConfig",
    "LearningConfig",
    "StorageConfig",
    "LoggingConfig",
    "AnimeGroupingConfig",
    "setup_config",
    "get_config",
    "reload_config",
    "get_grouping_config",
    "get_learning_config",
    "get_storage_config",
    "get_logging_config",
]
