"""
Centralized configuration management for the anime grouping engine.

This module provides type-safe, validated configuration using Pydantic.
Every tunable of the grouping, learning and storage layers is read from
environment variables (or a .env file) through one settings object.
"""

import json
from pathlib import Path
from typing import List, Optional, Union
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..constants import (
    CATALOG_FILENAME,
    DECAY_ELIGIBLE_ABOVE,
    DECAY_HORIZON_DAYS,
    DECAY_INTERVAL_SECONDS,
    DECAY_MIN_FACTOR,
    DEFAULT_CANDIDATE_LIMIT,
    DEFAULT_DECAY_THRESHOLD_DAYS,
    DEFAULT_FRANCHISE_MAX_DEPTH,
    DEFAULT_MAX_DEPTH,
    DEFAULT_TIE_BREAK_ORDER,
    FEEDBACK_FILENAME,
    LOG_FILENAME,
    MIN_REDECAY_HOURS,
    MIN_TITLE_CONFIDENCE,
    PATTERNS_FILENAME,
    SCHEDULER_LOCK_FILENAME,
)

VALID_TIE_BREAKERS = {"source", "confidence", "start_date"}


class GroupingConfig(BaseSettings):
    """Configuration for series grouping (graph walk, fallback, merge)"""

    model_config = SettingsConfigDict(
        env_prefix="GROUPING_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    max_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=1, description="Relation hops walked from the anchor")
    franchise_max_depth: int = Field(default=DEFAULT_FRANCHISE_MAX_DEPTH, ge=1, description="Relation hops for franchise view")
    candidate_limit: int = Field(default=DEFAULT_CANDIDATE_LIMIT, ge=1, description="Max substring candidates per fallback search")
    min_title_confidence: float = Field(default=MIN_TITLE_CONFIDENCE, ge=0.0, le=1.0, description="Title-only matches must exceed this")
    tie_break_order: List[str] = Field(default_factory=lambda: list(DEFAULT_TIE_BREAK_ORDER), description="Duplicate season tie-break order")
    parallel: bool = Field(default=True, description="Run graph builder and fallback matcher concurrently")

    @field_validator('tie_break_order')
    @classmethod
    def validate_tie_break_order(cls, v: List[str]) -> List[str]:
        """Validate tie-breakers against the known keys"""
        unknown = [key for key in v if key not in VALID_TIE_BREAKERS]
        if unknown:
            raise ValueError(f"Unknown tie-breakers {unknown}; allowed: {sorted(VALID_TIE_BREAKERS)}")
        return v


class LearningConfig(BaseSettings):
    """Configuration for pattern confidence learning and decay"""

    model_config = SettingsConfigDict(
        env_prefix="LEARNING_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    decay_threshold_days: int = Field(default=DEFAULT_DECAY_THRESHOLD_DAYS, ge=0, description="Days unused before decay applies")
    decay_horizon_days: int = Field(default=DECAY_HORIZON_DAYS, ge=1, description="Days past threshold to reach the minimum factor")
    decay_min_factor: float = Field(default=DECAY_MIN_FACTOR, ge=0.0, le=1.0, description="Lower bound of the decay factor")
    decay_eligible_above: float = Field(default=DECAY_ELIGIBLE_ABOVE, description="Only patterns above this confidence decay")
    min_redecay_hours: float = Field(default=MIN_REDECAY_HOURS, ge=0, description="Skip patterns decayed more recently than this")
    decay_interval_seconds: int = Field(default=DECAY_INTERVAL_SECONDS, ge=1, description="Background decay period")


class StorageConfig(BaseSettings):
    """Configuration for the file-backed repositories"""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    catalog_file: Path = Field(default=Path(CATALOG_FILENAME), description="JSON catalog of anime records")
    patterns_file: Path = Field(default=Path(PATTERNS_FILENAME), description="JSON pattern confidence store")
    feedback_file: Path = Field(default=Path(FEEDBACK_FILENAME), description="Append-only feedback log (JSON lines)")
    scheduler_lock_file: Path = Field(default=Path(SCHEDULER_LOCK_FILENAME), description="Single-instance lock for the decay job")


class LoggingConfig(BaseSettings):
    """Configuration for logging behavior"""

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    file_level: str = Field(default="INFO", description="File logging level")
    console_level: str = Field(default="WARNING", description="Console logging level")
    log_file: str = Field(default=LOG_FILENAME, description="Log file path")

    @field_validator('file_level', 'console_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log level is one of the allowed values"""
        valid_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()


class AnimeGroupingConfig(BaseSettings):
    """
    Main configuration class.

    Single source of truth for all configuration. Loads automatically from
    environment variables and .env files.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore"
    )

    grouping: GroupingConfig = Field(default_factory=GroupingConfig, description="Grouping configuration")
    learning: LearningConfig = Field(default_factory=LearningConfig, description="Learning/decay configuration")
    storage: StorageConfig = Field(default_factory=StorageConfig, description="Repository file locations")
    logging: LoggingConfig = Field(default_factory=LoggingConfig, description="Logging configuration")

    verbose: bool = Field(default=False, description="Enable verbose output")

    def save_to_file(self, path: Union[str, Path]) -> None:
        """Save configuration to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.model_dump(mode='json'), f, indent=2, ensure_ascii=False)

    @classmethod
    def load_from_file(cls, path: Union[str, Path]) -> "AnimeGroupingConfig":
        """
        Load configuration from a JSON file.

        Raises:
            FileNotFoundError: If the file does not exist
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        return cls(**data)


# Global configuration instance
_config_instance: Optional[AnimeGroupingConfig] = None


def setup_config(env_file: Optional[Union[str, Path]] = None, **kwargs) -> AnimeGroupingConfig:
    """
    Set up the global configuration.

    Args:
        env_file: Path to .env file
        **kwargs: Additional configuration overrides

    Returns:
        AnimeGroupingConfig instance
    """
    global _config_instance

    config_kwargs = {}
    if env_file:
        config_kwargs["_env_file"] = str(env_file)
    config_kwargs.update(kwargs)

    _config_instance = AnimeGroupingConfig(**config_kwargs)
    return _config_instance


def get_config() -> AnimeGroupingConfig:
    """Get the global configuration instance, creating it on first use."""
    global _config_instance
    if _config_instance is None:
        _config_instance = AnimeGroupingConfig()
    return _config_instance


def reload_config() -> AnimeGroupingConfig:
    """Reload configuration from environment and .env files."""
    global _config_instance
    _config_instance = AnimeGroupingConfig()
    return _config_instance


def get_grouping_config() -> GroupingConfig:
    return get_config().grouping


def get_learning_config() -> LearningConfig:
    return get_config().learning


def get_storage_config() -> StorageConfig:
    return get_config().storage


def get_logging_config() -> LoggingConfig:
    return get_config().logging


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
