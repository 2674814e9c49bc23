"""
Centralized logging and error handling for the anime grouping engine.

This module provides consistent logging configuration and custom exceptions
across the entire application.
"""

import logging
from contextlib import contextmanager
from typing import Optional, Union
from rich.logging import RichHandler
from rich.console import Console
from rich.panel import Panel

from .constants import LOG_FILENAME

# Global console instance for the entire application
console = Console()

class AnimeGroupingError(Exception):
    """Base exception for all grouping-engine errors."""
    pass


class ConfigError(AnimeGroupingError):
    """Raised when there's a configuration-related error."""
    pass


class NotFoundError(AnimeGroupingError):
    """Raised when an anchor anime does not exist in the catalog."""

    def __init__(self, anime_id: str):
        super().__init__(f"Anime not found: {anime_id}")
        self.anime_id = anime_id


class RepositoryUnavailableError(AnimeGroupingError):
    """Raised when the catalog or the pattern/feedback store cannot be reached."""
    pass


class ValidationError(AnimeGroupingError):
    """Raised when data validation fails."""
    pass


class AnimeGroupingLogger:
    """
    Centralized logging configuration.

    Single source of truth for log formats, levels and handlers.
    """

    def __init__(self, log_file: str = LOG_FILENAME):
        self.log_file = log_file
        self.console = console
        self._setup_root_logger()

    def _setup_root_logger(self) -> None:
        """Configure the root logger with file and console handlers."""
        file_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

        # File handler (full detail)
        file_handler = logging.FileHandler(self.log_file, encoding='utf-8')
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(file_formatter)

        # Console handler (errors and warnings)
        console_handler = RichHandler(
            console=self.console,
            show_path=False,
            show_time=True,
            show_level=True,
            markup=True,
            keywords=[]
        )
        console_handler.setLevel(logging.WARNING)

        root_logger = logging.getLogger()
        root_logger.setLevel(logging.INFO)

        # Clear existing handlers to avoid duplicates
        root_logger.handlers = []
        root_logger.addHandler(file_handler)
        root_logger.addHandler(console_handler)

    def get_logger(self, name: str) -> logging.Logger:
        return logging.getLogger(name)

    def set_console_level(self, level: Union[str, int], clean: bool = False) -> None:
        """
        Set the console logging level.

        Args:
            level: Logging level (e.g., 'DEBUG', 'INFO', 'WARNING')
            clean: If True, hides time and level for a cleaner UI-like look
        """
        root_logger = logging.getLogger()
        numeric_level = _to_numeric_level(level)
        if numeric_level < root_logger.level:
            root_logger.setLevel(numeric_level)

        for handler in root_logger.handlers:
            if isinstance(handler, RichHandler):
                handler.setLevel(numeric_level)
                handler.show_time = not clean
                handler.show_level = not clean
                break

    def set_file_level(self, level: Union[str, int]) -> None:
        """Set the file logging level."""
        root_logger = logging.getLogger()
        numeric_level = _to_numeric_level(level)
        if numeric_level < root_logger.level:
            root_logger.setLevel(numeric_level)

        for handler in root_logger.handlers:
            if isinstance(handler, logging.FileHandler):
                handler.setLevel(numeric_level)
                break


def _to_numeric_level(level: Union[str, int]) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return level


# Global logger instance
_logger_instance: Optional[AnimeGroupingLogger] = None


def setup_logging(log_file: str = LOG_FILENAME) -> AnimeGroupingLogger:
    """
    Set up the global logging configuration.

    Args:
        log_file: Path to the log file

    Returns:
        The configured AnimeGroupingLogger instance
    """
    global _logger_instance
    if _logger_instance is None:
        _logger_instance = AnimeGroupingLogger(log_file)
    return _logger_instance


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Modules call this as:
        from .logging import get_logger
        logger = get_logger(__name__)

    Handlers are attached lazily by setup_logging(); a library consumer that
    never calls it keeps its own root configuration.
    """
    return logging.getLogger(name)


def set_log_level(level: Union[str, int], handler_type: str = "both", clean: bool = False) -> None:
    """
    Set the logging level for console, file, or both handlers.

    Args:
        level: Logging level (e.g., 'DEBUG', 'INFO', 'WARNING', 'ERROR')
        handler_type: 'console', 'file', or 'both'
        clean: If True, hides time and level for console handler
    """
    instance = setup_logging()

    if handler_type in ("console", "both"):
        instance.set_console_level(level, clean=clean)
    if handler_type in ("file", "both"):
        instance.set_file_level(level)


@contextmanager
def temporary_log_level(level: Union[str, int], handler_type: str = "console"):
    """
    Temporarily change the log level of one handler.

    The root logger is lowered too when it would otherwise filter the
    records out first; both are restored on exit.

    Usage:
        with temporary_log_level("DEBUG"):
            ...
    """
    setup_logging()

    root_logger = logging.getLogger()
    numeric_level = _to_numeric_level(level)
    root_level = root_logger.level
    target = None
    current_level = None

    for handler in root_logger.handlers:
        if handler_type == "console" and isinstance(handler, RichHandler):
            target = handler
            break
        elif handler_type == "file" and isinstance(handler, logging.FileHandler):
            target = handler
            break

    if target is not None:
        current_level = target.level
        target.setLevel(numeric_level)
        if numeric_level < root_level:
            root_logger.setLevel(numeric_level)

    try:
        yield
    finally:
        if target is not None and current_level is not None:
            target.setLevel(current_level)
            root_logger.setLevel(root_level)


def log_step(message: str) -> None:
    """
    Log a major step with a visual panel.
    Logs to file as INFO, prints to console as Panel if level <= INFO.
    """
    instance = setup_logging()

    logging.getLogger("anime_grouping.step").info(f"STEP: {message}")

    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        if isinstance(handler, RichHandler):
            if handler.level <= logging.INFO:
                instance.console.print(Panel(message, style="bold magenta"))
            break


def log_substep(message: str) -> None:
    """Log a sub-step, indented under the last step."""
    setup_logging()
    logging.getLogger("anime_grouping.substep").info(f"  [bold cyan]->[/bold cyan] {message}")


__all__ = [
    "AnimeGroupingError",
    "ConfigError",
    "NotFoundError",
    "RepositoryUnavailableError",
    "ValidationError",
    "AnimeGroupingLogger",
    "console",
    "setup_logging",
    "get_logger",
    "set_log_level",
    "temporary_log_level",
    "log_step",
    "log_substep",
]
