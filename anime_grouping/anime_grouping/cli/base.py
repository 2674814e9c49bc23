"""
Shared CLI utilities and base functionality.
"""
import sys
import json
import click
import logging
from typing import Any, Dict, List

from rich.table import Table
from rich import box

from ..engine import SeriesGroupingEngine
from ..config import get_config, get_logging_config
from ..models import GroupingPattern, SeasonInfo, SeriesGroup
from ..logging import AnimeGroupingError, get_logger, set_log_level, setup_logging, console

logger = get_logger(__name__)


def apply_verbosity(verbose: int) -> None:
    """
    File and console levels come from LOG_FILE_LEVEL and LOG_CONSOLE_LEVEL.
    -v raises the console to at least INFO, -vv to DEBUG.
    """
    log_config = get_logging_config()
    setup_logging(log_config.log_file)
    set_log_level(log_config.file_level, "file")

    console_level = getattr(logging, log_config.console_level)
    clean_logs = False
    if verbose == 1:
        console_level = min(console_level, logging.INFO)
        clean_logs = True
    elif verbose >= 2:
        console_level = logging.DEBUG
    set_log_level(console_level, "console", clean=clean_logs)


def fail(message: str) -> None:
    """Prints an error and exits with status 1."""
    logger.error(message)
    console.print(f"[red]Error: {message}[/red]")
    sys.exit(1)


def load_engine() -> SeriesGroupingEngine:
    """
    Builds the engine from the configured storage files.

    Raises:
        SystemExit: If the catalog or pattern store cannot be loaded.
    """
    try:
        return SeriesGroupingEngine.from_config(get_config())
    except AnimeGroupingError as e:
        fail(str(e))


def season_to_dict(season: SeasonInfo) -> Dict[str, Any]:
    return {
        "anime_id": season.anime_id,
        "title": season.title,
        "title_english": season.title_english,
        "slug": season.slug,
        "year": season.year,
        "type": season.type,
        "episode_count": season.episode_count,
        "status": season.status,
        "start_date": season.start_date.isoformat() if season.start_date else None,
        "season_number": season.season_number,
        "season_name": season.season_name,
        "source": season.source,
        "confidence": round(season.confidence, 4),
    }


def series_to_dict(group: SeriesGroup) -> Dict[str, Any]:
    return {
        "series_name": group.series_name,
        "anchor_id": group.anchor_id,
        "season_count": group.season_count,
        "total_episodes": group.total_episodes,
        "seasons": [season_to_dict(s) for s in group.seasons],
        "patterns_used": [list(p) for p in group.patterns_used],
    }


def print_json(data: Any) -> None:
    # Plain echo: rich would re-wrap long lines
    click.echo(json.dumps(data, ensure_ascii=False, indent=2))


def confidence_style(confidence: float) -> str:
    if confidence >= 0.7:
        return "green"
    if confidence > 0.5:
        return "yellow"
    return "red"


def build_seasons_table(title: str, seasons: List[SeasonInfo], anchor_id: str = None) -> Table:
    table = Table(title=title, box=box.ROUNDED, header_style="bold magenta")
    table.add_column("#", justify="right", style="dim")
    table.add_column("ID", style="cyan")
    table.add_column("Season")
    table.add_column("Title")
    table.add_column("Year", justify="right")
    table.add_column("Type")
    table.add_column("Eps", justify="right")
    table.add_column("Source")
    table.add_column("Conf", justify="right")

    for i, s in enumerate(seasons, 1):
        name = s.title_english or s.title
        if s.anime_id == anchor_id:
            name = f"[bold]{name}[/bold] [dim](anchor)[/dim]"
        table.add_row(
            str(i),
            s.anime_id,
            s.season_name or "[dim]?[/dim]",
            name,
            str(s.year) if s.year else "-",
            s.type or "-",
            str(s.episode_count) if s.episode_count else "-",
            s.source,
            f"[{confidence_style(s.confidence)}]{s.confidence:.2f}[/]",
        )
    return table


def build_patterns_table(title: str, patterns: List[GroupingPattern]) -> Table:
    table = Table(title=title, box=box.ROUNDED, header_style="bold magenta")
    table.add_column("Type", style="cyan")
    table.add_column("Pattern")
    table.add_column("Conf", justify="right")
    table.add_column("OK", justify="right", style="green")
    table.add_column("Fail", justify="right", style="red")
    table.add_column("Last Used")
    table.add_column("State")

    for p in patterns:
        table.add_row(
            p.pattern_type,
            p.pattern,
            f"[{confidence_style(p.confidence)}]{p.confidence:.3f}[/]",
            str(p.success_count),
            str(p.failure_count),
            p.last_used.strftime("%Y-%m-%d") if p.last_used else "-",
            "[yellow]decayed[/yellow]" if p.state == "decayed" else "active",
        )
    return table
