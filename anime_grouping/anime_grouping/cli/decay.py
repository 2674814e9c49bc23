"""
Decay command.

Runs one decay pass over patterns that have not been used for a while.
"""
import click
import logging
from typing import Optional
from rich.table import Table
from rich import box

from .base import console, load_engine, fail
from ..config import get_learning_config
from ..logging import AnimeGroupingError

logger = logging.getLogger(__name__)


@click.command()
@click.option("--days", type=int, default=None, help="Days unused before a pattern decays (default: LEARNING_DECAY_THRESHOLD_DAYS).")
def decay(days: Optional[int]) -> None:
    """Decays the confidence of long-unused patterns."""
    threshold = days if days is not None else get_learning_config().decay_threshold_days
    logger.info(f"Decay command started (threshold={threshold} days)")
    engine = load_engine()

    try:
        report = engine.feedback_loop.decay_old_patterns(threshold)
    except AnimeGroupingError as e:
        fail(f"Decay failed: {e}")

    console.print(
        f"Examined [bold]{report.examined}[/bold] patterns, "
        f"decayed [bold yellow]{report.decayed_count}[/bold yellow], "
        f"skipped [dim]{report.skipped_recent}[/dim] decayed recently."
    )
    if not report.decayed:
        return

    table = Table(box=box.ROUNDED, header_style="bold magenta")
    table.add_column("Type", style="cyan")
    table.add_column("Pattern")
    table.add_column("Before", justify="right")
    table.add_column("After", justify="right")
    for pattern_type, pattern, before, after in report.decayed:
        table.add_row(pattern_type, pattern, f"{before:.3f}", f"{after:.3f}")
    console.print(table)
