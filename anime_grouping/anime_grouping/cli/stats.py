"""
Stats command.

Displays confidence store statistics and recent feedback activity.
"""
import click
import logging
from rich.table import Table
from rich.panel import Panel
from rich import box

from .base import console, load_engine, print_json
from ..constants import HIGH_CONFIDENCE_THRESHOLD, RECENT_FEEDBACK_DAYS

logger = logging.getLogger(__name__)


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Print the statistics as JSON.")
def stats(as_json: bool) -> None:
    """Shows pattern and feedback statistics."""
    engine = load_engine()
    data = engine.store.get_statistics(engine.feedback_loop.log)

    if as_json:
        print_json(data)
        return

    table = Table(box=box.SIMPLE, show_header=False)
    table.add_column("Metric", style="bold cyan")
    table.add_column("Value", justify="right")
    table.add_row("Patterns", str(data["total_patterns"]))
    table.add_row("Average confidence", f"{data['average_confidence']:.3f}")
    table.add_row(f"High confidence (>= {HIGH_CONFIDENCE_THRESHOLD})", str(data["high_confidence_patterns"]))
    table.add_row("Decayed", str(data["decayed_patterns"]))
    table.add_row(f"Feedback (last {RECENT_FEEDBACK_DAYS} days)", str(data["recent_feedback"]))
    table.add_row("Success rate", f"{data['success_rate'] * 100:.1f}%")
    for pattern_type, count in sorted(data["patterns_by_type"].items()):
        table.add_row(f"  {pattern_type}", str(count))

    console.print(Panel(table, title="Grouping Statistics", expand=False))
