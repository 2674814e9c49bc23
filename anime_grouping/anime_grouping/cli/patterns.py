"""
Patterns command.

Lists the most trusted grouping patterns.
"""
import click
import logging
from typing import Optional

from .base import console, load_engine, print_json, build_patterns_table
from ..models import PatternType
from ..constants import DEFAULT_TOP_PATTERNS

logger = logging.getLogger(__name__)


@click.command()
@click.option("--type", "pattern_type", default=None, type=click.Choice([t.value for t in PatternType]),
              help="Only show patterns of this type.")
@click.option("--limit", "-n", default=DEFAULT_TOP_PATTERNS, show_default=True, help="Number of patterns to show.")
@click.option("--json", "as_json", is_flag=True, help="Print the patterns as JSON.")
def patterns(pattern_type: Optional[str], limit: int, as_json: bool) -> None:
    """Shows the top grouping patterns by confidence."""
    engine = load_engine()
    top = engine.store.get_top_patterns(limit, pattern_type)

    if as_json:
        print_json([p.to_dict() for p in top])
        return

    if not top:
        console.print("[dim]No patterns recorded yet. Run 'seed' to load the defaults.[/dim]")
        return
    console.print(build_patterns_table(f"Top {len(top)} patterns", top))
