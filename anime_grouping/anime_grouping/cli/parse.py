"""
Parse command.

Shows how a raw title breaks down into series name and season.
"""
import click
import logging
from typing import Optional
from rich.table import Table
from rich import box

from .base import console, print_json, fail
from ..title_parser import clean_title, parse_title
from ..logging import ValidationError

logger = logging.getLogger(__name__)


@click.command()
@click.argument("title")
@click.option("--english", "title_english", default=None, help="English title (preferred when given).")
@click.option("--json", "as_json", is_flag=True, help="Print the descriptor as JSON.")
def parse(title: str, title_english: Optional[str], as_json: bool) -> None:
    """Parses TITLE into series name and season information."""
    try:
        descriptor = parse_title(title, title_english)
    except ValidationError as e:
        fail(str(e))

    if as_json:
        print_json({
            "series_name": descriptor.series_name,
            "season_number": descriptor.season_number,
            "season_name": descriptor.season_name,
            "series_key": descriptor.series_key,
            "marker": descriptor.marker,
        })
        return

    table = Table(box=box.SIMPLE, show_header=False)
    table.add_column("Field", style="bold cyan")
    table.add_column("Value")
    table.add_row("Input", clean_title(title_english or title))
    table.add_row("Series", descriptor.series_name)
    table.add_row("Season", str(descriptor.season_number) if descriptor.season_number is not None else "[dim]unknown[/dim]")
    table.add_row("Season name", descriptor.season_name or "-")
    table.add_row("Key", descriptor.series_key)
    table.add_row("Marker", descriptor.marker or "-")
    console.print(table)
