"""
Series command.

Groups the seasons of one anime and shows them in canonical order.
"""
import click
import logging
from contextlib import nullcontext

from rich.panel import Panel

from .base import (
    console,
    load_engine,
    fail,
    print_json,
    series_to_dict,
    season_to_dict,
    build_seasons_table,
)
from ..logging import AnimeGroupingError, NotFoundError, temporary_log_level

logger = logging.getLogger(__name__)


@click.command()
@click.argument("anime_id")
@click.option("--franchise", is_flag=True, help="Also show related works outside the series.")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON.")
@click.option("--explain", is_flag=True, help="Show the graph walk, title matches and merge decisions on the console.")
def series(anime_id: str, franchise: bool, as_json: bool, explain: bool) -> None:
    """Shows the ordered series that ANIME_ID belongs to."""
    logger.info(f"Series command started (anime_id={anime_id}, franchise={franchise})")
    engine = load_engine()

    try:
        with temporary_log_level(logging.DEBUG, "console") if explain else nullcontext():
            if franchise:
                grouping = engine.get_anime_grouping(anime_id)
                group = grouping.series
            else:
                grouping = None
                group = engine.group_series(anime_id)
    except NotFoundError as e:
        fail(str(e))
    except AnimeGroupingError as e:
        fail(f"Grouping failed: {e}")

    if as_json:
        data = series_to_dict(group)
        if grouping is not None:
            data["franchise"] = [season_to_dict(s) for s in grouping.franchise]
            data["franchise_root_id"] = grouping.franchise_root.anime_id if grouping.franchise_root else None
        print_json(data)
        return

    title = f"{group.series_name} ({group.season_count} entries, {group.total_episodes} episodes)"
    console.print(build_seasons_table(title, group.seasons, anchor_id=group.anchor_id))
    if group.is_singleton:
        console.print("[dim]No related entries found.[/dim]")

    if grouping is not None:
        if grouping.franchise:
            console.print(build_seasons_table("Franchise", grouping.franchise))
        if grouping.franchise_root:
            root = grouping.franchise_root
            console.print(Panel(f"{root.title_english or root.title} [dim]({root.anime_id})[/dim]",
                                title="Franchise root", expand=False))

    if group.patterns_used:
        used = ", ".join(f"{t}={p}" for t, p in group.patterns_used)
        console.print(f"[dim]Patterns used: {used}[/dim]")
