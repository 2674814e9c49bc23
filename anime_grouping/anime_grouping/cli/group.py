"""
Group command.

Batch grouping of many anime into series and franchise groups.
"""
import click
import logging
from typing import Tuple
from rich.table import Table
from rich import box

from .base import console, load_engine, fail, print_json, confidence_style
from ..logging import AnimeGroupingError, log_step, log_substep

logger = logging.getLogger(__name__)


@click.command()
@click.argument("anime_ids", nargs=-1)
@click.option("--all", "group_all", is_flag=True, help="Group every anime in the catalog.")
@click.option("--json", "as_json", is_flag=True, help="Print the groups as JSON.")
def group(anime_ids: Tuple[str, ...], group_all: bool, as_json: bool) -> None:
    """Groups ANIME_IDS (or the whole catalog with --all) into series and franchises."""
    if not anime_ids and not group_all:
        console.print("[yellow]Please provide anime ids or use --all to group the entire catalog.[/yellow]")
        return

    engine = load_engine()
    ids = [r.id for r in engine.catalog.all()] if group_all else list(anime_ids)
    logger.info(f"Group command started ({len(ids)} ids)")
    log_step(f"Grouping {len(ids)} anime")

    try:
        groups = engine.group_anime_list(ids)
    except AnimeGroupingError as e:
        fail(f"Grouping failed: {e}")

    for g in groups:
        log_substep(f"{g.group_type} '{g.group_id}': {len(g.anime_ids)} entries via {g.source}")

    if as_json:
        print_json([
            {
                "group_id": g.group_id,
                "group_type": g.group_type,
                "confidence": round(g.confidence, 4),
                "source": g.source,
                "anime_ids": g.anime_ids,
                "metadata": g.metadata,
            }
            for g in groups
        ])
        return

    if not groups:
        console.print("[dim]No groups found.[/dim]")
        return

    table = Table(title=f"{len(groups)} groups", box=box.ROUNDED, header_style="bold magenta")
    table.add_column("Group", style="cyan")
    table.add_column("Type")
    table.add_column("Source")
    table.add_column("Conf", justify="right")
    table.add_column("Members")
    for g in groups:
        table.add_row(
            g.group_id,
            g.group_type,
            g.source,
            f"[{confidence_style(g.confidence)}]{g.confidence:.2f}[/]",
            ", ".join(g.anime_ids),
        )
    console.print(table)
