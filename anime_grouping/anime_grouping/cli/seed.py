"""
Seed command.

Loads the default grouping patterns into the confidence store.
"""
import click
import logging

from .base import console, load_engine
from ..constants import SEED_PATTERNS

logger = logging.getLogger(__name__)


@click.command()
def seed() -> None:
    """Seeds default grouping patterns (never lowers existing confidence)."""
    engine = load_engine()
    created, updated = engine.store.seed_patterns(SEED_PATTERNS)
    console.print(
        f"[green]Seeded {len(SEED_PATTERNS)} patterns:[/green] "
        f"{created} created, {updated} raised, {len(SEED_PATTERNS) - created - updated} unchanged."
    )
