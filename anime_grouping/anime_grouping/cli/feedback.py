"""
Feedback command.

Records a user correction (merge/split/confirm) and feeds it back into the
pattern confidence store.
"""
import click
import logging
from typing import Optional, Tuple

from .base import console, load_engine, fail
from ..feedback import parse_pattern_ref
from ..models import FeedbackAction
from ..logging import AnimeGroupingError, ValidationError
from ..constants import DEFAULT_FEEDBACK_CONFIDENCE, VALID_FEEDBACK_CONFIDENCE, VALID_GROUP_TYPES

logger = logging.getLogger(__name__)


@click.command()
@click.argument("anime_id")
@click.option("--action", "-a", required=True, type=click.Choice([a.value for a in FeedbackAction]),
              help="merge/split mark the grouping wrong, confirm marks it right.")
@click.option("--group-type", default="series", show_default=True, type=click.Choice(sorted(VALID_GROUP_TYPES)))
@click.option("--source-group", default=None, help="Group the anime currently sits in.")
@click.option("--target-group", default=None, help="Group the anime should move to (merge).")
@click.option("--confidence", default=DEFAULT_FEEDBACK_CONFIDENCE, show_default=True,
              type=click.Choice(sorted(VALID_FEEDBACK_CONFIDENCE)))
@click.option("--pattern", "-p", "patterns", multiple=True,
              help="TYPE=PATTERN that caused the grouping (repeatable). Default: patterns of the current grouping.")
def feedback(
    anime_id: str,
    action: str,
    group_type: str,
    source_group: Optional[str],
    target_group: Optional[str],
    confidence: str,
    patterns: Tuple[str, ...]
) -> None:
    """Records feedback on how ANIME_ID was grouped."""
    logger.info(f"Feedback command started (anime_id={anime_id}, action={action}, patterns={list(patterns)})")
    engine = load_engine()

    try:
        if patterns:
            refs = [parse_pattern_ref(p) for p in patterns]
        elif group_type == "series":
            refs = engine.group_series(anime_id).patterns_used
        else:
            refs = []
        fb = engine.submit_feedback(
            anime_id,
            group_type,
            action,
            source_group_id=source_group,
            target_group_id=target_group,
            confidence=confidence,
            patterns=refs,
        )
    except ValidationError as e:
        fail(str(e))
    except AnimeGroupingError as e:
        fail(f"Could not record feedback: {e}")

    console.print(f"[green]Recorded {fb.action.value} feedback for {fb.anime_id} ({fb.group_type}).[/green]")

    # Show where the affected patterns ended up
    for pattern_type, pattern in refs:
        value = engine.store.get_confidence(pattern_type, pattern)
        console.print(f"  [cyan]{pattern_type}[/cyan] {pattern}: {value:.3f}")
