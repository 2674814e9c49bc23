"""
Merger & validator for season candidates.

merge() reconciles graph-derived and title-derived candidates by anime id;
validate() puts the result into canonical order and resolves duplicate
season numbers. Both are pure: inputs are never mutated, and running them
again on the same lists yields the same order.
"""

import logging
from dataclasses import replace
from datetime import date
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .models import SeasonInfo
from .constants import DEFAULT_TIE_BREAK_ORDER, MIN_TITLE_CONFIDENCE

logger = logging.getLogger(__name__)


def anime_id_sort_key(anime_id: str) -> Tuple[int, int, str]:
    """Numeric ids in numeric order, everything else after them."""
    if anime_id.isdigit():
        return (0, int(anime_id), anime_id)
    return (1, 0, anime_id)


def merge(
    graph_seasons: Sequence[SeasonInfo],
    title_seasons: Sequence[SeasonInfo],
    min_title_confidence: float = MIN_TITLE_CONFIDENCE
) -> List[SeasonInfo]:
    """
    Combines both candidate lists, keyed by anime id.

    - In both lists: the graph record wins and takes the higher confidence.
    - Title-only: kept only if its confidence exceeds min_title_confidence.
    - Graph-only: always kept.

    Output is ordered by anime id so it does not depend on input order.
    """
    merged: Dict[str, SeasonInfo] = {}

    for season in graph_seasons:
        existing = merged.get(season.anime_id)
        if existing is None or season.confidence > existing.confidence:
            merged[season.anime_id] = replace(season)

    for season in title_seasons:
        existing = merged.get(season.anime_id)
        if existing is not None:
            if existing.source == "graph":
                if season.confidence > existing.confidence:
                    existing.confidence = season.confidence
                continue
            if season.confidence <= existing.confidence:
                continue
        if season.confidence > min_title_confidence:
            merged[season.anime_id] = replace(season)
        else:
            logger.debug(
                f"Dropping title-only match {season.anime_id} '{season.title}' "
                f"(confidence {season.confidence:.2f} <= {min_title_confidence:.2f})"
            )

    return [merged[k] for k in sorted(merged, key=anime_id_sort_key)]


# Tie-breakers for duplicate season numbers: lower key wins
TIE_BREAKERS: Dict[str, Callable[[SeasonInfo], tuple]] = {
    "source": lambda s: (0 if s.source == "graph" else 1,),
    "confidence": lambda s: (-s.confidence,),
    "start_date": lambda s: (s.start_date is None, s.start_date or date.max),
}


def _tie_break_key(season: SeasonInfo, order: Sequence[str]) -> tuple:
    key: tuple = ()
    for name in order:
        key += TIE_BREAKERS[name](season)
    # Final, always-deterministic fallback
    return key + (anime_id_sort_key(season.anime_id),)


def canonical_sort_key(season: SeasonInfo) -> tuple:
    """
    Known season numbers first (ascending), then unknown seasons by start
    date, then entries lacking both by title.
    """
    if season.season_number is not None:
        return (0, season.season_number, date.min, "", anime_id_sort_key(season.anime_id))
    if season.start_date is not None:
        return (1, 0, season.start_date, "", anime_id_sort_key(season.anime_id))
    return (2, 0, date.min, (season.title or "").casefold(), anime_id_sort_key(season.anime_id))


def validate(
    merged: Sequence[SeasonInfo],
    tie_break_order: Optional[Sequence[str]] = None
) -> List[SeasonInfo]:
    """
    Orders seasons canonically. Two entries claiming the same season number
    are logged and resolved by tie_break_order; the losers become
    unknown-season and are placed by date.
    """
    order = list(tie_break_order) if tie_break_order is not None else list(DEFAULT_TIE_BREAK_ORDER)
    unknown = [name for name in order if name not in TIE_BREAKERS]
    if unknown:
        raise ValueError(f"Unknown tie-breakers: {unknown}")

    seasons = [replace(s) for s in merged]

    by_number: Dict[int, List[SeasonInfo]] = {}
    for season in seasons:
        if season.season_number is not None:
            by_number.setdefault(season.season_number, []).append(season)

    for number in sorted(by_number):
        claimants = by_number[number]
        if len(claimants) < 2:
            continue
        claimants.sort(key=lambda s: _tie_break_key(s, order))
        winner, losers = claimants[0], claimants[1:]
        for loser in losers:
            logger.warning(
                f"Season {number} claimed by both {winner.anime_id} and {loser.anime_id}; "
                f"keeping {winner.anime_id}, {loser.anime_id} demoted to unknown season"
            )
            loser.season_number = None
            loser.season_name = None

    return sorted(seasons, key=canonical_sort_key)


def merge_and_validate(
    graph_seasons: Sequence[SeasonInfo],
    title_seasons: Sequence[SeasonInfo],
    min_title_confidence: float = MIN_TITLE_CONFIDENCE,
    tie_break_order: Optional[Sequence[str]] = None
) -> List[SeasonInfo]:
    return validate(merge(graph_seasons, title_seasons, min_title_confidence), tie_break_order)
