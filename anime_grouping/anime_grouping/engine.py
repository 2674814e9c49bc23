"""
Series grouping engine.

Facade over the graph builder, fallback matcher, merger and feedback loop.
Grouping is computed on read and never writes confidence; outcomes reach the
store only through submit_feedback().
"""

import concurrent.futures
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from .catalog import CatalogRepository, JsonCatalogRepository
from .config import AnimeGroupingConfig, GroupingConfig, get_config
from .feedback import FeedbackLog, FeedbackLoop, JsonlFeedbackLog, PatternRef, build_feedback
from .fallback_matcher import FallbackMatcher, TitleMatch
from .graph_builder import GraphWalk, RelationshipGraphBuilder, identify_franchise_root
from .merger import anime_id_sort_key, merge_and_validate, validate
from .models import AnimeGroup, AnimeRecord, GroupingFeedback, PatternType, SeasonInfo, SeriesGroup
from .pattern_store import JsonPatternRepository, PatternConfidenceStore, clamp_confidence, title_pattern_key
from .title_parser import group_by_series_name, parse_record
from .logging import NotFoundError
from .constants import (
    CONFIDENCE_CEILING,
    DATABASE_FRANCHISE_CONFIDENCE,
    DEFAULT_FEEDBACK_CONFIDENCE,
    HIGH_CONFIDENCE_THRESHOLD,
    STUDIO_MATCH_BONUS,
    YEAR_PROXIMITY_BONUS,
    YEAR_PROXIMITY_CLOSE,
    YEAR_PROXIMITY_FAR,
    YEAR_PROXIMITY_PENALTY,
)

logger = logging.getLogger(__name__)


@dataclass
class AnimeGrouping:
    """Series and franchise view of one anime."""
    anime_id: str
    series: SeriesGroup
    # Related works outside the series (adaptations, spin-offs, ...)
    franchise: List[SeasonInfo] = field(default_factory=list)
    franchise_root: Optional[SeasonInfo] = None


class SeriesGroupingEngine:
    def __init__(
        self,
        catalog: CatalogRepository,
        store: Optional[PatternConfidenceStore] = None,
        feedback_log: Optional[FeedbackLog] = None,
        config: Optional[AnimeGroupingConfig] = None
    ):
        self.config = config or get_config()
        grouping: GroupingConfig = self.config.grouping
        learning = self.config.learning

        self.catalog = catalog
        self.store = store if store is not None else PatternConfidenceStore()
        self.graph_builder = RelationshipGraphBuilder(
            catalog, self.store, grouping.max_depth, grouping.franchise_max_depth
        )
        self.fallback_matcher = FallbackMatcher(catalog, self.store, grouping.candidate_limit)
        self.feedback_loop = FeedbackLoop(
            self.store,
            feedback_log,
            decay_horizon_days=learning.decay_horizon_days,
            decay_min_factor=learning.decay_min_factor,
            decay_eligible_above=learning.decay_eligible_above,
            min_redecay_hours=learning.min_redecay_hours,
        )

    @classmethod
    def from_config(cls, config: Optional[AnimeGroupingConfig] = None) -> "SeriesGroupingEngine":
        """Engine backed by the JSON catalog, pattern store and feedback log from StorageConfig."""
        config = config or get_config()
        storage = config.storage
        return cls(
            JsonCatalogRepository(storage.catalog_file),
            PatternConfidenceStore(JsonPatternRepository(storage.patterns_file)),
            JsonlFeedbackLog(storage.feedback_file),
            config,
        )

    def _require(self, anime_id: str) -> AnimeRecord:
        record = self.catalog.get(anime_id)
        if record is None:
            raise NotFoundError(anime_id)
        return record

    def _collect(self, anchor: AnimeRecord) -> Tuple[GraphWalk, TitleMatch]:
        """Graph walk and title match for one anchor, concurrently when enabled."""
        if not self.config.grouping.parallel:
            return (
                self.graph_builder.walk(anchor.id),
                self.fallback_matcher.match(anchor.title, anchor.title_english),
            )

        with concurrent.futures.ThreadPoolExecutor(max_workers=2) as executor:
            graph_future = executor.submit(self.graph_builder.walk, anchor.id)
            title_future = executor.submit(self.fallback_matcher.match, anchor.title, anchor.title_english)
            # result() re-raises NotFoundError / RepositoryUnavailableError here
            return graph_future.result(), title_future.result()

    def group_series(self, anchor_id: str) -> SeriesGroup:
        """
        Ordered series containing the anchor.

        The title match only contributes when the graph is sparse (anchor
        alone or nothing). When neither source finds anything the result is a
        singleton group holding the anchor.

        Raises:
            NotFoundError: If the anchor is not in the catalog.
            RepositoryUnavailableError: If the catalog or store cannot be reached.
        """
        anchor = self._require(anchor_id)
        descriptor = parse_record(anchor)
        walk, title_match = self._collect(anchor)

        grouping = self.config.grouping
        use_titles = len(walk.seasons) <= 1
        title_seasons = title_match.seasons if use_titles else []

        seasons = merge_and_validate(
            walk.seasons,
            title_seasons,
            grouping.min_title_confidence,
            grouping.tie_break_order,
        )
        if not any(s.anime_id == anchor.id for s in seasons):
            anchor_entry = SeasonInfo.from_record(anchor, descriptor, "graph", CONFIDENCE_CEILING)
            seasons = validate(seasons + [anchor_entry], grouping.tie_break_order)

        patterns_used = list(walk.patterns_used)
        if use_titles and any(s.source == "title" for s in seasons):
            for pattern in title_match.patterns_used:
                if pattern not in patterns_used:
                    patterns_used.append(pattern)

        group = SeriesGroup(
            series_name=descriptor.series_name,
            anchor_id=anchor.id,
            seasons=seasons,
            patterns_used=patterns_used,
        )
        if group.is_singleton:
            logger.info(f"No series found for {anchor.id} '{anchor.title}'; returning it alone")
        else:
            logger.info(f"Grouped {anchor.id} '{descriptor.series_name}': {group.season_count} entries")
        return group

    def get_anime_grouping(self, anime_id: str) -> AnimeGrouping:
        """Series of the anime plus the wider franchise around it."""
        series = self.group_series(anime_id)
        franchise = self.graph_builder.build_franchise_graph(anime_id)
        in_series = set(series.anime_ids)
        related = [s for s in franchise if s.anime_id not in in_series]
        return AnimeGrouping(
            anime_id=anime_id,
            series=series,
            franchise=sorted(related, key=lambda s: anime_id_sort_key(s.anime_id)),
            franchise_root=identify_franchise_root(franchise),
        )

    def group_anime_list(self, anime_ids: Sequence[str]) -> List[AnimeGroup]:
        """
        Batch grouping in three passes:
        1. explicit relation graphs,
        2. series-name groups of what is left, adjusted by year spread and studio,
        3. franchise groups, replacing a smaller overlapping series group.
        Unknown ids are skipped with a warning.
        """
        records = []
        for anime_id in dict.fromkeys(anime_ids):
            record = self.catalog.get(anime_id)
            if record is None:
                logger.warning(f"Skipping unknown anime id {anime_id}")
                continue
            records.append(record)

        groups: List[AnimeGroup] = []
        processed: Set[str] = set()

        # Pass 1: relation graph
        for record in records:
            if record.id in processed:
                continue
            walk = self.graph_builder.walk(record.id)
            if len(walk.seasons) <= 1:
                continue
            ids = [s.anime_id for s in walk.seasons]
            related_confidences = [s.confidence for s in walk.seasons if s.anime_id != record.id]
            name = parse_record(record).series_name
            groups.append(AnimeGroup(
                group_id=name,
                group_type="series",
                confidence=min(related_confidences),
                source="database",
                anime_ids=ids,
                metadata={
                    "series_name": name,
                    "season_count": len(ids),
                    "patterns_used": [list(p) for p in walk.patterns_used],
                },
            ))
            processed.update(ids)

        # Pass 2: title patterns over the remaining entries
        remaining = [r for r in records if r.id not in processed]
        min_confidence = self.config.grouping.min_title_confidence
        for series_key, members in group_by_series_name(remaining).items():
            if len(members) < 2:
                continue
            pattern = title_pattern_key(series_key)
            confidence = self._title_group_confidence(pattern, members)
            if confidence < min_confidence:
                logger.debug(f"Title group '{series_key}' below threshold ({confidence:.2f})")
                continue
            name = parse_record(members[0]).series_name
            ids = [m.id for m in members]
            groups.append(AnimeGroup(
                group_id=name,
                group_type="series",
                confidence=confidence,
                source="title_pattern" if confidence >= HIGH_CONFIDENCE_THRESHOLD else "fuzzy_match",
                anime_ids=ids,
                metadata={
                    "series_name": name,
                    "season_count": len(ids),
                    "patterns_used": [[PatternType.TITLE_PATTERN.value, pattern]],
                },
            ))
            processed.update(ids)

        # Pass 3: franchises
        franchise_confidence = DATABASE_FRANCHISE_CONFIDENCE
        if self.store.get_pattern(PatternType.RELATIONSHIP_TYPE, "franchise") is not None:
            franchise_confidence = self.store.get_confidence(PatternType.RELATIONSHIP_TYPE, "franchise")
        in_franchise: Set[str] = set()
        for record in records:
            if record.id in in_franchise:
                continue
            franchise = self.graph_builder.build_franchise_graph(record.id)
            if len(franchise) <= 1:
                continue
            ids = [s.anime_id for s in franchise]
            in_franchise.update(ids)
            root = identify_franchise_root(franchise)
            franchise_group = AnimeGroup(
                group_id=root.anime_id,
                group_type="franchise",
                confidence=franchise_confidence,
                source="database",
                anime_ids=ids,
                metadata={
                    "franchise_root_id": root.anime_id,
                    "patterns_used": [[PatternType.RELATIONSHIP_TYPE.value, "franchise"]],
                },
            )
            overlapping = next((g for g in groups if set(g.anime_ids) & set(ids)), None)
            if overlapping is None:
                groups.append(franchise_group)
            elif overlapping.group_type == "series" and len(ids) > len(overlapping.anime_ids):
                groups[groups.index(overlapping)] = franchise_group

        logger.info(f"Grouped {len(records)} anime into {len(groups)} groups")
        return groups

    def _title_group_confidence(self, pattern: str, members: List[AnimeRecord]) -> float:
        confidence = self.store.get_confidence(PatternType.TITLE_PATTERN, pattern)

        years = sorted(m.year for m in members if m.year is not None)
        if len(years) >= 2:
            spread = years[-1] - years[0]
            if spread <= YEAR_PROXIMITY_CLOSE:
                confidence += YEAR_PROXIMITY_BONUS
            elif spread > YEAR_PROXIMITY_FAR:
                confidence -= YEAR_PROXIMITY_PENALTY

        studios = [m.studio for m in members if m.studio]
        if len(studios) >= 2 and len(set(studios)) == 1:
            confidence += STUDIO_MATCH_BONUS

        return clamp_confidence(confidence)

    def submit_feedback(
        self,
        anime_id: str,
        group_type: str,
        action: str,
        source_group_id: Optional[str] = None,
        target_group_id: Optional[str] = None,
        confidence: str = DEFAULT_FEEDBACK_CONFIDENCE,
        patterns: Optional[Iterable[PatternRef]] = None
    ) -> GroupingFeedback:
        """
        Records a user correction. Without explicit patterns, a series
        correction is attributed to the patterns the current grouping used.
        """
        feedback = build_feedback(
            anime_id, group_type, action, source_group_id, target_group_id, confidence,
            created_at=self.feedback_loop.clock(),
        )
        self._require(anime_id)
        if patterns is None:
            patterns = self.group_series(anime_id).patterns_used if group_type == "series" else []
        return self.feedback_loop.learn_from_feedback(feedback, list(patterns))
