"""
Relationship graph builder.

Walks explicit catalog relations outward from an anchor (bounded BFS,
visited-set cycle safety) and turns every reachable entry into a SeasonInfo.
"""

import logging
from collections import deque
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Dict, FrozenSet, List, Optional, Tuple

from .catalog import CatalogRepository
from .models import AnimeRecord, PatternType, Relation, RelationType, SeasonDescriptor, SeasonInfo
from .pattern_store import PatternConfidenceStore
from .title_parser import parse_record
from .logging import NotFoundError
from .constants import CONFIDENCE_CEILING, DEFAULT_FRANCHISE_MAX_DEPTH, DEFAULT_MAX_DEPTH

logger = logging.getLogger(__name__)

# Edges that keep us inside one series
SERIES_RELATIONS: FrozenSet[RelationType] = frozenset({
    RelationType.SEQUEL,
    RelationType.PREQUEL,
    RelationType.SIDE_STORY,
    RelationType.ALTERNATIVE,
})
FRANCHISE_RELATIONS: FrozenSet[RelationType] = frozenset(RelationType)
FRANCHISE_PATTERN = "franchise"


@dataclass
class _Node:
    record: AnimeRecord
    descriptor: SeasonDescriptor
    depth: int
    via: Optional[Relation] = None


@dataclass
class GraphWalk:
    """Result of one traversal: ordered entries plus the patterns that produced them."""
    anchor_id: str
    seasons: List[SeasonInfo] = field(default_factory=list)
    patterns_used: List[Tuple[str, str]] = field(default_factory=list)


class RelationshipGraphBuilder:
    """Read-only: never writes confidence."""

    def __init__(
        self,
        catalog: CatalogRepository,
        store: PatternConfidenceStore,
        max_depth: int = DEFAULT_MAX_DEPTH,
        franchise_max_depth: int = DEFAULT_FRANCHISE_MAX_DEPTH
    ):
        self.catalog = catalog
        self.store = store
        self.max_depth = max_depth
        self.franchise_max_depth = franchise_max_depth

    def build_graph(self, anchor_id: str) -> List[SeasonInfo]:
        """
        Seasons reachable from the anchor over sequel/prequel/side-story/
        alternative edges. Empty list when the anchor has no such relations.

        Raises:
            NotFoundError: If the anchor is not in the catalog.
        """
        return self.walk(anchor_id).seasons

    def walk(self, anchor_id: str) -> GraphWalk:
        nodes, edges = self._traverse(anchor_id, SERIES_RELATIONS, self.max_depth)
        if len(nodes) <= 1:
            return GraphWalk(anchor_id=anchor_id)

        numbers = self._infer_season_numbers(nodes, edges)
        result = GraphWalk(anchor_id=anchor_id)
        for anime_id, node in nodes.items():
            descriptor = node.descriptor
            if numbers.get(anime_id) != descriptor.season_number:
                n = numbers[anime_id]
                descriptor = replace(descriptor, season_number=n, season_name=f"Season {n}")
            result.seasons.append(
                SeasonInfo.from_record(node.record, descriptor, "graph", self._edge_confidence(node.via))
            )
            if node.via is not None:
                _add_pattern(result.patterns_used, (PatternType.RELATIONSHIP_TYPE.value, node.via.relation_type.label))
            if node.descriptor.marker:
                _add_pattern(result.patterns_used, (PatternType.TITLE_PATTERN.value, node.descriptor.marker))

        logger.debug(f"Graph for {anchor_id}: {len(result.seasons)} entries, {len(edges)} edges")
        return result

    def build_franchise_graph(self, anchor_id: str, max_depth: Optional[int] = None) -> List[SeasonInfo]:
        """Everything related to the anchor over any relation type, deeper cap."""
        depth = max_depth if max_depth is not None else self.franchise_max_depth
        nodes, _ = self._traverse(anchor_id, FRANCHISE_RELATIONS, depth)
        if len(nodes) <= 1:
            return []

        confidence = self.store.get_confidence(PatternType.RELATIONSHIP_TYPE, FRANCHISE_PATTERN)
        return [
            SeasonInfo.from_record(node.record, node.descriptor, "graph",
                                   CONFIDENCE_CEILING if node.via is None else confidence)
            for node in nodes.values()
        ]

    def _traverse(self, anchor_id: str, allowed: FrozenSet[RelationType], max_depth: int):
        anchor = self.catalog.get(anchor_id)
        if anchor is None:
            raise NotFoundError(anchor_id)

        nodes: Dict[str, _Node] = {anchor_id: _Node(anchor, parse_record(anchor), 0)}
        edges: List[Relation] = []
        queue = deque([anchor_id])

        while queue:
            current_id = queue.popleft()
            current = nodes[current_id]
            if current.depth >= max_depth:
                continue

            for relation in self.catalog.get_relations(current_id):
                if relation.relation_type not in allowed:
                    continue
                target_id = relation.target_id
                if target_id in nodes:
                    edges.append(relation)
                    continue
                record = self.catalog.get(target_id)
                if record is None:
                    logger.debug(f"Skipping dangling relation {current_id} -> {target_id}")
                    continue
                nodes[target_id] = _Node(record, parse_record(record), current.depth + 1, relation)
                edges.append(relation)
                queue.append(target_id)

        return nodes, edges

    @staticmethod
    def _infer_season_numbers(nodes: Dict[str, _Node], edges: List[Relation]) -> Dict[str, Optional[int]]:
        """
        Fills gaps from numbered neighbours: an unnumbered entry on a sequel or
        prequel edge of the same series becomes neighbour +/- 1. Movies never
        receive a number.
        """
        numbers = {anime_id: node.descriptor.season_number for anime_id, node in nodes.items()}
        order_edges = [e for e in edges if e.relation_type.conveys_order]

        changed = True
        while changed:
            changed = False
            for edge in order_edges:
                source, target = nodes.get(edge.source_id), nodes.get(edge.target_id)
                if source is None or target is None:
                    continue
                if source.descriptor.series_key != target.descriptor.series_key:
                    continue

                step = 1 if edge.relation_type is RelationType.SEQUEL else -1
                for known, unknown, delta in ((source, target, step), (target, source, -step)):
                    known_n = numbers[known.record.id]
                    if known_n is None or numbers[unknown.record.id] is not None or unknown.record.is_movie:
                        continue
                    inferred = known_n + delta
                    if inferred >= 1:
                        numbers[unknown.record.id] = inferred
                        changed = True
        return numbers

    def _edge_confidence(self, via: Optional[Relation]) -> float:
        if via is None:
            # The anchor itself
            return CONFIDENCE_CEILING
        return self.store.get_confidence(PatternType.RELATIONSHIP_TYPE, via.relation_type.label)


def _add_pattern(patterns: List[Tuple[str, str]], pattern: Tuple[str, str]) -> None:
    if pattern not in patterns:
        patterns.append(pattern)


def identify_franchise_root(entries: List[SeasonInfo]) -> Optional[SeasonInfo]:
    """The earliest entry: start date, then year, then id."""
    if not entries:
        return None
    return min(
        entries,
        key=lambda s: (
            s.start_date is None,
            s.start_date or date.min,
            s.year is None,
            s.year or 0,
            s.anime_id,
        ),
    )
