"""
Catalog repositories: lookup by id, relation edges and bounded title search.

The grouping engine only talks to the CatalogRepository protocol; the
in-memory and JSON-file implementations here cover tests and the CLI.
"""

import json
import logging
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Union

from .models import AnimeRecord, Relation, RelationType
from .logging import ConfigError, RepositoryUnavailableError
from .constants import DEFAULT_CANDIDATE_LIMIT

logger = logging.getLogger(__name__)


class CatalogRepository(Protocol):
    """What the grouping engine needs from a catalog."""

    def get(self, anime_id: str) -> Optional[AnimeRecord]:
        ...

    def get_relations(self, anime_id: str) -> List[Relation]:
        ...

    def search_titles(self, query: str, limit: int = DEFAULT_CANDIDATE_LIMIT) -> List[AnimeRecord]:
        ...

    def all(self) -> List[AnimeRecord]:
        ...


class InMemoryCatalog:
    """
    Indexes records by id and relation edges by source id.
    Every edge is stored from both ends so a walk can start anywhere.
    """

    def __init__(self, records: Iterable[AnimeRecord] = ()):
        self.records: Dict[str, AnimeRecord] = {}
        self.relations: Dict[str, List[Relation]] = defaultdict(list)
        for record in records:
            self.add(record)

    def add(self, record: AnimeRecord) -> None:
        if record.id in self.records:
            logger.warning(f"Duplicate anime id {record.id}: '{self.records[record.id].title}' replaced by '{record.title}'")
        self.records[record.id] = record

    def add_relation(self, source_id: str, target_id: str, relation_type: Union[RelationType, str]) -> None:
        """Adds 'target is <relation_type> of source' and its inverse."""
        if not isinstance(relation_type, RelationType):
            relation_type = RelationType.from_label(relation_type)
        if source_id == target_id:
            logger.debug(f"Ignoring self relation on {source_id}")
            return
        self._add_edge(Relation(source_id, target_id, relation_type))
        self._add_edge(Relation(target_id, source_id, relation_type.inverse))

    def _add_edge(self, relation: Relation) -> None:
        edges = self.relations[relation.source_id]
        # One edge per target; the first declared type wins
        if any(r.target_id == relation.target_id for r in edges):
            return
        edges.append(relation)

    def get(self, anime_id: str) -> Optional[AnimeRecord]:
        return self.records.get(anime_id)

    def get_relations(self, anime_id: str) -> List[Relation]:
        return list(self.relations.get(anime_id, []))

    def search_titles(self, query: str, limit: int = DEFAULT_CANDIDATE_LIMIT) -> List[AnimeRecord]:
        """Case-insensitive substring search over title and English title."""
        needle = (query or "").strip().casefold()
        if not needle:
            return []

        results = []
        for record in self.records.values():
            haystacks = [record.title or "", record.title_english or ""]
            if any(needle in h.casefold() for h in haystacks):
                results.append(record)
                if len(results) >= limit:
                    break
        return results

    def all(self) -> List[AnimeRecord]:
        return list(self.records.values())

    def __len__(self) -> int:
        return len(self.records)


def _relation_fields(raw: Dict[str, Any]) -> tuple:
    target = raw.get("target_id", raw.get("targetId"))
    label = raw.get("relation_type", raw.get("relationType"))
    if target is None:
        raise KeyError("target_id")
    return str(target), label


class JsonCatalogRepository(InMemoryCatalog):
    """
    Catalog loaded from a JSON list of records.

    Each record may embed its relation edges:
        {"id": "1", "title": "...", "relations": [{"target_id": "2", "relation_type": "Sequel"}]}
    """

    def __init__(self, path: Union[str, Path]):
        super().__init__()
        self.path = Path(path)
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            raise RepositoryUnavailableError(f"Catalog file not found: {self.path}")

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except OSError as e:
            raise RepositoryUnavailableError(f"Cannot read catalog {self.path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigError(f"Catalog {self.path} is not valid JSON: {e}") from e

        if isinstance(data, dict):
            data = data.get("anime", [])
        if not isinstance(data, list):
            raise ConfigError(f"Catalog {self.path} must hold a list of records")

        pending = []
        for i, raw in enumerate(data):
            try:
                record = AnimeRecord.from_dict(raw)
                for rel in raw.get("relations") or []:
                    pending.append((record.id,) + _relation_fields(rel))
            except (KeyError, TypeError, ValueError) as e:
                raise ConfigError(f"Invalid catalog record #{i} in {self.path}: {e}") from e
            self.add(record)

        for source_id, target_id, label in pending:
            if target_id not in self.records:
                logger.debug(f"Relation {source_id} -> {target_id} points outside the catalog")
            self.add_relation(source_id, target_id, label)

        logger.info(f"Loaded catalog {self.path}: {len(self.records)} records, {len(pending)} relations")
