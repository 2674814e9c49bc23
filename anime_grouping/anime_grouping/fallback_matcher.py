"""
Title-based fallback matcher.

Two passes: a broad, capped substring search over the catalog, then a strict
filter that re-parses every candidate and keeps only exact series-key matches.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .catalog import CatalogRepository
from .models import PatternType, SeasonInfo
from .pattern_store import PatternConfidenceStore, title_pattern_key
from .title_parser import parse_record, parse_title, series_keys
from .logging import ValidationError
from .constants import DEFAULT_CANDIDATE_LIMIT

logger = logging.getLogger(__name__)


@dataclass
class TitleMatch:
    """Title-only candidates plus the pattern keys their confidence came from."""
    seasons: List[SeasonInfo] = field(default_factory=list)
    patterns_used: List[Tuple[str, str]] = field(default_factory=list)


class FallbackMatcher:
    """Read-only: never writes confidence."""

    def __init__(
        self,
        catalog: CatalogRepository,
        store: PatternConfidenceStore,
        candidate_limit: int = DEFAULT_CANDIDATE_LIMIT
    ):
        self.catalog = catalog
        self.store = store
        self.candidate_limit = candidate_limit

    def match_by_title(self, title: str, title_english: Optional[str] = None) -> List[SeasonInfo]:
        """Catalog entries whose normalized series name equals the anchor's."""
        return self.match(title, title_english).seasons

    def match(self, title: str, title_english: Optional[str] = None) -> TitleMatch:
        preferred = parse_title(title, title_english)
        # English key first, then the native one when it differs
        anchor_keys = [preferred.series_key]
        queries = [preferred.series_name]
        if title and title_english:
            native = parse_title(title)
            if native.series_key not in anchor_keys:
                anchor_keys.append(native.series_key)
                queries.append(native.series_name)

        # Pass 1: broad substring search, capped overall
        candidates = []
        seen = set()
        for query in queries:
            remaining = self.candidate_limit - len(candidates)
            if remaining <= 0:
                break
            for record in self.catalog.search_titles(query, remaining):
                if record.id not in seen:
                    seen.add(record.id)
                    candidates.append(record)

        # Pass 2: strict series-key equality
        result = TitleMatch()
        for record in candidates:
            try:
                keys = series_keys(record)
            except ValidationError:
                continue
            matched = next((k for k in anchor_keys if k in keys), None)
            if matched is None:
                continue

            pattern = title_pattern_key(matched)
            confidence = self.store.get_confidence(PatternType.TITLE_PATTERN, pattern)
            result.seasons.append(SeasonInfo.from_record(record, parse_record(record), "title", confidence))
            if (PatternType.TITLE_PATTERN.value, pattern) not in result.patterns_used:
                result.patterns_used.append((PatternType.TITLE_PATTERN.value, pattern))

        logger.debug(
            f"Fallback match for '{preferred.series_name}': "
            f"{len(candidates)} candidates, {len(result.seasons)} kept"
        )
        return result
