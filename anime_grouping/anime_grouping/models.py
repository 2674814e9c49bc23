from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .constants import (
    DEFAULT_CONFIDENCE,
    DEFAULT_FEEDBACK_CONFIDENCE,
    INITIAL_CONFIDENCE,
    MOVIE_TYPES,
)


class RelationType(Enum):
    """Closed set of catalog relation kinds."""
    SEQUEL = "sequel"
    PREQUEL = "prequel"
    SIDE_STORY = "side_story"
    ALTERNATIVE = "alternative"
    ADAPTATION = "adaptation"
    OTHER = "other"

    @property
    def conveys_order(self) -> bool:
        """True if the relation tells which entry comes first."""
        return self in (RelationType.SEQUEL, RelationType.PREQUEL)

    @property
    def label(self) -> str:
        """Catalog-style label, used as the relationship_type pattern key."""
        return _RELATION_LABELS[self]

    @property
    def inverse(self) -> "RelationType":
        """The same edge read from the other end."""
        if self is RelationType.SEQUEL:
            return RelationType.PREQUEL
        if self is RelationType.PREQUEL:
            return RelationType.SEQUEL
        return self

    @classmethod
    def from_label(cls, label: Optional[str]) -> "RelationType":
        if not label:
            return cls.OTHER
        key = label.strip().lower().replace("-", " ").replace("_", " ")
        return _LABEL_ALIASES.get(key, cls.OTHER)


_RELATION_LABELS = {
    RelationType.SEQUEL: "Sequel",
    RelationType.PREQUEL: "Prequel",
    RelationType.SIDE_STORY: "Side story",
    RelationType.ALTERNATIVE: "Alternative",
    RelationType.ADAPTATION: "Adaptation",
    RelationType.OTHER: "Other",
}

_LABEL_ALIASES = {
    "sequel": RelationType.SEQUEL,
    "prequel": RelationType.PREQUEL,
    "side story": RelationType.SIDE_STORY,
    "sidestory": RelationType.SIDE_STORY,
    "alternative": RelationType.ALTERNATIVE,
    "alternative setting": RelationType.ALTERNATIVE,
    "alternative version": RelationType.ALTERNATIVE,
    "adaptation": RelationType.ADAPTATION,
}


class PatternType(Enum):
    """Signal types whose reliability is tracked."""
    RELATIONSHIP_TYPE = "relationship_type"
    TITLE_PATTERN = "title_pattern"
    STUDIO_MATCH = "studio_match"
    YEAR_PROXIMITY = "year_proximity"
    FUZZY_MATCH = "fuzzy_match"

    @property
    def initial_confidence(self) -> float:
        return INITIAL_CONFIDENCE[self.value]


class FeedbackAction(Enum):
    """User corrections on a grouping."""
    MERGE = "merge"
    SPLIT = "split"
    CONFIRM = "confirm"

    @property
    def signals_error(self) -> bool:
        return self in (FeedbackAction.MERGE, FeedbackAction.SPLIT)


def pattern_type_value(pattern_type: Any) -> str:
    """Accepts a PatternType or a raw string and returns the string key."""
    if isinstance(pattern_type, PatternType):
        return pattern_type.value
    return str(pattern_type)


def initial_confidence(pattern_type: Any) -> float:
    """Prior confidence for a pattern type; unknown types get the default."""
    return INITIAL_CONFIDENCE.get(pattern_type_value(pattern_type), DEFAULT_CONFIDENCE)


@dataclass
class AnimeRecord:
    """A catalog entry. Only the fields the grouping engine reads."""
    id: str
    title: str
    title_english: Optional[str] = None
    slug: Optional[str] = None
    year: Optional[int] = None
    type: Optional[str] = None
    episode_count: Optional[int] = None
    cover_image: Optional[str] = None
    average_rating: Optional[float] = None
    status: Optional[str] = None
    start_date: Optional[date] = None
    studio: Optional[str] = None

    @property
    def is_movie(self) -> bool:
        return (self.type or "").strip().lower() in MOVIE_TYPES

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["start_date"] = self.start_date.isoformat() if self.start_date else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnimeRecord":
        valid_keys = cls.__annotations__.keys()
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        filtered["id"] = str(filtered["id"])
        start = filtered.get("start_date")
        if isinstance(start, str):
            # Accept full timestamps as well as plain dates
            filtered["start_date"] = date.fromisoformat(start[:10])
        return cls(**filtered)


@dataclass(frozen=True)
class Relation:
    """A directed catalog edge: target is <relation_type> of source."""
    source_id: str
    target_id: str
    relation_type: RelationType


@dataclass(frozen=True)
class SeasonDescriptor:
    """Structured season information parsed from a raw title."""
    series_name: str
    season_number: Optional[int] = None
    season_name: Optional[str] = None
    # Comparison key: case-folded, articles and punctuation stripped
    series_key: str = ""
    # Which title pattern fired (e.g. 'season_pattern'), None if no marker
    marker: Optional[str] = None


@dataclass
class SeasonInfo:
    """A season candidate attached to a concrete catalog entry."""
    anime_id: str
    title: str
    slug: Optional[str] = None
    title_english: Optional[str] = None
    year: Optional[int] = None
    type: Optional[str] = None
    episode_count: Optional[int] = None
    cover_image: Optional[str] = None
    average_rating: Optional[float] = None
    status: Optional[str] = None
    start_date: Optional[date] = None
    season_number: Optional[int] = None
    season_name: Optional[str] = None
    source: str = "graph"  # 'graph' or 'title'
    confidence: float = 0.0

    @classmethod
    def from_record(
        cls,
        record: AnimeRecord,
        descriptor: SeasonDescriptor,
        source: str,
        confidence: float
    ) -> "SeasonInfo":
        return cls(
            anime_id=record.id,
            title=record.title,
            slug=record.slug,
            title_english=record.title_english,
            year=record.year,
            type=record.type,
            episode_count=record.episode_count,
            cover_image=record.cover_image,
            average_rating=record.average_rating,
            status=record.status,
            start_date=record.start_date,
            season_number=descriptor.season_number,
            season_name=descriptor.season_name,
            source=source,
            confidence=confidence,
        )


@dataclass
class SeriesGroup:
    """The merged, ordered output of a grouping request."""
    series_name: str
    anchor_id: str
    seasons: List[SeasonInfo] = field(default_factory=list)
    # (pattern_type, pattern) pairs that contributed, for later feedback
    patterns_used: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def anime_ids(self) -> List[str]:
        return [s.anime_id for s in self.seasons]

    @property
    def season_count(self) -> int:
        return len(self.seasons)

    @property
    def total_episodes(self) -> int:
        return sum(s.episode_count or 0 for s in self.seasons)

    @property
    def is_singleton(self) -> bool:
        return len(self.seasons) <= 1


@dataclass
class GroupingPattern:
    """Persistent trust score for one (pattern_type, pattern) signal."""
    pattern_type: str
    pattern: str
    success_count: int = 0
    failure_count: int = 0
    confidence: float = DEFAULT_CONFIDENCE
    last_used: Optional[datetime] = None
    last_decayed: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.pattern_type, self.pattern)

    @property
    def total_count(self) -> int:
        return self.success_count + self.failure_count

    @property
    def state(self) -> str:
        """'decayed' until the next recorded outcome, otherwise 'active'."""
        if self.last_decayed and (self.last_used is None or self.last_decayed > self.last_used):
            return "decayed"
        return "active"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["last_used"] = self.last_used.isoformat() if self.last_used else None
        data["last_decayed"] = self.last_decayed.isoformat() if self.last_decayed else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GroupingPattern":
        # Filter unknown keys to prevent init errors if schema changes
        valid_keys = cls.__annotations__.keys()
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        for key in ("last_used", "last_decayed"):
            if filtered.get(key):
                filtered[key] = datetime.fromisoformat(filtered[key])
        return cls(**filtered)


@dataclass(frozen=True)
class GroupingFeedback:
    """Append-only audit record of a user correction."""
    anime_id: str
    group_type: str
    action: FeedbackAction
    created_at: datetime
    source_group_id: Optional[str] = None
    target_group_id: Optional[str] = None
    confidence: str = DEFAULT_FEEDBACK_CONFIDENCE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "anime_id": self.anime_id,
            "group_type": self.group_type,
            "action": self.action.value,
            "source_group_id": self.source_group_id,
            "target_group_id": self.target_group_id,
            "confidence": self.confidence,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GroupingFeedback":
        return cls(
            anime_id=data["anime_id"],
            group_type=data["group_type"],
            action=FeedbackAction(data["action"]),
            source_group_id=data.get("source_group_id"),
            target_group_id=data.get("target_group_id"),
            confidence=data.get("confidence", DEFAULT_FEEDBACK_CONFIDENCE),
            created_at=datetime.fromisoformat(data["created_at"]),
        )


@dataclass
class AnimeGroup:
    """A batch grouping result (series or franchise)."""
    group_id: str
    group_type: str  # 'series' or 'franchise'
    confidence: float
    source: str  # 'database', 'title_pattern', 'fuzzy_match'
    anime_ids: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
