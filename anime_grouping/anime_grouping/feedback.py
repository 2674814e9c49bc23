"""
Feedback loop: persists user corrections and turns them into pattern outcomes,
and decays patterns that have not been used for a long time.
"""

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Protocol, Tuple, Union

from .models import FeedbackAction, GroupingFeedback, PatternType, pattern_type_value
from .pattern_store import PatternConfidenceStore
from .logging import ConfigError, RepositoryUnavailableError, ValidationError
from .constants import (
    DECAY_ELIGIBLE_ABOVE,
    DECAY_HORIZON_DAYS,
    DECAY_MIN_FACTOR,
    DEFAULT_DECAY_THRESHOLD_DAYS,
    DEFAULT_FEEDBACK_CONFIDENCE,
    MIN_REDECAY_HOURS,
    VALID_FEEDBACK_CONFIDENCE,
    VALID_GROUP_TYPES,
)

logger = logging.getLogger(__name__)

PatternRef = Tuple[Union[PatternType, str], str]


class FeedbackLog(Protocol):
    """Append-only log of GroupingFeedback records."""

    def append(self, feedback: GroupingFeedback) -> None:
        ...

    def all(self) -> List[GroupingFeedback]:
        ...


class InMemoryFeedbackLog:
    def __init__(self):
        self._entries: List[GroupingFeedback] = []
        self._lock = threading.Lock()

    def append(self, feedback: GroupingFeedback) -> None:
        with self._lock:
            self._entries.append(feedback)

    def all(self) -> List[GroupingFeedback]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


class JsonlFeedbackLog:
    """One JSON object per line; lines are only ever appended."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.Lock()

    def append(self, feedback: GroupingFeedback) -> None:
        line = json.dumps(feedback.to_dict(), ensure_ascii=False)
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.path, "a", encoding="utf-8") as f:
                    f.write(line + "\n")
            except OSError as e:
                raise RepositoryUnavailableError(f"Cannot append to feedback log {self.path}: {e}") from e

    def all(self) -> List[GroupingFeedback]:
        if not self.path.exists():
            return []
        entries = []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                for lineno, line in enumerate(f, 1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(GroupingFeedback.from_dict(json.loads(line)))
                    except (json.JSONDecodeError, KeyError, ValueError) as e:
                        raise ConfigError(f"Corrupt feedback entry at {self.path}:{lineno}: {e}") from e
        except OSError as e:
            raise RepositoryUnavailableError(f"Cannot read feedback log {self.path}: {e}") from e
        return entries


def build_feedback(
    anime_id: str,
    group_type: str,
    action: Union[FeedbackAction, str],
    source_group_id: Optional[str] = None,
    target_group_id: Optional[str] = None,
    confidence: str = DEFAULT_FEEDBACK_CONFIDENCE,
    created_at: Optional[datetime] = None
) -> GroupingFeedback:
    """
    Builds a validated GroupingFeedback from raw values.

    Raises:
        ValidationError: On an unknown action, group type or confidence level.
    """
    if not anime_id:
        raise ValidationError("Feedback requires an anime id")
    if group_type not in VALID_GROUP_TYPES:
        raise ValidationError(f"Invalid group type '{group_type}'. Must be one of: {sorted(VALID_GROUP_TYPES)}")
    if confidence not in VALID_FEEDBACK_CONFIDENCE:
        raise ValidationError(f"Invalid confidence '{confidence}'. Must be one of: {sorted(VALID_FEEDBACK_CONFIDENCE)}")
    if not isinstance(action, FeedbackAction):
        try:
            action = FeedbackAction(str(action).lower())
        except ValueError:
            valid = [a.value for a in FeedbackAction]
            raise ValidationError(f"Invalid action '{action}'. Must be one of: {valid}") from None

    return GroupingFeedback(
        anime_id=str(anime_id),
        group_type=group_type,
        action=action,
        source_group_id=source_group_id,
        target_group_id=target_group_id,
        confidence=confidence,
        created_at=created_at or datetime.now(),
    )


@dataclass
class DecayReport:
    examined: int = 0
    decayed: List[Tuple[str, str, float, float]] = field(default_factory=list)  # (type, pattern, before, after)
    skipped_recent: int = 0

    @property
    def decayed_count(self) -> int:
        return len(self.decayed)


def decay_factor(days_old: int, days_threshold: int, horizon_days: int = DECAY_HORIZON_DAYS,
                 min_factor: float = DECAY_MIN_FACTOR) -> float:
    """Linear from 1.0 at the threshold down to min_factor after horizon_days more."""
    return max(min_factor, min(1.0, 1 - (days_old - days_threshold) / horizon_days))


class FeedbackLoop:
    """
    Records corrections and feeds outcomes back into the confidence store.

    The loop does not work out which patterns caused a wrong grouping: the
    caller passes them in (SeriesGroup.patterns_used).
    """

    def __init__(
        self,
        store: PatternConfidenceStore,
        log: Optional[FeedbackLog] = None,
        decay_horizon_days: int = DECAY_HORIZON_DAYS,
        decay_min_factor: float = DECAY_MIN_FACTOR,
        decay_eligible_above: float = DECAY_ELIGIBLE_ABOVE,
        min_redecay_hours: float = MIN_REDECAY_HOURS,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.store = store
        self.log = log if log is not None else InMemoryFeedbackLog()
        self.decay_horizon_days = decay_horizon_days
        self.decay_min_factor = decay_min_factor
        self.decay_eligible_above = decay_eligible_above
        self.min_redecay_hours = min_redecay_hours
        self.clock = clock or store.clock

    def learn_from_feedback(self, feedback: GroupingFeedback, patterns: Iterable[PatternRef] = ()) -> GroupingFeedback:
        """
        Appends the feedback, then records one outcome per supplied pattern:
        a failure for merge/split, a success for confirm.

        Raises:
            ValidationError: If the feedback is malformed.
            RepositoryUnavailableError: If the feedback log cannot be written.
        """
        feedback = build_feedback(
            feedback.anime_id,
            feedback.group_type,
            feedback.action,
            feedback.source_group_id,
            feedback.target_group_id,
            feedback.confidence,
            feedback.created_at,
        )
        self.log.append(feedback)
        logger.info(f"Feedback recorded: {feedback.action.value} on {feedback.anime_id} ({feedback.group_type})")

        for pattern_type, pattern in patterns:
            if feedback.action.signals_error:
                self.store.record_failure(pattern_type, pattern)
            else:
                self.store.record_success(pattern_type, pattern)
        return feedback

    def _is_due(self, pattern, now: datetime, days_threshold: int) -> bool:
        if pattern.last_used is None or pattern.confidence <= self.decay_eligible_above:
            return False
        return (now - pattern.last_used).days > days_threshold

    def _decayed_recently(self, pattern, now: datetime) -> bool:
        if pattern.last_decayed is None:
            return False
        return (now - pattern.last_decayed).total_seconds() / 3600 < self.min_redecay_hours

    def _due_factor(self, pattern, now: datetime, days_threshold: int) -> Optional[float]:
        """Decay factor for a pattern that should decay now, else None."""
        if not self._is_due(pattern, now, days_threshold) or self._decayed_recently(pattern, now):
            return None
        days_old = (now - pattern.last_used).days
        factor = decay_factor(days_old, days_threshold, self.decay_horizon_days, self.decay_min_factor)
        return factor if factor < 1.0 else None

    def decay_old_patterns(self, days_threshold: int = DEFAULT_DECAY_THRESHOLD_DAYS) -> DecayReport:
        """
        Decays every pattern unused for more than days_threshold days whose
        confidence is above the eligibility bar. Patterns decayed less than
        min_redecay_hours ago are skipped, so an interrupted or repeated run
        can simply be started again.

        Each row is checked again as stored at write time: a pattern another
        process used or decayed in the meantime is left alone.
        """
        now = self.clock()
        report = DecayReport()

        for pattern in self.store.repository.all():
            report.examined += 1
            if not self._is_due(pattern, now, days_threshold):
                continue
            if self._decayed_recently(pattern, now):
                report.skipped_recent += 1
                continue

            factor = self._due_factor(pattern, now, days_threshold)
            if factor is None:
                continue

            before = pattern.confidence
            updated = self.store.decay_pattern(
                pattern.pattern_type,
                pattern.pattern,
                factor,
                recheck=lambda current: self._due_factor(current, now, days_threshold),
            )
            if updated is not None:
                report.decayed.append((pattern.pattern_type, pattern.pattern, before, updated.confidence))

        logger.info(
            f"Decay pass: {report.examined} examined, {report.decayed_count} decayed, "
            f"{report.skipped_recent} skipped (decayed recently)"
        )
        return report

    def recent_feedback(self, anime_id: Optional[str] = None) -> List[GroupingFeedback]:
        entries = self.log.all()
        if anime_id is not None:
            entries = [fb for fb in entries if fb.anime_id == anime_id]
        return sorted(entries, key=lambda fb: fb.created_at, reverse=True)


def parse_pattern_ref(value: str) -> PatternRef:
    """'title_pattern=series_name_match:foo' -> ('title_pattern', 'series_name_match:foo')"""
    if "=" not in value:
        raise ValidationError(f"Pattern must look like TYPE=PATTERN, got '{value}'")
    pattern_type, pattern = value.split("=", 1)
    pattern_type = pattern_type.strip()
    if not pattern_type or not pattern.strip():
        raise ValidationError(f"Pattern must look like TYPE=PATTERN, got '{value}'")
    return pattern_type_value(pattern_type), pattern.strip()
