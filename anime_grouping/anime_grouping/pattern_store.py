"""
Pattern confidence store.

Tracks a trust score per (pattern_type, pattern) signal and recalibrates it
from observed outcomes. Reads are lock-free; every write goes through the
repository's per-key atomic update.
"""

import json
import logging
import threading
from dataclasses import replace
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Tuple, Union

from .lockfile import FileLock
from .models import GroupingPattern, PatternType, initial_confidence, pattern_type_value
from .logging import ConfigError, RepositoryUnavailableError
from .constants import (
    CONFIDENCE_CEILING,
    CONFIDENCE_FLOOR,
    DEFAULT_TOP_PATTERNS,
    HIGH_CONFIDENCE_THRESHOLD,
    INERTIA_WEIGHT,
    PERFORMANCE_WEIGHT,
    RECENT_FEEDBACK_DAYS,
    TITLE_PATTERN_PREFIX,
)

logger = logging.getLogger(__name__)

PatternKey = Tuple[str, str]
UpdateFn = Callable[[Optional[GroupingPattern]], Optional[GroupingPattern]]


def clamp_confidence(value: float) -> float:
    return max(CONFIDENCE_FLOOR, min(CONFIDENCE_CEILING, value))


def calculate_new_confidence(success_count: int, failure_count: int, old_confidence: float) -> float:
    """
    90% lifetime performance, 10% inertia from the previous confidence,
    clamped to [0.1, 0.95].
    """
    total = success_count + failure_count
    if total == 0:
        return clamp_confidence(old_confidence)
    performance = success_count / total
    return clamp_confidence(performance * PERFORMANCE_WEIGHT + old_confidence * INERTIA_WEIGHT)


def title_pattern_key(series_key: str) -> str:
    """Pattern name under which a title-only series match is tracked."""
    return f"{TITLE_PATTERN_PREFIX}:{series_key}"


class PatternRepository(Protocol):
    """Key-value store for GroupingPattern rows with an atomic per-key update."""

    def get(self, pattern_type: str, pattern: str) -> Optional[GroupingPattern]:
        ...

    def update(self, pattern_type: str, pattern: str, fn: UpdateFn) -> Optional[GroupingPattern]:
        ...

    def all(self) -> List[GroupingPattern]:
        ...


class InMemoryPatternRepository:
    """
    Dict-backed repository.

    update() runs fn under a lock owned by that key only, so concurrent
    writers to different keys never wait on each other. fn receives a copy
    of the current row (or None) and returns the new row; returning None
    leaves the row untouched.
    """

    def __init__(self, patterns: Iterable[GroupingPattern] = ()):
        self._patterns: Dict[PatternKey, GroupingPattern] = {p.key: p for p in patterns}
        self._locks: Dict[PatternKey, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, key: PatternKey) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def _row(self, key: PatternKey) -> Optional[GroupingPattern]:
        current = self._patterns.get(key)
        return replace(current, metadata=dict(current.metadata)) if current else None

    def get(self, pattern_type: str, pattern: str) -> Optional[GroupingPattern]:
        return self._row((pattern_type, pattern))

    def update(self, pattern_type: str, pattern: str, fn: UpdateFn) -> Optional[GroupingPattern]:
        key = (pattern_type, pattern)
        with self._lock_for(key):
            current = self._row(key)
            new = fn(current)
            if new is None:
                return current
            self._patterns[key] = new
            return new

    def all(self) -> List[GroupingPattern]:
        return [replace(p, metadata=dict(p.metadata)) for p in list(self._patterns.values())]

    def __len__(self) -> int:
        return len(self._patterns)


class JsonPatternRepository(InMemoryPatternRepository):
    """
    InMemoryPatternRepository persisted to a JSON file shared between processes.

    update() holds an flock on "<file>.lock" while it re-reads the file,
    applies fn and rewrites it through a temp file + rename, so writers in
    other processes never lose each other's rows and a crash never leaves a
    half-written store behind. Reads reload the file whenever it changed on
    disk since the last look.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self._file_lock = threading.Lock()
        self._seen: Optional[Tuple[int, int, int]] = None
        super().__init__()
        self._reload()

    def _signature(self) -> Optional[Tuple[int, int, int]]:
        try:
            st = self.path.stat()
        except FileNotFoundError:
            return None
        return st.st_ino, st.st_mtime_ns, st.st_size

    def _reload(self) -> None:
        seen = self._signature()
        self._patterns = {p.key: p for p in self._load()}
        self._seen = seen

    def _refresh(self) -> None:
        if self._signature() != self._seen:
            self._reload()

    def _load(self) -> List[GroupingPattern]:
        if not self.path.exists():
            logger.debug(f"Pattern store {self.path} does not exist yet")
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except OSError as e:
            raise RepositoryUnavailableError(f"Cannot read pattern store {self.path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigError(f"Pattern store {self.path} is not valid JSON: {e}") from e

        items = data.get("patterns", []) if isinstance(data, dict) else data
        try:
            patterns = [GroupingPattern.from_dict(item) for item in items]
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"Invalid pattern row in {self.path}: {e}") from e
        logger.debug(f"Loaded {len(patterns)} grouping patterns from {self.path}")
        return patterns

    def get(self, pattern_type: str, pattern: str) -> Optional[GroupingPattern]:
        self._refresh()
        return self._row((pattern_type, pattern))

    def all(self) -> List[GroupingPattern]:
        self._refresh()
        return super().all()

    def __len__(self) -> int:
        self._refresh()
        return len(self._patterns)

    def update(self, pattern_type: str, pattern: str, fn: UpdateFn) -> Optional[GroupingPattern]:
        key = (pattern_type, pattern)
        try:
            with self._lock_for(key), self._file_lock, FileLock(self.lock_path):
                self._reload()
                current = self._row(key)
                new = fn(current)
                if new is None:
                    return current
                snapshot = dict(self._patterns)
                snapshot[key] = new
                self._write_atomic(snapshot)
                self._patterns = snapshot
                self._seen = self._signature()
                return new
        except OSError as e:
            raise RepositoryUnavailableError(f"Cannot lock pattern store {self.lock_path}: {e}") from e

    def _write_atomic(self, patterns: Dict[PatternKey, GroupingPattern]) -> None:
        payload = {"patterns": [p.to_dict() for p in patterns.values()]}
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), "utf-8")
            tmp.replace(self.path)
        except OSError as e:
            raise RepositoryUnavailableError(f"Cannot write pattern store {self.path}: {e}") from e


class PatternConfidenceStore:
    """
    Trust scores per (pattern_type, pattern).

    Unseen patterns report the prior confidence of their type. The first
    recorded outcome creates the row (upsert), later outcomes update it in
    place. Failed writes are logged and dropped: the store self-corrects on
    later outcomes.
    """

    def __init__(self, repository: Optional[PatternRepository] = None, clock: Callable[[], datetime] = datetime.now):
        self.repository = repository if repository is not None else InMemoryPatternRepository()
        self.clock = clock

    def get_pattern(self, pattern_type: Union[PatternType, str], pattern: str) -> Optional[GroupingPattern]:
        return self.repository.get(pattern_type_value(pattern_type), pattern)

    def get_confidence(self, pattern_type: Union[PatternType, str], pattern: str) -> float:
        existing = self.get_pattern(pattern_type, pattern)
        if existing is None:
            return initial_confidence(pattern_type)
        return existing.confidence

    def record_success(self, pattern_type: Union[PatternType, str], pattern: str) -> Optional[GroupingPattern]:
        return self._record(pattern_type, pattern, success=True)

    def record_failure(self, pattern_type: Union[PatternType, str], pattern: str) -> Optional[GroupingPattern]:
        return self._record(pattern_type, pattern, success=False)

    def _record(self, pattern_type, pattern: str, success: bool) -> Optional[GroupingPattern]:
        type_key = pattern_type_value(pattern_type)
        now = self.clock()

        def apply(current: Optional[GroupingPattern]) -> GroupingPattern:
            if current is None:
                current = GroupingPattern(
                    pattern_type=type_key,
                    pattern=pattern,
                    confidence=initial_confidence(type_key),
                )
            if success:
                current.success_count += 1
            else:
                current.failure_count += 1
            current.confidence = calculate_new_confidence(
                current.success_count, current.failure_count, current.confidence
            )
            current.last_used = now
            return current

        try:
            updated = self.repository.update(type_key, pattern, apply)
        except RepositoryUnavailableError as e:
            outcome = "success" if success else "failure"
            logger.warning(f"Dropped {outcome} update for ({type_key}, {pattern}): {e}")
            return None

        logger.debug(
            f"Pattern ({type_key}, {pattern}) -> {updated.confidence:.3f} "
            f"({updated.success_count}/{updated.total_count})"
        )
        return updated

    def decay_pattern(
        self,
        pattern_type: str,
        pattern: str,
        factor: float,
        recheck: Optional[Callable[[GroupingPattern], Optional[float]]] = None
    ) -> Optional[GroupingPattern]:
        """
        Multiplies confidence by factor (never raising it), floored at 0.1.

        recheck, when given, recomputes the factor from the row as it is at
        write time; a None result leaves the row alone and returns None.
        """
        now = self.clock()
        applied = []

        def apply(current: Optional[GroupingPattern]) -> Optional[GroupingPattern]:
            if current is None:
                return None
            current_factor = factor if recheck is None else recheck(current)
            if current_factor is None:
                return None
            current.confidence = max(CONFIDENCE_FLOOR, min(current.confidence, current.confidence * current_factor))
            current.last_decayed = now
            applied.append(current)
            return current

        try:
            updated = self.repository.update(pattern_type, pattern, apply)
        except RepositoryUnavailableError as e:
            logger.warning(f"Dropped decay of ({pattern_type}, {pattern}): {e}")
            return None
        return updated if applied else None

    def seed_patterns(self, seeds: Iterable[Dict[str, Any]]) -> Tuple[int, int]:
        """
        Inserts default patterns. An existing pattern is only raised to the
        seed confidence, never lowered.

        Returns:
            (created, updated) counts
        """
        created = updated = 0
        now = self.clock()
        for seed in seeds:
            type_key = pattern_type_value(seed["pattern_type"])
            name = seed["pattern"]
            confidence = clamp_confidence(float(seed["confidence"]))
            description = seed.get("description")
            outcome = {}

            def apply(current: Optional[GroupingPattern]) -> Optional[GroupingPattern]:
                if current is None:
                    outcome["created"] = True
                    metadata = {"description": description} if description else {}
                    return GroupingPattern(
                        pattern_type=type_key,
                        pattern=name,
                        confidence=confidence,
                        last_used=now,
                        metadata=metadata,
                    )
                if confidence > current.confidence:
                    outcome["updated"] = True
                    current.confidence = confidence
                    return current
                return None

            try:
                self.repository.update(type_key, name, apply)
            except RepositoryUnavailableError as e:
                logger.warning(f"Could not seed ({type_key}, {name}): {e}")
                continue
            created += int(outcome.get("created", False))
            updated += int(outcome.get("updated", False))

        logger.info(f"Seeded patterns: {created} created, {updated} updated")
        return created, updated

    def get_top_patterns(
        self,
        limit: int = DEFAULT_TOP_PATTERNS,
        pattern_type: Optional[Union[PatternType, str]] = None
    ) -> List[GroupingPattern]:
        patterns = self.repository.all()
        if pattern_type is not None:
            type_key = pattern_type_value(pattern_type)
            patterns = [p for p in patterns if p.pattern_type == type_key]
        patterns.sort(key=lambda p: (-p.confidence, -p.success_count, p.pattern_type, p.pattern))
        return patterns[:limit]

    def update_pattern_weights(self) -> int:
        """Recomputes every pattern that has outcomes. Returns how many changed."""
        changed = 0
        for snapshot in self.repository.all():
            if snapshot.total_count == 0:
                continue

            def apply(current: Optional[GroupingPattern]) -> Optional[GroupingPattern]:
                if current is None:
                    return None
                new_confidence = calculate_new_confidence(
                    current.success_count, current.failure_count, current.confidence
                )
                if abs(new_confidence - current.confidence) < 1e-9:
                    return None
                current.confidence = new_confidence
                return current

            try:
                before = snapshot.confidence
                after = self.repository.update(snapshot.pattern_type, snapshot.pattern, apply)
            except RepositoryUnavailableError as e:
                logger.warning(f"Could not reweight ({snapshot.pattern_type}, {snapshot.pattern}): {e}")
                continue
            if after is not None and abs(after.confidence - before) >= 1e-9:
                changed += 1

        logger.info(f"Updated weights for {changed} patterns")
        return changed

    def get_statistics(self, feedback_log=None) -> Dict[str, Any]:
        """Aggregate view of the store (and recent feedback, when a log is given)."""
        patterns = self.repository.all()
        total = len(patterns)
        successes = sum(p.success_count for p in patterns)
        outcomes = sum(p.total_count for p in patterns)

        recent_feedback = 0
        if feedback_log is not None:
            since = self.clock() - timedelta(days=RECENT_FEEDBACK_DAYS)
            recent_feedback = sum(1 for fb in feedback_log.all() if fb.created_at >= since)

        by_type: Dict[str, int] = {}
        for p in patterns:
            by_type[p.pattern_type] = by_type.get(p.pattern_type, 0) + 1

        return {
            "total_patterns": total,
            "average_confidence": (sum(p.confidence for p in patterns) / total) if total else 0.0,
            "high_confidence_patterns": sum(1 for p in patterns if p.confidence >= HIGH_CONFIDENCE_THRESHOLD),
            "decayed_patterns": sum(1 for p in patterns if p.state == "decayed"),
            "recent_feedback": recent_feedback,
            "success_rate": (successes / outcomes) if outcomes else 0.0,
            "patterns_by_type": by_type,
        }
