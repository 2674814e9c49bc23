"""
Background decay job with its own lifecycle.

One DecayScheduler per deployment: start() takes an exclusive flock on the
lock file and refuses to run while another live instance holds it. A
holder that dies loses the lock with its process, so the job resumes on the
next start.
"""

import logging
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .feedback import DecayReport, FeedbackLoop
from .lockfile import FileLock
from .constants import DECAY_INTERVAL_SECONDS, DEFAULT_DECAY_THRESHOLD_DAYS, SCHEDULER_LOCK_FILENAME

logger = logging.getLogger(__name__)


class DecayScheduler:
    def __init__(
        self,
        loop: FeedbackLoop,
        interval_seconds: float = DECAY_INTERVAL_SECONDS,
        days_threshold: int = DEFAULT_DECAY_THRESHOLD_DAYS,
        lock_path: Union[str, Path] = SCHEDULER_LOCK_FILENAME,
        run_immediately: bool = True
    ):
        self.loop = loop
        self.interval_seconds = interval_seconds
        self.days_threshold = days_threshold
        self.lock_path = Path(lock_path)
        self.run_immediately = run_immediately

        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._file_lock = FileLock(self.lock_path)

        self._status: Dict[str, Any] = {
            "running": False,
            "runs": 0,
            "last_run_at": None,
            "last_run_ok": None,
            "last_decayed": 0,
            "last_error": "",
            "next_run_at": None,
        }

    def acquire_lock(self) -> bool:
        """Locks the lock file without waiting. False if a live instance holds it."""
        return self._file_lock.acquire(blocking=False)

    def release_lock(self) -> None:
        self._file_lock.release()

    @property
    def holds_lock(self) -> bool:
        return self._file_lock.is_held

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> bool:
        """Starts the background thread. False if another instance holds the lock."""
        if self.is_running:
            return True
        if not self.acquire_lock():
            logger.warning(
                f"Decay scheduler already running elsewhere "
                f"(lock {self.lock_path} held by PID {self._file_lock.holder_pid() or '?'})"
            )
            return False

        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="DecayScheduler", daemon=True)
        with self._lock:
            self._status["running"] = True
        self._thread.start()
        logger.info(f"Decay scheduler started (every {self.interval_seconds}s, threshold {self.days_threshold} days)")
        return True

    def stop(self, timeout: float = 5.0) -> bool:
        """
        Signals the thread and waits up to timeout seconds for it.

        Returns False when a decay pass is still running after the wait. The
        lock stays held until that pass ends; the thread drops it on exit.
        """
        self._stop.set()
        t = self._thread
        if t and t.is_alive():
            t.join(timeout=timeout)
            if t.is_alive():
                logger.warning(f"Decay pass still running after {timeout}s; keeping {self.lock_path} until it ends")
                return False
        self._thread = None
        self.release_lock()
        with self._lock:
            self._status["running"] = False
            self._status["next_run_at"] = None
        logger.info("Decay scheduler stopped")
        return True

    def run_once(self) -> Optional[DecayReport]:
        """Runs one decay pass now. Errors are recorded in status, not raised."""
        report = None
        ok, err = False, ""
        try:
            report = self.loop.decay_old_patterns(self.days_threshold)
            ok = True
        except Exception as e:
            err = str(e)
            logger.error(f"Decay pass failed: {e}", exc_info=True)
        finally:
            with self._lock:
                self._status["runs"] += 1
                self._status["last_run_at"] = datetime.now().isoformat(timespec="seconds")
                self._status["last_run_ok"] = ok
                self._status["last_error"] = err
                self._status["last_decayed"] = report.decayed_count if report else 0
        return report

    def status(self) -> Dict[str, Any]:
        with self._lock:
            st = dict(self._status)
        st["running"] = self.is_running
        st["lock_file"] = str(self.lock_path)
        return st

    def _loop(self) -> None:
        try:
            if self.run_immediately:
                self.run_once()
            while not self._stop.is_set():
                next_at = time.time() + self.interval_seconds
                with self._lock:
                    self._status["next_run_at"] = datetime.fromtimestamp(next_at).isoformat(timespec="seconds")
                if self._stop.wait(self.interval_seconds):
                    break
                self.run_once()
        finally:
            self.release_lock()

    def __enter__(self) -> "DecayScheduler":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()
