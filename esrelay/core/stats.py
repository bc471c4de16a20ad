# esrelay/core/stats.py
from __future__ import annotations

import logging
import threading
import time
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Dict

logger = logging.getLogger(__name__)


class StatsAction(str, Enum):
    PREPARED = "prepared"
    EVALUATED = "evaluated"
    FINISHED = "finished"
    ACCESS_EXCEPTION = "access_exception"
    EXCEPTION = "exception"


@dataclass(frozen=True)
class StatsKey:
    """Identifies one document in the stats stream."""

    index: str
    id: str

    def __str__(self) -> str:
        return f"{self.index}/_doc/{self.id}"


class StatsRecorder:
    """
    Fire-and-forget lifecycle events per document.
    The public methods never raise: subclasses implement the _begin/_record/_done hooks and any
    error they throw is logged and dropped.
    """

    def begin(self, key: StatsKey) -> None:
        try:
            self._begin(key)
        except Exception:
            logger.exception("Failed to record begin for %s", key)

    def record(self, key: StatsKey, action: StatsAction) -> None:
        try:
            self._record(key, action)
        except Exception:
            logger.exception("Failed to record %s for %s", action, key)

    def done(self, key: StatsKey) -> None:
        try:
            self._done(key)
        except Exception:
            logger.exception("Failed to record done for %s", key)

    def _begin(self, key: StatsKey) -> None:
        pass

    def _record(self, key: StatsKey, action: StatsAction) -> None:
        pass

    def _done(self, key: StatsKey) -> None:
        pass


class NullStatsRecorder(StatsRecorder):
    """Discards every event."""

    pass


class LoggingStatsRecorder(StatsRecorder):
    """Counts actions and logs per-document timings at DEBUG."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._started: Dict[StatsKey, float] = {}
        self.counts: Counter = Counter()

    def _begin(self, key: StatsKey) -> None:
        with self._lock:
            self._started[key] = time.monotonic()
            self.counts["begin"] += 1

    def _record(self, key: StatsKey, action: StatsAction) -> None:
        with self._lock:
            started = self._started.get(key)
            self.counts[action.value] += 1
        if started is not None and logger.isEnabledFor(logging.DEBUG):
            logger.debug("%s %s +%.1fms", key, action.value, (time.monotonic() - started) * 1000)

    def _done(self, key: StatsKey) -> None:
        with self._lock:
            started = self._started.pop(key, None)
            self.counts["done"] += 1
        if started is not None:
            logger.debug("%s done in %.1fms", key, (time.monotonic() - started) * 1000)

    def summary(self) -> Dict[str, int]:
        with self._lock:
            return dict(self.counts)


__all__ = ["StatsAction", "StatsKey", "StatsRecorder", "NullStatsRecorder", "LoggingStatsRecorder"]
