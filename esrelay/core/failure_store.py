# esrelay/core/failure_store.py
from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from .config import DataConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FailureRecord:
    """One document that could not be relayed."""

    config_name: str
    error_name: str
    source_id: str
    message: str
    cause: Optional[BaseException] = None


class FailureStore(ABC):
    """
    Persists per-document failures so they can be inspected or retried later.
    Implementations must be thread safe: the threaded sink reports from worker threads.
    """

    @abstractmethod
    def store(
        self, config: DataConfig, error_name: str, source_id: str, cause: BaseException
    ) -> None:
        ...


class LoggingFailureStore(FailureStore):
    """Writes one WARNING line per failure."""

    def store(
        self, config: DataConfig, error_name: str, source_id: str, cause: BaseException
    ) -> None:
        logger.warning("[%s] %s failed: %s (%s)", config.name, source_id, error_name, cause)


class InMemoryFailureStore(FailureStore):
    """Keeps failures in a list."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.records: List[FailureRecord] = []

    def store(
        self, config: DataConfig, error_name: str, source_id: str, cause: BaseException
    ) -> None:
        rec = FailureRecord(
            config_name=config.name,
            error_name=error_name,
            source_id=source_id,
            message=str(cause),
            cause=cause,
        )
        with self._lock:
            self.records.append(rec)

    def __len__(self) -> int:
        with self._lock:
            return len(self.records)


__all__ = ["FailureRecord", "FailureStore", "LoggingFailureStore", "InMemoryFailureStore"]
