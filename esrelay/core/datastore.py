# esrelay/core/datastore.py
from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from .batch_processor import RunSummary
from .config import DataConfig
from .failure_store import FailureStore, LoggingFailureStore
from .sink_base import IndexUpdateCallback
from .stats import NullStatsRecorder, StatsRecorder


class DataStore(ABC):
    """
    A named source of documents for the indexing pipeline.
    Collaborators (failure store, stats) are passed in; stop() may be called from another thread
    (e.g. a signal handler) and is honored between documents and between pages.
    """

    def __init__(
        self,
        failure_store: Optional[FailureStore] = None,
        stats: Optional[StatsRecorder] = None,
    ) -> None:
        self.failure_store = failure_store or LoggingFailureStore()
        self.stats = stats or NullStatsRecorder()
        self._stopped = threading.Event()

    def name(self) -> str:
        return type(self).__name__

    @property
    def alive(self) -> bool:
        return not self._stopped.is_set()

    def stop(self) -> None:
        self._stopped.set()

    def run(
        self,
        config: DataConfig,
        callback: IndexUpdateCallback,
        script_map: Optional[Dict[str, str]] = None,
        default_data: Optional[Dict[str, Any]] = None,
    ) -> RunSummary:
        """Relay every document selected by ``config.params`` to ``callback``."""
        return self.store_data(
            config,
            callback,
            config.script_map if script_map is None else script_map,
            config.default_data if default_data is None else default_data,
        )

    @abstractmethod
    def store_data(
        self,
        config: DataConfig,
        callback: IndexUpdateCallback,
        script_map: Dict[str, str],
        default_data: Dict[str, Any],
    ) -> RunSummary:
        ...


__all__ = ["DataStore"]
