# esrelay/core/sink_base.py
from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Set

from .base_stage import Stage
from .config import DataConfig
from .exceptions import DocumentAccessError, class_name, error_name, unwrap
from .failure_store import FailureStore

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


class IndexUpdateCallback(Protocol):
    """Downstream indexing pipeline: receives one transformed record at a time."""

    def store(self, params: Mapping[str, str], record: Record) -> None:
        ...


@dataclass(frozen=True)
class DeleteRequest:
    index: str
    id: str


@dataclass(frozen=True)
class DeleteResult:
    """
    Outcome of one bulk delete.
    - success_count: documents removed from the source index
    - error_count: documents the engine reported as failed
    - errors: short failure messages (logged by the caller)
    """

    success_count: int
    error_count: int = 0
    errors: Optional[List[str]] = None

    @property
    def has_failures(self) -> bool:
        return self.error_count > 0


class RecordSink(Stage, ABC):
    """
    Hand-off point for transformed records.
    store() may raise DocumentAccessError (usually HandoffError); the batch loop reports it and
    moves on. delete_batch() is the per-page drain of consumed source documents.
    """

    @abstractmethod
    def store(self, params: Mapping[str, str], record: Record) -> None:
        """Deliver one record downstream."""
        ...

    @abstractmethod
    def delete_batch(self, deletions: Sequence[DeleteRequest], timeout: str) -> DeleteResult:
        """
        Delete the given source documents in one bulk call.
        Partial failures go into the DeleteResult; transport failures raise RetrievalError.
        """
        ...

    def commit(self) -> None:
        """Flush anything still buffered (optional)."""
        pass


class ThreadPoolSink(RecordSink):
    """
    Fans store() calls out over a thread pool around another sink.
    Failures inside workers are reported to the failure store since nobody waits on the future.
    delete_batch() first waits for every in-flight store so deletion still follows hand-off.
    """

    def __init__(
        self,
        inner: RecordSink,
        workers: int,
        failure_store: FailureStore,
        config: DataConfig,
        max_pending: Optional[int] = None,
    ) -> None:
        self.inner = inner
        self.workers = max(1, workers)
        self.failure_store = failure_store
        self.config = config
        self._pool = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="esrelay-sink")
        # at most max_pending records queued or running
        self._slots = threading.BoundedSemaphore(max_pending or self.workers * 4)
        self._lock = threading.Lock()
        self._pending: Set[Future] = set()
        self._closed = False

    def store(self, params: Mapping[str, str], record: Record) -> None:
        self._slots.acquire()
        try:
            fut = self._pool.submit(self._store_one, params, record)
        except BaseException:
            self._slots.release()
            raise
        with self._lock:
            self._pending.add(fut)
        fut.add_done_callback(self._finished)

    def _finished(self, fut: Future) -> None:
        with self._lock:
            self._pending.discard(fut)
        self._slots.release()

    def _store_one(self, params: Mapping[str, str], record: Record) -> None:
        try:
            self.inner.store(params, record)
        except Exception as e:
            logger.warning("Failed to store record in worker: %s", record, exc_info=True)
            target = unwrap(e)
            source_id = getattr(target, "source_id", None) or str(record.get("url") or "")
            name = error_name(target) if isinstance(e, DocumentAccessError) else class_name(e)
            try:
                self.failure_store.store(self.config, name, source_id, target)
            except Exception:
                logger.exception("Failed to report failure for %s", source_id)

    def wait_pending(self) -> None:
        with self._lock:
            pending = list(self._pending)
        if pending:
            wait(pending)

    def delete_batch(self, deletions: Sequence[DeleteRequest], timeout: str) -> DeleteResult:
        self.wait_pending()
        return self.inner.delete_batch(deletions, timeout)

    def commit(self) -> None:
        self.wait_pending()
        self.inner.commit()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._pool.shutdown(wait=True)
        self.inner.close()


__all__ = [
    "IndexUpdateCallback",
    "DeleteRequest",
    "DeleteResult",
    "RecordSink",
    "ThreadPoolSink",
]
