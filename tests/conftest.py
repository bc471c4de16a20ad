"""Shared fakes for the batch loop tests. No network: cursors and sinks are in-memory."""

from typing import Any, Dict, List, Optional, Sequence

import pytest

from esrelay.core.config import DataConfig
from esrelay.core.cursor_base import Page, ScrollCursor, SourceDocument
from esrelay.core.exceptions import RetrievalError
from esrelay.core.failure_store import InMemoryFailureStore
from esrelay.core.sink_base import DeleteRequest, DeleteResult, RecordSink


def make_doc(doc_id: str, index: str = "src", **source: Any) -> SourceDocument:
    return SourceDocument(
        index=index,
        id=doc_id,
        version=1,
        seq_no=0,
        primary_term=1,
        score=1.0,
        source=dict(source) or {"title": f"title-{doc_id}"},
        hit={"_index": index, "_id": doc_id},
    )


class FakeCursor(ScrollCursor):
    """Serves pre-built pages; ``fail_on`` makes the n-th fetch (0 = open) raise."""

    def __init__(self, pages: List[List[SourceDocument]], fail_on: Optional[int] = None) -> None:
        self.pages = pages
        self.fail_on = fail_on
        self.calls: List[tuple] = []
        self.closed = False

    def _page(self, n: int) -> Page:
        if self.fail_on is not None and n == self.fail_on:
            raise RetrievalError(f"fetch {n} failed")
        if n >= len(self.pages) or not self.pages[n]:
            return Page((), None)
        return Page(tuple(self.pages[n]), f"token-{n}")

    def open(self, indices, query, fields, size, scroll, timeout, preference) -> Page:
        self.calls.append(("open", indices, query, scroll, timeout))
        return self._page(0)

    def advance(self, token: str, scroll: str, timeout: str) -> Page:
        self.calls.append(("advance", token))
        return self._page(int(token.split("-")[1]) + 1)

    def close(self) -> None:
        self.closed = True


class RecordingSink(RecordSink):
    """Records every store/delete call in ``events`` in call order."""

    def __init__(self, fail_ids: Optional[Dict[str, Exception]] = None) -> None:
        self.fail_ids = fail_ids or {}
        self.stored: List[Dict[str, Any]] = []
        self.deleted: List[List[DeleteRequest]] = []
        self.events: List[tuple] = []
        self.delete_result: Optional[DeleteResult] = None

    def store(self, params, record: Dict[str, Any]) -> None:
        self.events.append(("store", record.get("id")))
        err = self.fail_ids.get(record.get("id"))
        if err is not None:
            raise err
        self.stored.append(record)

    def delete_batch(self, deletions: Sequence[DeleteRequest], timeout: str) -> DeleteResult:
        self.events.append(("delete", [d.id for d in deletions]))
        self.deleted.append(list(deletions))
        return self.delete_result or DeleteResult(success_count=len(deletions))


@pytest.fixture
def config() -> DataConfig:
    return DataConfig(name="test-config")


@pytest.fixture
def failures() -> InMemoryFailureStore:
    return InMemoryFailureStore()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
