# esrelay/core/cursor_base.py
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .base_stage import Stage
from .config import ExtractionParams


@dataclass(frozen=True)
class SourceDocument:
    """One hit fetched from the source index."""

    index: str
    id: str
    version: Optional[int] = None
    seq_no: Optional[int] = None
    primary_term: Optional[int] = None
    score: Optional[float] = None
    cluster_alias: Optional[str] = None
    source: Dict[str, Any] = field(default_factory=dict)
    hit: Dict[str, Any] = field(default_factory=dict)  # raw hit as returned by the engine

    @property
    def source_id(self) -> str:
        return f"{self.index}/_doc/{self.id}"


@dataclass(frozen=True)
class Page:
    """
    One scroll page. ``token`` is the cursor to pass to advance(); it is None exactly when the
    page is empty, which ends the scroll.
    """

    documents: Tuple[SourceDocument, ...] = ()
    token: Optional[str] = None

    @property
    def empty(self) -> bool:
        return not self.documents


class ScrollCursor(Stage, ABC):
    """
    Abstract base for scroll cursors. Subclasses implement open() and advance().
    Only one page is held at a time, so memory is bounded by the page size.
    """

    @abstractmethod
    def open(  # type: ignore[override]
        self,
        indices: List[str],
        query: str,
        fields: Optional[List[str]],
        size: Optional[int],
        scroll: str,
        timeout: str,
        preference: str,
    ) -> Page:
        """Start the scroll and return the first page. Raises RetrievalError."""
        ...

    @abstractmethod
    def advance(self, token: str, scroll: str, timeout: str) -> Page:
        """Fetch the page following ``token``. Raises RetrievalError."""
        ...

    def open_with(self, params: ExtractionParams) -> Page:
        return self.open(
            params.indices,
            params.query,
            params.fields,
            params.size,
            params.scroll,
            params.timeout,
            params.preference,
        )

    def iter_pages(self, params: ExtractionParams) -> Iterator[Page]:
        """Yield non-empty pages until the cursor is exhausted. Override if needed."""
        page = self.open_with(params)
        while not page.empty and page.token is not None:
            yield page
            page = self.advance(page.token, params.scroll, params.timeout)


__all__ = ["ScrollCursor", "SourceDocument", "Page"]
