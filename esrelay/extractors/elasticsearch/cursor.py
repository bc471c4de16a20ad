# esrelay/extractors/elasticsearch/cursor.py
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from elasticsearch import ApiError, Elasticsearch, TransportError

from esrelay.core.config import parse_time_value
from esrelay.core.cursor_base import Page, ScrollCursor, SourceDocument
from esrelay.core.exceptions import RetrievalError

logger = logging.getLogger(__name__)


def to_document(hit: Dict[str, Any]) -> SourceDocument:
    """Map a raw hit (``{"_index": ..., "_id": ..., "_source": {...}}``) to a SourceDocument."""
    index = hit.get("_index", "")
    cluster_alias = None
    # cross-cluster hits come back as "cluster:index"
    if ":" in index:
        cluster_alias, index = index.split(":", 1)
    return SourceDocument(
        index=index,
        id=hit["_id"],
        version=hit.get("_version"),
        seq_no=hit.get("_seq_no"),
        primary_term=hit.get("_primary_term"),
        score=hit.get("_score"),
        cluster_alias=cluster_alias,
        source=hit.get("_source") or {},
        hit=hit,
    )


class ElasticsearchScrollCursor(ScrollCursor):
    """
    Scroll cursor over one or more Elasticsearch indices.
    Each call returns exactly one page; the scroll id of the previous page is dropped as soon as
    the next one is requested.
    """

    def __init__(self, client: Elasticsearch) -> None:
        self.client = client
        self._scroll_id: Optional[str] = None

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
        try:
            query_body = json.loads(query)
        except ValueError as e:
            raise RetrievalError(f"Invalid query: {query}") from e

        request: Dict[str, Any] = {
            "index": indices,
            "query": query_body,
            "scroll": scroll,
            "preference": preference,
            "version": True,
            "seq_no_primary_term": True,
        }
        if size is not None:
            request["size"] = size
        if fields:
            request["source_includes"] = fields

        logger.info("Opening scroll on %s", ",".join(indices))
        try:
            response = self._with_timeout(timeout).search(**request)
        except (ApiError, TransportError) as e:
            raise RetrievalError(f"Failed to search {','.join(indices)}: {e}") from e
        return self._to_page(response)

    def advance(self, token: str, scroll: str, timeout: str) -> Page:
        try:
            response = self._with_timeout(timeout).scroll(scroll_id=token, scroll=scroll)
        except (ApiError, TransportError) as e:
            raise RetrievalError(f"Failed to advance scroll: {e}") from e
        return self._to_page(response)

    def close(self) -> None:
        """Release the server-side scroll context if it is still open."""
        if not self._scroll_id:
            return
        scroll_id, self._scroll_id = self._scroll_id, None
        try:
            self.client.clear_scroll(scroll_id=scroll_id)
        except (ApiError, TransportError) as e:
            logger.warning("Failed to clear scroll: %s", e)

    # ---------------------- internals ----------------------

    def _with_timeout(self, timeout: str) -> Elasticsearch:
        return self.client.options(request_timeout=parse_time_value(timeout))

    def _to_page(self, response: Any) -> Page:
        body = getattr(response, "body", response)
        hits = body.get("hits", {}).get("hits", [])
        scroll_id = body.get("_scroll_id")
        # kept even when exhausted so close() can clear it
        self._scroll_id = scroll_id
        if not hits:
            return Page((), None)
        return Page(tuple(to_document(h) for h in hits), scroll_id)


__all__ = ["ElasticsearchScrollCursor", "to_document"]
