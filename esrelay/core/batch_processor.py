# esrelay/core/batch_processor.py
from __future__ import annotations

import copy
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .config import DataConfig, ExtractionParams
from .cursor_base import Page, ScrollCursor, SourceDocument
from .exceptions import (
    DataRetrievalError,
    DocumentAccessError,
    RetrievalError,
    class_name,
    error_name,
    unwrap,
)
from .failure_store import FailureStore
from .sink_base import DeleteRequest, RecordSink
from .stats import NullStatsRecorder, StatsAction, StatsKey, StatsRecorder
from .transformer_base import RecordTransformer, build_context

logger = logging.getLogger(__name__)

FATAL_MESSAGE = "Failed to crawl data when accessing elasticsearch."


@dataclass
class RunSummary:
    """Counters for one run. ``failed`` counts documents reported to the failure store."""

    pages: int = 0
    processed: int = 0
    stored: int = 0
    failed: int = 0
    deleted: int = 0
    delete_errors: int = 0
    aborted_pages: int = 0
    stopped: bool = False


class BatchProcessor:
    """
    Drives one scroll from first page to exhaustion:
      - fetch a page from the cursor
      - per document: build context, evaluate the script map, hand the record to the sink
      - per page: bulk-delete the routed documents when delete.processed.doc is on
    Per-document failures are reported and never leave the page loop; only a RetrievalError
    from the cursor (or the bulk delete) ends the run, as DataRetrievalError.
    """

    def __init__(
        self,
        cursor: ScrollCursor,
        transformer: RecordTransformer,
        sink: RecordSink,
        failure_store: FailureStore,
        stats: Optional[StatsRecorder] = None,
        alive: Optional[Callable[[], bool]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.cursor = cursor
        self.transformer = transformer
        self.sink = sink
        self.failure_store = failure_store
        self.stats = stats or NullStatsRecorder()
        self._alive = alive or (lambda: True)
        self._sleep = sleep

    # ---------------------- public entry point ----------------------

    def run(
        self,
        config: DataConfig,
        params: ExtractionParams,
        script_map: Mapping[str, str],
        default_data: Mapping[str, Any],
    ) -> RunSummary:
        summary = RunSummary()
        if not self._alive():
            summary.stopped = True
            logger.info("Not starting %s: stopped before the first page", config.name)
            return summary
        try:
            for page in self.cursor.iter_pages(params):
                summary.pages += 1
                logger.debug("Page %d: %d documents", summary.pages, len(page.documents))
                self._process_page(page, config, params, script_map, default_data, summary)
                if not self._alive():
                    summary.stopped = True
                    break
        except RetrievalError as e:
            raise DataRetrievalError(FATAL_MESSAGE, e) from e

        logger.info(
            "Finished %s: %d pages, %d documents, %d stored, %d failed, %d deleted",
            config.name,
            summary.pages,
            summary.processed,
            summary.stored,
            summary.failed,
            summary.deleted,
        )
        return summary

    # ---------------------- internals ----------------------

    def _process_page(
        self,
        page: Page,
        config: DataConfig,
        params: ExtractionParams,
        script_map: Mapping[str, str],
        default_data: Mapping[str, Any],
        summary: RunSummary,
    ) -> None:
        pending: List[DeleteRequest] = []
        for doc in page.documents:
            if not self._alive():
                summary.stopped = True
                break

            routed, keep_going = self._process_document(
                doc, config, params, script_map, default_data, summary
            )
            if params.delete_processed_doc and routed:
                pending.append(DeleteRequest(doc.index, doc.id))

            if params.read_interval > 0:
                self._sleep(params.read_interval / 1000.0)

            if not keep_going:
                summary.aborted_pages += 1
                logger.info("Aborting the rest of page %d at %s", summary.pages, doc.source_id)
                break

        if pending:
            self._flush_deletions(pending, params, summary)

    def _process_document(
        self,
        doc: SourceDocument,
        config: DataConfig,
        params: ExtractionParams,
        script_map: Mapping[str, str],
        default_data: Mapping[str, Any],
        summary: RunSummary,
    ) -> Tuple[bool, bool]:
        """Returns (routed, keep_going). routed means store() was attempted."""
        key = StatsKey(doc.index, doc.id)
        routed = False
        keep_going = True
        data: Dict[str, Any] = {}
        summary.processed += 1
        self.stats.begin(key)
        try:
            data = copy.deepcopy(dict(default_data))
            context = build_context(params.raw, doc, config, data)
            if logger.isEnabledFor(logging.DEBUG):
                for k, v in context.items():
                    logger.debug("%s=%s", k, v)
            self.stats.record(key, StatsAction.PREPARED)

            self.transformer.evaluate(script_map, context)
            if logger.isEnabledFor(logging.DEBUG):
                for k, v in data.items():
                    logger.debug("%s=%s", k, v)
            self.stats.record(key, StatsAction.EVALUATED)

            routed = True
            self.sink.store(params.raw, data)
            summary.stored += 1
            self.stats.record(key, StatsAction.FINISHED)
        except DocumentAccessError as e:
            logger.warning("Crawling Access Exception at : %s", data, exc_info=True)
            target = unwrap(e)
            source_id = doc.source_id
            if isinstance(target, DocumentAccessError):
                source_id = target.source_id or source_id
                keep_going = not target.abort
            self._report(config, error_name(target), source_id, target, summary)
            self.stats.record(key, StatsAction.ACCESS_EXCEPTION)
        except Exception as e:
            logger.warning("Crawling Access Exception at : %s", data, exc_info=True)
            self._report(config, class_name(e), doc.source_id, e, summary)
            self.stats.record(key, StatsAction.EXCEPTION)
        finally:
            self.stats.done(key)
        return routed, keep_going

    def _report(
        self,
        config: DataConfig,
        name: str,
        source_id: str,
        cause: BaseException,
        summary: RunSummary,
    ) -> None:
        summary.failed += 1
        try:
            self.failure_store.store(config, name, source_id, cause)
        except Exception:
            logger.exception("Failed to store failure record for %s", source_id)

    def _flush_deletions(
        self, pending: List[DeleteRequest], params: ExtractionParams, summary: RunSummary
    ) -> None:
        result = self.sink.delete_batch(pending, params.timeout)
        summary.deleted += result.success_count
        if result.has_failures:
            summary.delete_errors += result.error_count
            logger.warning(
                "Failed to delete %d of %d processed documents: %s",
                result.error_count,
                len(pending),
                "; ".join(result.errors or []),
            )


__all__ = ["BatchProcessor", "RunSummary"]
