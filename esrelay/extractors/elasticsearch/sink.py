# esrelay/extractors/elasticsearch/sink.py
from __future__ import annotations

from typing import Any, Dict, Iterator, Mapping, Sequence

from elasticsearch import ApiError, Elasticsearch, TransportError, helpers

from esrelay.core.config import parse_time_value
from esrelay.core.exceptions import DocumentAccessError, HandoffError, RetrievalError
from esrelay.core.sink_base import DeleteRequest, DeleteResult, IndexUpdateCallback, RecordSink


class ElasticsearchRecordSink(RecordSink):
    """
    Hands records to the downstream callback and drains consumed documents from the source
    index with one bulk request per page.
    """

    def __init__(self, callback: IndexUpdateCallback, client: Elasticsearch) -> None:
        self.callback = callback
        self.client = client

    def store(self, params: Mapping[str, str], record: Dict[str, Any]) -> None:
        try:
            self.callback.store(params, record)
        except DocumentAccessError:
            raise
        except Exception as e:
            raise HandoffError(f"Failed to store record: {e}") from e

    def delete_batch(self, deletions: Sequence[DeleteRequest], timeout: str) -> DeleteResult:
        if not deletions:
            return DeleteResult(success_count=0)
        client = self.client.options(request_timeout=parse_time_value(timeout))
        try:
            success, errors = helpers.bulk(
                client, _delete_actions(deletions), raise_on_error=False, stats_only=False
            )
        except (ApiError, TransportError) as e:
            raise RetrievalError(f"Failed to delete {len(deletions)} processed documents: {e}") from e

        messages = [_failure_message(err) for err in errors or []]
        return DeleteResult(success_count=success, error_count=len(messages), errors=messages)

    def commit(self) -> None:
        commit = getattr(self.callback, "commit", None)
        if callable(commit):
            commit()


def _delete_actions(deletions: Sequence[DeleteRequest]) -> Iterator[Dict[str, Any]]:
    for req in deletions:
        yield {"_op_type": "delete", "_index": req.index, "_id": req.id}


def _failure_message(item: Any) -> str:
    # bulk errors look like {"delete": {"_index": ..., "_id": ..., "status": 404, ...}}
    if isinstance(item, dict) and "delete" in item:
        info = item["delete"]
        reason = info.get("error") or info.get("result") or info.get("status")
        return f"{info.get('_index')}/_doc/{info.get('_id')}: {reason}"
    return str(item)


__all__ = ["ElasticsearchRecordSink"]
