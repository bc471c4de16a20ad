# esrelay/extractors/elasticsearch/datastore.py
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from elasticsearch import Elasticsearch

from esrelay.core.batch_processor import BatchProcessor, RunSummary
from esrelay.core.config import DataConfig, ExtractionParams
from esrelay.core.datastore import DataStore
from esrelay.core.exceptions import DataRetrievalError
from esrelay.core.registry import register
from esrelay.core.sink_base import IndexUpdateCallback, RecordSink, ThreadPoolSink
from esrelay.core.transformer_base import RecordTransformer, get_engine

from .client import create_client
from .cursor import ElasticsearchScrollCursor
from .sink import ElasticsearchRecordSink

logger = logging.getLogger(__name__)


@register("ElasticsearchDataStore")
class ElasticsearchDataStore(DataStore):
    """
    Re-surfaces documents of an Elasticsearch index as input for the indexing pipeline.
    One client per run, built from the ``settings.*`` parameters.
    """

    def store_data(
        self,
        config: DataConfig,
        callback: IndexUpdateCallback,
        script_map: Dict[str, str],
        default_data: Dict[str, Any],
    ) -> RunSummary:
        params = ExtractionParams.from_params(config.params)
        client = self.create_client(params.settings)
        try:
            return self.process_data(config, callback, params, script_map, default_data, client)
        finally:
            client.close()

    def create_client(self, settings: Mapping[str, str]) -> Elasticsearch:
        return create_client(settings)

    def create_sink(
        self,
        config: DataConfig,
        callback: IndexUpdateCallback,
        params: ExtractionParams,
        client: Elasticsearch,
    ) -> RecordSink:
        return ElasticsearchRecordSink(callback, client)

    def process_data(
        self,
        config: DataConfig,
        callback: IndexUpdateCallback,
        params: ExtractionParams,
        script_map: Dict[str, str],
        default_data: Dict[str, Any],
        client: Elasticsearch,
    ) -> RunSummary:
        transformer = RecordTransformer(get_engine(params.script_type))
        cursor = ElasticsearchScrollCursor(client)
        sink = self.create_sink(config, callback, params, client)
        processor = BatchProcessor(
            cursor,
            transformer,
            sink,
            self.failure_store,
            stats=self.stats,
            alive=lambda: self.alive,
        )
        logger.info("%s: relaying %s from %s", self.name(), config.name, ",".join(params.indices))
        # close in reverse order
        with cursor, sink:
            summary = processor.run(config, params, script_map, default_data)
            sink.commit()
        return summary


@register("ElasticsearchListDataStore")
class ElasticsearchListDataStore(ElasticsearchDataStore):
    """Same scroll, but records are handed off by ``num_of_threads`` worker threads."""

    def create_sink(
        self,
        config: DataConfig,
        callback: IndexUpdateCallback,
        params: ExtractionParams,
        client: Elasticsearch,
    ) -> RecordSink:
        inner = super().create_sink(config, callback, params, client)
        return ThreadPoolSink(inner, params.num_of_threads, self.failure_store, config)

    def store_data(
        self,
        config: DataConfig,
        callback: IndexUpdateCallback,
        script_map: Dict[str, str],
        default_data: Dict[str, Any],
    ) -> RunSummary:
        try:
            return super().store_data(config, callback, script_map, default_data)
        except DataRetrievalError:
            raise
        except Exception as e:
            raise DataRetrievalError(f"{self.name()} failed: {e}", e) from e


__all__ = ["ElasticsearchDataStore", "ElasticsearchListDataStore"]
