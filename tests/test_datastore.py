"""
End-to-end tests of the Elasticsearch data stores with a mocked client.

Everything between the client and the callback is real: cursor, transformer, batch loop, sinks.
"""

from unittest.mock import MagicMock, Mock, patch

import pytest
from elasticsearch import ConnectionError as TransportConnectionError

from esrelay.core.config import DataConfig
from esrelay.core.exceptions import ConfigError, DataRetrievalError
from esrelay.core.failure_store import InMemoryFailureStore
from esrelay.core.stats import LoggingStatsRecorder
from esrelay.extractors.elasticsearch.client import client_kwargs
from esrelay.extractors.elasticsearch.datastore import (
    ElasticsearchDataStore,
    ElasticsearchListDataStore,
)

BULK = "esrelay.extractors.elasticsearch.sink.helpers.bulk"


def _hit(doc_id, **source):
    return {"_index": "src", "_id": doc_id, "_source": source}


def _client(*pages):
    """Client whose search/scroll calls return ``pages`` in order, then an empty page."""
    client = MagicMock()
    client.options.return_value = client
    responses = [{"_scroll_id": f"s{i}", "hits": {"hits": hits}} for i, hits in enumerate(pages)]
    responses.append({"_scroll_id": "end", "hits": {"hits": []}})
    client.search.return_value = responses[0]
    client.scroll.side_effect = responses[1:]
    return client


def _config(**params):
    return DataConfig(
        name="articles",
        params={k: str(v) for k, v in params.items()},
        script_map={"title": "source['title']", "url": "'https://example.com/' + id"},
        default_data={"lang": "en"},
    )


class TestElasticsearchDataStore:
    def test_name(self):
        assert ElasticsearchDataStore().name() == "ElasticsearchDataStore"
        assert ElasticsearchListDataStore().name() == "ElasticsearchListDataStore"

    def test_relays_all_documents(self):
        client = _client([_hit("1", title="a"), _hit("2", title="b")], [_hit("3", title="c")])
        callback = Mock()
        store = ElasticsearchDataStore(failure_store=InMemoryFailureStore())

        with patch.object(ElasticsearchDataStore, "create_client", return_value=client):
            summary = store.run(_config(index="src", size=2), callback)

        records = [c.args[1] for c in callback.store.call_args_list]
        assert records == [
            {"lang": "en", "title": "a", "url": "https://example.com/1"},
            {"lang": "en", "title": "b", "url": "https://example.com/2"},
            {"lang": "en", "title": "c", "url": "https://example.com/3"},
        ]
        assert summary.pages == 2
        assert summary.stored == 3
        callback.commit.assert_called_once_with()
        client.clear_scroll.assert_called_once_with(scroll_id="end")
        client.close.assert_called_once_with()

    def test_params_passed_to_callback(self):
        client = _client([_hit("1", title="a")])
        callback = Mock()

        with patch.object(ElasticsearchDataStore, "create_client", return_value=client):
            ElasticsearchDataStore().run(_config(index="src"), callback)

        params = callback.store.call_args.args[0]
        assert params["index"] == "src"

    def test_script_map_override(self):
        client = _client([_hit("1", title="a")])
        callback = Mock()

        with patch.object(ElasticsearchDataStore, "create_client", return_value=client):
            ElasticsearchDataStore().run(_config(), callback, script_map={"t": "source['title']"}, default_data={})

        assert callback.store.call_args.args[1] == {"t": "a"}

    def test_delete_processed_docs(self):
        client = _client([_hit("1", title="a"), _hit("2", title="b")])
        callback = Mock()

        with patch.object(ElasticsearchDataStore, "create_client", return_value=client), patch(
            BULK, return_value=(2, [])
        ) as bulk:
            summary = ElasticsearchDataStore().run(_config(**{"delete.processed.doc": "true"}), callback)

        assert bulk.call_count == 1
        assert [a["_id"] for a in bulk.call_args.args[1]] == ["1", "2"]
        assert summary.deleted == 2

    def test_bad_document_is_reported(self):
        client = _client([_hit("1", title="a"), _hit("2", body="no title"), _hit("3", title="c")])
        callback = Mock()
        failures = InMemoryFailureStore()
        stats = LoggingStatsRecorder()

        with patch.object(ElasticsearchDataStore, "create_client", return_value=client):
            summary = ElasticsearchDataStore(failure_store=failures, stats=stats).run(_config(), callback)

        assert callback.store.call_count == 2
        assert [r.source_id for r in failures.records] == ["src/_doc/2"]
        assert summary.failed == 1
        assert stats.summary()["access_exception"] == 1
        assert stats.summary()["done"] == 3

    def test_retrieval_failure_is_fatal(self):
        client = _client([_hit("1", title="a")], [_hit("2", title="b")])
        client.scroll.side_effect = TransportConnectionError("connection reset")

        with patch.object(ElasticsearchDataStore, "create_client", return_value=client):
            with pytest.raises(DataRetrievalError) as exc_info:
                ElasticsearchDataStore().run(_config(), Mock())

        assert "Failed to crawl data" in str(exc_info.value)
        client.close.assert_called_once_with()

    def test_stop_before_run(self):
        client = _client([_hit("1", title="a")])
        callback = Mock()
        store = ElasticsearchDataStore()
        store.stop()

        with patch.object(ElasticsearchDataStore, "create_client", return_value=client):
            summary = store.run(_config(), callback)

        assert not store.alive
        callback.store.assert_not_called()
        assert summary.stopped is True
        client.search.assert_not_called()
        client.scroll.assert_not_called()

    def test_bad_size_is_config_error(self):
        with pytest.raises(ConfigError):
            ElasticsearchDataStore().run(_config(size="ten"), Mock())


class TestElasticsearchListDataStore:
    def test_relays_with_threads(self):
        client = _client([_hit(str(i), title=str(i)) for i in range(10)])
        callback = Mock()

        with patch.object(ElasticsearchDataStore, "create_client", return_value=client):
            summary = ElasticsearchListDataStore().run(_config(num_of_threads=4), callback)

        assert callback.store.call_count == 10
        assert sorted(c.args[1]["title"] for c in callback.store.call_args_list) == [str(i) for i in range(10)]
        assert summary.stored == 10
        callback.commit.assert_called_once_with()

    def test_worker_failure_goes_to_failure_store(self):
        client = _client([_hit("1", title="a"), _hit("2", title="b")])
        callback = Mock()
        callback.store.side_effect = [None, ValueError("downstream rejected")]
        failures = InMemoryFailureStore()

        with patch.object(ElasticsearchDataStore, "create_client", return_value=client):
            ElasticsearchListDataStore(failure_store=failures).run(_config(num_of_threads=1), callback)

        assert len(failures.records) == 1
        assert failures.records[0].error_name == "builtins.ValueError"

    def test_other_failures_are_wrapped(self):
        with pytest.raises(DataRetrievalError) as exc_info:
            ElasticsearchListDataStore().run(_config(size="ten"), Mock())

        assert isinstance(exc_info.value.cause, ConfigError)


class TestClientKwargs:
    def test_defaults(self):
        assert client_kwargs({}) == {"hosts": ["http://localhost:9200"]}

    def test_known_settings(self):
        kwargs = client_kwargs(
            {
                "hosts": "http://a:9200, http://b:9200",
                "username": "elastic",
                "password": "secret",
                "verify_certs": "false",
                "ca_certs": "/etc/ca.pem",
                "request_timeout": "15",
                "api_key": "key",
            }
        )

        assert kwargs == {
            "hosts": ["http://a:9200", "http://b:9200"],
            "basic_auth": ("elastic", "secret"),
            "verify_certs": False,
            "ca_certs": "/etc/ca.pem",
            "request_timeout": 15.0,
            "api_key": "key",
        }

    def test_unknown_setting_is_ignored(self, caplog):
        kwargs = client_kwargs({"cluster.name": "x"})

        assert "cluster.name" not in kwargs
        assert "settings.cluster.name" in caplog.text

    @pytest.mark.parametrize("settings", [{"verify_certs": "maybe"}, {"request_timeout": "soon"}])
    def test_invalid_values(self, settings):
        with pytest.raises(ConfigError):
            client_kwargs(settings)
