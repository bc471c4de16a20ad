# esrelay/cli.py
"""CLI entrypoint.

Commands:
- `esrelay run --config job.yaml --out records.jsonl [--log-level INFO] [--log-file run.log]`
- `esrelay list` prints the registered data stores

Job file layout:

    name: reindex-articles
    handler: ElasticsearchDataStore
    params:
      index: articles
      size: 100
      delete.processed.doc: false
      settings.hosts: http://localhost:9200
    script:
      title: source["title"]
      url: "'https://example.com/' + id"
    defaults:
      lang: en
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from dataclasses import asdict
from typing import List, Optional

import esrelay.extractors.elasticsearch.datastore  # noqa: F401  (registers data stores)

from .core.callbacks import JsonlCallback
from .core.config import load_data_config
from .core.datastore import DataStore
from .core.exceptions import RelayError
from .core.failure_store import LoggingFailureStore
from .core.logging_ import setup_logging
from .core.registry import get_registry
from .core.stats import LoggingStatsRecorder

logger = logging.getLogger(__name__)


def _install_stop_handlers(store: DataStore) -> None:
    def handler(signum, frame):  # noqa: ARG001
        logger.info("Received signal %s, stopping after the current document", signum)
        store.stop()

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


def _run(args: argparse.Namespace) -> int:
    setup_logging(args.log_level, args.log_file)
    callback = JsonlCallback(args.out)
    stats = LoggingStatsRecorder()
    try:
        config = load_data_config(args.config)
        store: DataStore = get_registry().create(
            config.handler_name, failure_store=LoggingFailureStore(), stats=stats
        )
        _install_stop_handlers(store)
        summary = store.run(config, callback)
    except RelayError as e:
        logger.error("Run failed: %s", e, exc_info=e.__cause__ is not None)
        return 1
    finally:
        callback.close()

    for key, value in asdict(summary).items():
        print(f"{key}: {value}")
    logger.info("Stats: %s", stats.summary())
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="esrelay")
    sub = p.add_subparsers(dest="cmd", required=True)

    pr = sub.add_parser("run", help="Relay documents of a source index to a JSONL file")
    pr.add_argument("--config", required=True, help="YAML job file")
    pr.add_argument("--out", required=True, help="Output JSONL path")
    pr.add_argument("--log-level", default="INFO")
    pr.add_argument("--log-file", default=None)

    sub.add_parser("list", help="List registered data stores")

    args = p.parse_args(argv)

    if args.cmd == "list":
        for name in get_registry().names():
            print(name)
        return 0

    return _run(args)


if __name__ == "__main__":
    sys.exit(main())
