# esrelay/core/config.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

# recognized parameter keys
INDEX = "index"
QUERY = "query"
FIELDS = "fields"
SIZE = "size"
SCROLL = "scroll"
TIMEOUT = "timeout"
PREFERENCE = "preference"
DELETE_PROCESSED_DOC = "delete.processed.doc"
READ_INTERVAL = "readInterval"
SCRIPT_TYPE = "script_type"
NUM_OF_THREADS = "num_of_threads"
SETTINGS_PREFIX = "settings."

DEFAULT_INDEX = "_all"
DEFAULT_QUERY = '{"match_all":{}}'
DEFAULT_TIME_VALUE = "1m"
DEFAULT_PREFERENCE = "_local"
DEFAULT_SCRIPT_TYPE = "python"

_TIME_VALUE = re.compile(r"^(\d+(?:\.\d+)?)(nanos|micros|ms|s|m|h|d)$")
_TIME_UNITS = {
    "nanos": 1e-9,
    "micros": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
    "d": 86400.0,
}


def parse_time_value(text: str) -> float:
    """Convert an Elasticsearch time value such as ``30s`` or ``1m`` into seconds."""
    m = _TIME_VALUE.match(text.strip())
    if not m:
        raise ConfigError(f"Invalid time value '{text}'")
    return float(m.group(1)) * _TIME_UNITS[m.group(2)]


def _split(value: str) -> List[str]:
    return [v.strip() for v in value.strip().split(",") if v.strip()]


def _parse_int(params: Mapping[str, str], key: str) -> Optional[int]:
    if key not in params:
        return None
    try:
        return int(params[key])
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{key} is not an int value: {params[key]!r}") from e


@dataclass(frozen=True)
class ExtractionParams:
    """
    Typed view over the string parameter map of one run.
    ``raw`` keeps the original mapping (read-only) because it is merged into every
    evaluation context.
    """

    indices: List[str] = field(default_factory=lambda: [DEFAULT_INDEX])
    query: str = DEFAULT_QUERY
    fields: Optional[List[str]] = None
    size: Optional[int] = None  # None -> server default
    scroll: str = DEFAULT_TIME_VALUE
    timeout: str = DEFAULT_TIME_VALUE
    preference: str = DEFAULT_PREFERENCE
    delete_processed_doc: bool = False
    read_interval: int = 0  # milliseconds between documents
    script_type: str = DEFAULT_SCRIPT_TYPE
    num_of_threads: int = 1
    # client settings with the "settings." prefix stripped
    settings: Dict[str, str] = field(default_factory=dict)
    raw: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def timeout_seconds(self) -> float:
        return parse_time_value(self.timeout)

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> "ExtractionParams":
        indices = _split(params[INDEX]) if INDEX in params else [DEFAULT_INDEX]
        fields = _split(params[FIELDS]) if FIELDS in params else None

        read_interval = _parse_int(params, READ_INTERVAL) or 0

        num_of_threads = 1
        if NUM_OF_THREADS in params:
            try:
                num_of_threads = int(params[NUM_OF_THREADS])
            except (TypeError, ValueError):
                logger.warning("%s is not int value.", NUM_OF_THREADS, exc_info=True)

        settings = {
            k[len(SETTINGS_PREFIX):]: v for k, v in params.items() if k.startswith(SETTINGS_PREFIX)
        }

        result = cls(
            indices=indices or [DEFAULT_INDEX],
            query=params.get(QUERY, DEFAULT_QUERY).strip(),
            fields=fields,
            size=_parse_int(params, SIZE),
            scroll=params.get(SCROLL, DEFAULT_TIME_VALUE).strip(),
            timeout=params.get(TIMEOUT, DEFAULT_TIME_VALUE).strip(),
            preference=params.get(PREFERENCE, DEFAULT_PREFERENCE).strip(),
            delete_processed_doc=params.get(DELETE_PROCESSED_DOC, "false").strip().lower() == "true",
            read_interval=read_interval,
            script_type=params.get(SCRIPT_TYPE, DEFAULT_SCRIPT_TYPE).strip(),
            num_of_threads=max(1, num_of_threads),
            settings=settings,
            raw=MappingProxyType(dict(params)),
        )
        # fail fast on bad time values instead of on the first request
        parse_time_value(result.scroll)
        parse_time_value(result.timeout)
        return result


@dataclass
class DataConfig:
    """
    Crawl configuration for one data store run.
    ``params`` are the raw string parameters; ``script_map`` maps output field -> expression;
    ``default_data`` seeds every output record.
    """

    name: str = "default"
    handler_name: str = "ElasticsearchDataStore"
    params: Dict[str, str] = field(default_factory=dict)
    script_map: Dict[str, str] = field(default_factory=dict)
    default_data: Dict[str, Any] = field(default_factory=dict)


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def load_data_config(path: str) -> DataConfig:
    """Read a YAML job file with ``name``, ``handler``, ``params``, ``script`` and ``defaults`` keys."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            doc = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read job file {path}: {e}") from e

    if not isinstance(doc, dict):
        raise ConfigError(f"Job file {path} must contain a mapping")
    for key in ("params", "script", "defaults"):
        if not isinstance(doc.get(key) or {}, dict):
            raise ConfigError(f"'{key}' in {path} must be a mapping")

    return DataConfig(
        name=str(doc.get("name", "default")),
        handler_name=str(doc.get("handler", "ElasticsearchDataStore")),
        params={str(k): _stringify(v) for k, v in (doc.get("params") or {}).items()},
        script_map={str(k): "" if v is None else str(v) for k, v in (doc.get("script") or {}).items()},
        default_data=dict(doc.get("defaults") or {}),
    )


__all__ = [
    "ExtractionParams",
    "DataConfig",
    "load_data_config",
    "parse_time_value",
]
