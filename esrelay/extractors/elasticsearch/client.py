# esrelay/extractors/elasticsearch/client.py
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from elasticsearch import Elasticsearch

from esrelay.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_HOSTS = "http://localhost:9200"


def _as_bool(key: str, value: str) -> bool:
    v = value.strip().lower()
    if v in ("true", "1", "yes"):
        return True
    if v in ("false", "0", "no"):
        return False
    raise ConfigError(f"settings.{key} is not a boolean: {value!r}")


def client_kwargs(settings: Mapping[str, str]) -> Dict[str, Any]:
    """
    Translate ``settings.*`` parameters (prefix already stripped) into Elasticsearch() kwargs.
    Unknown keys are logged and ignored.
    """
    kwargs: Dict[str, Any] = {
        "hosts": [h.strip() for h in settings.get("hosts", DEFAULT_HOSTS).split(",") if h.strip()],
    }
    for key, value in settings.items():
        if key in ("hosts", "username", "password"):
            continue
        if key == "api_key":
            kwargs["api_key"] = value
        elif key == "verify_certs":
            kwargs["verify_certs"] = _as_bool(key, value)
        elif key == "ca_certs":
            kwargs["ca_certs"] = value
        elif key == "request_timeout":
            try:
                kwargs["request_timeout"] = float(value)
            except ValueError as e:
                raise ConfigError(f"settings.request_timeout is not a number: {value!r}") from e
        else:
            logger.warning("Ignoring unsupported client setting: settings.%s", key)

    if "username" in settings:
        kwargs["basic_auth"] = (settings["username"], settings.get("password", ""))
    return kwargs


def create_client(settings: Mapping[str, str]) -> Elasticsearch:
    return Elasticsearch(**client_kwargs(settings))


__all__ = ["client_kwargs", "create_client"]
