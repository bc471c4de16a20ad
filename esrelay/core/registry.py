# esrelay/core/registry.py
from __future__ import annotations

from typing import Any, Callable, Dict, Iterator, List, NamedTuple, Optional, Type, TypeVar

from .exceptions import ConfigError

T = TypeVar("T")


class _Entry(NamedTuple):
    name: str
    cls: Type[Any]


class Registry:
    """
    Named classes, looked up case-insensitively and instantiated on demand.
    ``kind`` only shows up in error messages ("Unknown data store 'Foo'").

    Example:
        stores = Registry("data store")

        @stores.register("ElasticsearchDataStore")
        class ElasticsearchDataStore(DataStore): ...

        stores.create("elasticsearchdatastore", failure_store=...)
    """

    def __init__(self, kind: str = "component") -> None:
        self.kind = kind
        self._entries: Dict[str, _Entry] = {}

    def register(self, name: str, cls: Optional[Type[T]] = None) -> Any:
        """Add ``cls`` under ``name``; without ``cls`` returns a class decorator."""
        if cls is None:
            return lambda c: self.register(name, c)
        existing = self._entries.get(name.lower())
        if existing is not None and existing.cls is not cls:
            raise ValueError(
                f"{self.kind} '{name}' is already registered to {existing.cls.__qualname__}"
            )
        self._entries[name.lower()] = _Entry(name, cls)
        return cls

    def get(self, name: str) -> Optional[Type[Any]]:
        entry = self._entries.get(name.lower())
        return entry.cls if entry else None

    def create(self, name: str, *args: Any, **kwargs: Any) -> Any:
        cls = self.get(name)
        if cls is None:
            known = ", ".join(self.names()) or "none"
            raise ConfigError(f"Unknown {self.kind} '{name}' (known: {known})")
        return cls(*args, **kwargs)

    def names(self) -> List[str]:
        return sorted(e.name for e in self._entries.values())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())


_data_stores = Registry("data store")


def register(name: str) -> Callable[[Type[T]], Type[T]]:
    """Class decorator adding a DataStore to the global data store registry."""
    return _data_stores.register(name)


def get_registry() -> Registry:
    return _data_stores


__all__ = ["Registry", "register", "get_registry"]
