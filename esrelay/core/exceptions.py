# esrelay/core/exceptions.py
"""
Errors raised by the relay.

Two scopes matter to the batch loop:
- run scope: RetrievalError (cursor or bulk-delete transport failure), surfaced to the caller
  once, wrapped in DataRetrievalError.
- document scope: DocumentAccessError and subclasses, reported to the failure store and never
  raised out of the loop.
"""
from __future__ import annotations

from typing import List, Optional, Sequence


class RelayError(Exception):
    """Base exception for everything raised by esrelay."""

    pass


class ConfigError(RelayError):
    """
    Invalid run parameter.

    Raised when:
    - a numeric parameter (size, readInterval) is not a number
    - a time value uses an unknown unit
    - a YAML job file cannot be read or has the wrong shape
    - an unknown script type or data store name is requested
    """

    pass


class RetrievalError(RelayError):
    """Cursor open/advance or bulk-delete failed at the transport or protocol level."""

    pass


class DataRetrievalError(RelayError):
    """Fatal run-level failure. Carries the RetrievalError (or other error) that ended the run."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class DocumentAccessError(RelayError):
    """
    Failure tied to a single document.

    ``source_id`` overrides the ``index/_doc/id`` identifier reported to the failure store;
    ``abort`` asks the batch loop to skip the rest of the current page.
    """

    def __init__(self, message: str, source_id: Optional[str] = None, abort: bool = False):
        super().__init__(message)
        self.source_id = source_id
        self.abort = abort


class HandoffError(DocumentAccessError):
    """The downstream sink refused or failed to store a record."""

    pass


class PageAbortSignal(DocumentAccessError):
    """Document failure that also stops iterating the current page."""

    def __init__(self, message: str, source_id: Optional[str] = None):
        super().__init__(message, source_id=source_id, abort=True)


class MultipleAccessError(DocumentAccessError):
    """Aggregate of several document-scoped failures (e.g. more than one field expression failing)."""

    def __init__(self, message: str, causes: Sequence[BaseException]):
        super().__init__(message)
        self.causes: List[BaseException] = list(causes)


def unwrap(exc: BaseException) -> BaseException:
    """Most specific failure: the last cause of an aggregate, otherwise ``exc`` itself."""
    if isinstance(exc, MultipleAccessError) and exc.causes:
        return exc.causes[-1]
    return exc


def class_name(exc: BaseException) -> str:
    """Qualified class name of ``exc``, e.g. ``builtins.KeyError``."""
    cls = type(exc)
    return f"{cls.__module__}.{cls.__qualname__}"


def error_name(exc: BaseException) -> str:
    """Qualified class name of the chained cause if there is one, else of ``exc``."""
    return class_name(exc.__cause__ if exc.__cause__ is not None else exc)


__all__ = [
    "RelayError",
    "ConfigError",
    "RetrievalError",
    "DataRetrievalError",
    "DocumentAccessError",
    "HandoffError",
    "PageAbortSignal",
    "MultipleAccessError",
    "unwrap",
    "class_name",
    "error_name",
]
