# esrelay/core/base_stage.py
from __future__ import annotations

from abc import ABC
from typing import Any


class Stage(ABC):  # noqa: B024
    """
    Minimal lifecycle base for cursors and sinks.
    Subclasses override open()/close() if they hold resources (scroll contexts, thread pools, files).
    Stages are context managers so a run can scope them with ``with``.
    """

    def open(self) -> None:  # noqa: B027
        """Per-run init. Called once before the first page is fetched."""
        pass

    def close(self) -> None:  # noqa: B027
        """Per-run teardown. Called once after the run finishes (success or failure)."""
        pass

    def __enter__(self) -> "Stage":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


__all__ = ["Stage"]
