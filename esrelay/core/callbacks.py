# esrelay/core/callbacks.py
from __future__ import annotations

import json
import threading
from typing import Any, Dict, Mapping, Optional, TextIO


class JsonlCallback:
    """Writes each relayed record as one JSON line. Safe to share between sink worker threads."""

    def __init__(self, path: str) -> None:
        self.path = path
        self._lock = threading.Lock()
        self._fh: Optional[TextIO] = None
        self.count = 0

    def store(self, params: Mapping[str, str], record: Dict[str, Any]) -> None:
        line = json.dumps(record, ensure_ascii=False, default=str)
        with self._lock:
            if self._fh is None:
                self._fh = open(self.path, "w", encoding="utf-8")
            self._fh.write(line + "\n")
            self.count += 1

    def commit(self) -> None:
        with self._lock:
            if self._fh is not None:
                self._fh.flush()

    def close(self) -> None:
        """Close the file; a run that relayed nothing still leaves an empty file behind."""
        with self._lock:
            if self._fh is None and self.count == 0:
                self._fh = open(self.path, "w", encoding="utf-8")
            if self._fh is not None:
                self._fh.close()
                self._fh = None


__all__ = ["JsonlCallback"]
