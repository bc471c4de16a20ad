# esrelay/core/logging_.py
"""Logging setup.

Standard `logging` with a single line format for console and (optionally) a run log file.
"""

from __future__ import annotations

import logging
import os
from typing import Optional, Union

FORMAT = "%(asctime)s %(levelname)s %(name)s | %(message)s"
DATEFMT = "%Y-%m-%dT%H:%M:%S"


def setup_logging(level: Union[int, str] = "INFO", log_file: Optional[str] = None) -> None:
    """
    Configure the root logger.

    Args:
        level: Logging level name or number
        log_file: Optional path of a UTF-8 log file written next to console output
    """
    root = logging.getLogger()
    root.setLevel(level if isinstance(level, int) else level.upper())

    fmt = logging.Formatter(fmt=FORMAT, datefmt=DATEFMT)

    # Only add handlers once so repeated calls don't duplicate lines
    if not any(getattr(h, "_esrelay", False) for h in root.handlers):
        ch = logging.StreamHandler()
        ch.setFormatter(fmt)
        ch._esrelay = True  # type: ignore[attr-defined]
        root.addHandler(ch)

    if log_file:
        path = os.path.abspath(log_file)
        if not any(getattr(h, "baseFilename", None) == path for h in root.handlers):
            parent = os.path.dirname(path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            fh = logging.FileHandler(path, encoding="utf-8")
            fh.setFormatter(fmt)
            root.addHandler(fh)
