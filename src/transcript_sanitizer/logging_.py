"""Logging utilities.

We use Python's standard `logging` module with a one-line structured format
that is easy to grep and to ship to a log collector.

- Batch runs log to `<log_dir>/<run_id>.log` and to the console.
- `transcript-sanitizer clean` logs to the console (stderr) only, so stdout
  carries nothing but the cleaned text.
"""

from __future__ import annotations
import logging
import os
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s | %(message)s"


def setup_logging(log_dir: Optional[str] = None, run_id: str = "sanitize", level: int = logging.INFO) -> None:
    """Install file (when `log_dir` is given) and console handlers on the root logger."""
    root = logging.getLogger()
    root.setLevel(level)

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S")

    # File
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        fh = logging.FileHandler(os.path.join(log_dir, f"{run_id}.log"), encoding="utf-8")
        fh.setFormatter(fmt)
        root.addHandler(fh)

    # Console
    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    root.addHandler(ch)
