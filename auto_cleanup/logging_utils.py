# auto-cleanup — logging setup
# Copyright (c) 2026 Georgios Kapellakis
# Licensed under AGPL-3.0 — see LICENSE for details.

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def log_file_path(log_dir: Path, now: datetime | None = None) -> Path:
    """Day-wise log file, e.g. auto-cleanup-2026-01-31.log."""
    now = now or datetime.now()
    return Path(log_dir) / f"auto-cleanup-{now:%Y-%m-%d}.log"


def setup_logging(level: str = "INFO", *, log_dir: Path | None = None, quiet: bool = False) -> Path | None:
    """Configure the root logger once. Returns the log file in use, if any.

    The console only shows warnings and errors when quiet is set; the log
    file always records everything at the configured level.
    """
    root = logging.getLogger()
    # Avoid duplicate handlers if called multiple times
    if root.handlers:
        return None

    lvl = getattr(logging, level.upper(), logging.INFO)
    root.setLevel(lvl)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console.setLevel(max(lvl, logging.WARNING) if quiet else lvl)
    root.addHandler(console)

    if log_dir is None:
        return None

    path = log_file_path(log_dir)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
    except OSError as e:
        root.warning("Cannot write log file in %s: %s", log_dir, e)
        return None
    file_handler.setFormatter(formatter)
    file_handler.setLevel(lvl)
    root.addHandler(file_handler)
    return path
