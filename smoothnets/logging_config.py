"""Root logger configuration for command line runs."""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(filename)s - %(message)s"


def setup_logging(
    run_name: str = "run",
    level: int | str = logging.INFO,
    log_dir: str | Path | None = None,
) -> Path | None:
    """Log to stderr and, when ``log_dir`` is given, to a timestamped file.

    Stdout is left alone so command line output stays machine readable.
    Returns the log file path, if one was created.
    """

    root_logger = logging.getLogger()
    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    log_path = None
    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        log_path = log_dir / f"{run_name}_{timestamp}.log"
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    if isinstance(level, str):
        level = level.upper()
    root_logger.setLevel(level)
    return log_path


__all__ = ["LOG_FORMAT", "setup_logging"]
