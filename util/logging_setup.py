from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class _ConsoleNoiseFilter(logging.Filter):
    """Keep notanote logs; third-party loggers (urllib3 etc.) only from WARNING."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith("notanote"):
            return True
        return record.levelno >= logging.WARNING


def _level(value: Union[str, int, None], default: int) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, int):
        return value
    resolved = logging.getLevelName(str(value).upper())
    return resolved if isinstance(resolved, int) else default


def setup_logging(
    *,
    console_level: Union[str, int, None] = None,
    log_file: Optional[Union[str, Path]] = None,
    file_level: int = logging.DEBUG,
) -> None:
    """Configure root logging once, at process start.

    Console output always goes to stderr: in `--mcp` mode stdout carries
    JSON-RPC frames only. `NOTANOTE_LOG_LEVEL` and `NOTANOTE_LOG_FILE`
    fill in arguments left as None.
    """
    console = _level(console_level if console_level is not None else os.environ.get("NOTANOTE_LOG_LEVEL"), logging.INFO)
    log_file = log_file or os.environ.get("NOTANOTE_LOG_FILE") or None

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(path), encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(fmt)
        root.addHandler(fh)

    logging.captureWarnings(True)


__all__ = ["setup_logging"]
