# core/logging_setup.py
from __future__ import annotations

import logging
import sys


class _ThirdPartyNoiseFilter(logging.Filter):
    """
    Keep our own loggers as configured, but only let WARNING+ through
    from chatty third-party loggers (sqlalchemy engine echo is the exception,
    it is opt-in through DB_ECHO).
    """

    QUIET_PREFIXES = ("httpx", "httpcore", "passlib", "multipart")

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith(self.QUIET_PREFIXES):
            return record.levelno >= logging.WARNING
        return True


def setup_logging(level: int | str = logging.INFO) -> None:
    """
    Configure the root logger with a single console handler.

    Call this ONCE, at startup, before the first log line.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)

    # Remove any pre-existing handlers to avoid duplicates (uvicorn --reload).
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(level)
    ch.setFormatter(fmt)
    ch.addFilter(_ThirdPartyNoiseFilter())
    root.addHandler(ch)

    logging.captureWarnings(True)
