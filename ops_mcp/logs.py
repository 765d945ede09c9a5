"""Logging setup.

Records go to stderr: in stdio mode stdout carries the protocol stream and
must stay clean. Fields passed through ``extra=`` are appended as
``key=value`` pairs.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

_RESERVED = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class KeyValueFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        fields = [f"{k}={v}" for k, v in vars(record).items() if k not in _RESERVED and not k.startswith("_")]
        if fields:
            # keep tracebacks last
            head, sep, tail = text.partition("\n")
            text = f"{head} {' '.join(fields)}{sep}{tail}"
        return text


def parse_level(name: str) -> int:
    return _LEVELS.get(name.strip().lower(), logging.INFO)


def setup_logging(level: str = "info", stream: TextIO | None = None) -> None:
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(KeyValueFormatter())
    logging.basicConfig(level=parse_level(level), handlers=[handler], force=True)
    # uvicorn installs its own handlers only with its default log config, which is disabled
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
