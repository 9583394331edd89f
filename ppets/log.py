"""
Log sinks.

Components take a `logger(level, message)` callable at construction.
Levels are "debug", "info", "warn" and "error".
"""
from __future__ import annotations

import logging
from typing import Callable

LogSink = Callable[[str, str], None]

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def null_sink(level: str, message: str) -> None:
    pass


def logging_sink(name: str = "ppets") -> LogSink:
    """Forward sink calls to a standard library logger."""
    logger = logging.getLogger(name)

    def sink(level: str, message: str) -> None:
        logger.log(_LEVELS.get(level, logging.INFO), message)

    return sink


def prefixed(sink: LogSink, prefix: str) -> LogSink:
    """Tag every line, e.g. to tell the reader and the device apart."""
    return lambda level, message: sink(level, f"{prefix} {message}")


class CollectingSink:
    """Keeps every line in memory, e.g. for an application log view."""

    def __init__(self) -> None:
        self.lines: list[tuple[str, str]] = []

    def __call__(self, level: str, message: str) -> None:
        self.lines.append((level, message))

    def at(self, level: str) -> list[str]:
        return [message for lvl, message in self.lines if lvl == level]
