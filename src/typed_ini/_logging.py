"""Leveled logging for the pipeline, built on loguru.

Every message carries ``component="typed_ini"`` so hosts can filter it.
A failing log sink never interrupts parsing, resolving or exporting:
``safe_log`` reports the failure on stderr and carries on.
"""

from __future__ import annotations

import sys
from enum import Enum
from pathlib import Path
from typing import Protocol, runtime_checkable

from loguru import logger as loguru_logger

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <7} | {extra[component]} | {message}"

VERBOSE_LEVEL_NO = 15


class LogLevel(str, Enum):
    """Message severities understood by the pipeline."""

    error = "ERROR"
    warn = "WARN"
    info = "INFO"
    verbose = "VERBOSE"
    debug = "DEBUG"


# loguru names for each pipeline level.
_LOGURU_LEVELS: dict[LogLevel, str] = {
    LogLevel.error: "ERROR",
    LogLevel.warn: "WARNING",
    LogLevel.info: "INFO",
    LogLevel.verbose: "VERBOSE",
    LogLevel.debug: "DEBUG",
}


def _ensure_verbose_level() -> None:
    try:
        loguru_logger.level("VERBOSE")
    except ValueError:
        loguru_logger.level("VERBOSE", no=VERBOSE_LEVEL_NO, color="<cyan>")


@runtime_checkable
class Logger(Protocol):
    """Fire-and-forget message sink."""

    def log(self, level: LogLevel, message: str, destination: str | Path | None = None) -> None:
        ...


class NullLogger:
    """Discards every message."""

    def log(self, level: LogLevel, message: str, destination: str | Path | None = None) -> None:
        return None


class LoguruLogger:
    """Routes messages through loguru, optionally into log files.

    File sinks are added once per path and shared by every instance.
    ``destination`` on a single call overrides the default ``log_file``.
    """

    _file_sinks: dict[str, int] = {}

    def __init__(
        self,
        component: str = "typed_ini",
        log_file: str | Path | None = None,
        level: LogLevel | str = LogLevel.info,
    ) -> None:
        _ensure_verbose_level()
        self.component = component
        self.log_file = log_file
        self.level = LogLevel(level)
        self._logger = loguru_logger.bind(component=component)

    def _below_threshold(self, level: LogLevel) -> bool:
        severity = loguru_logger.level(_LOGURU_LEVELS[level]).no
        return severity < loguru_logger.level(_LOGURU_LEVELS[self.level]).no

    def _add_file_sink(self, path: str | Path) -> None:
        key = str(Path(path).resolve())
        if key in LoguruLogger._file_sinks:
            return
        LoguruLogger._file_sinks[key] = loguru_logger.add(
            key,
            format=LOG_FORMAT,
            level=_LOGURU_LEVELS[self.level],
            filter=lambda record: record["extra"].get("destination") == key,
            encoding="utf-8",
        )

    def log(self, level: LogLevel, message: str, destination: str | Path | None = None) -> None:
        target = destination or self.log_file
        if target is None:
            # host sinks take everything; the configured level still applies
            if self._below_threshold(LogLevel(level)):
                return
            self._logger.log(_LOGURU_LEVELS[LogLevel(level)], message)
            return
        self._add_file_sink(target)
        key = str(Path(target).resolve())
        self._logger.bind(destination=key).log(_LOGURU_LEVELS[LogLevel(level)], message)

    @classmethod
    def close_file_sinks(cls) -> None:
        """Remove every file sink added by this class."""
        for sink_id in cls._file_sinks.values():
            try:
                loguru_logger.remove(sink_id)
            except ValueError:
                # already removed by a host calling logger.remove()
                continue
        cls._file_sinks.clear()


def safe_log(
    logger: Logger | None,
    level: LogLevel,
    message: str,
    destination: str | Path | None = None,
) -> None:
    """Send *message* to *logger*; a logger failure is reported, never raised."""
    if logger is None:
        return
    try:
        logger.log(level, message, destination)
    except Exception as e:
        print(f"Logging error: {e}", file=sys.stderr)
