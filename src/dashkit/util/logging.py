"""Logging setup utilities and the per-service logger wrapper."""

from __future__ import annotations

import json
import logging
import os
import re
import sys
import traceback
from collections.abc import Mapping
from enum import Enum
from pathlib import Path

_DATEFMT = "%Y-%m-%d %H:%M:%S"
_LINE_FORMAT = "%(asctime)s\t%(level)s\t%(service)s\t%(message)s"

_PLACEHOLDER = re.compile(r"%(?:%|[-+ #0]*\d*(?:\.\d+)?[sdrifgex])")

_RESET = "\x1b[0m"
_RED = "\x1b[31m"
_YELLOW = "\x1b[33m"
_CYAN = "\x1b[36m"
_GREEN = "\x1b[32m"


class LogLevel(str, Enum):
    """Levels understood by :class:`ServiceLogger`."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    @property
    def rank(self) -> int:
        return _LEVEL_RANK[self]

    @property
    def stdlib_level(self) -> int:
        return _STDLIB_LEVELS[self]


_LEVEL_RANK: dict[LogLevel, int] = {
    LogLevel.ERROR: 1,
    LogLevel.WARNING: 2,
    LogLevel.INFO: 3,
    LogLevel.DEBUG: 4,
}

_STDLIB_LEVELS: dict[LogLevel, int] = {
    LogLevel.ERROR: logging.ERROR,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.INFO: logging.INFO,
    LogLevel.DEBUG: logging.DEBUG,
}


def configure_logging(*, log_path: Path | None = None, level: int = logging.INFO) -> logging.Logger:
    """Configure handlers on the package-wide ``dashkit`` logger."""

    logger = logging.getLogger("dashkit")
    logger.setLevel(level)

    has_stream = any(
        isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        for h in logger.handlers
    )
    existing_files = {getattr(h, "baseFilename", None) for h in logger.handlers}

    formatter = logging.Formatter(fmt="%(asctime)s %(levelname)s %(name)s - %(message)s", datefmt=_DATEFMT)

    if not has_stream:
        stream_handler = logging.StreamHandler(stream=sys.stdout)
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)

    if log_path and os.path.abspath(log_path) not in existing_files:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def parse_filter(text: str | None) -> dict[str, bool]:
    """Parse ``"api, !db"`` into ``{"api": True, "db": False}``."""

    result: dict[str, bool] = {}
    if not text:
        return result
    for raw in text.split(","):
        item = raw.strip()
        if not item:
            continue
        included = not item.startswith("!")
        name = item.lstrip("!").strip()
        if name:
            result[name] = included
    return result


def interpolate(message: str, meta: tuple[object, ...]) -> tuple[str, tuple[object, ...]]:
    """Fill ``%s``-style placeholders from `meta`, returning the unused values.

    Lets the same call read naturally against a stdlib logger and a
    :class:`ServiceLogger`.
    """

    count = sum(1 for token in _PLACEHOLDER.findall(message) if token != "%%")
    if not count or count > len(meta):
        return message, meta
    try:
        return message % meta[:count], meta[count:]
    except (TypeError, ValueError):
        return message, meta


def render_meta(values: tuple[object, ...]) -> str:
    """Render extra log arguments the way they appear under the message line."""

    rendered: list[str] = []
    for value in values:
        if isinstance(value, BaseException):
            rendered.append("".join(traceback.format_exception(value)).rstrip())
        elif isinstance(value, (Mapping, list, tuple)):
            try:
                rendered.append(json.dumps(value, indent=2))
            except (TypeError, ValueError):
                rendered.append(str(value))
        else:
            rendered.append(str(value))
    return " ".join(rendered)


class _ServiceFormatter(logging.Formatter):
    """Tab separated lines with extra meta appended on a new line."""

    def __init__(self) -> None:
        super().__init__(fmt=_LINE_FORMAT, datefmt=_DATEFMT)

    def format(self, record: logging.LogRecord) -> str:
        record.level = record.levelname.lower()
        if not hasattr(record, "service"):
            record.service = record.name
        line = super().format(record)
        meta = getattr(record, "meta", ())
        if meta:
            line += "\n" + render_meta(meta)
        return line


class _ConsoleFormatter(_ServiceFormatter):
    """Colourised variant used for the stdout handler."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        if record.levelno >= logging.ERROR:
            return f"{_RED}{line}{_RESET}"
        if record.levelno >= logging.WARNING:
            return f"{_YELLOW}{line}{_RESET}"
        parts = line.split("\t", 3)
        if len(parts) < 4:
            return line
        timestamp, level, service, rest = parts
        return f"{_CYAN}{timestamp}{_RESET}\t{level}\t{_GREEN}{service}{_RESET}\t{rest}"


class ServiceLogger:
    """Logger bound to a named service with file and console output.

    Writes every record to ``<log_path>/logs/combined.log`` and errors to
    ``<log_path>/logs/error.log``; verbose loggers also print to stdout.
    ``global_filter`` can silence the ``info`` and ``debug`` output of
    individual services (``"!db"``) while warnings and errors always pass.
    """

    def __init__(
        self,
        service_name: str = "nameless-service",
        *,
        log_level: LogLevel | str = LogLevel.DEBUG,
        verbose: bool = True,
        log_path: Path | str | None = None,
        global_log_level: LogLevel | str = LogLevel.DEBUG,
        global_filter: str | None = None,
    ) -> None:
        self.service_name = service_name
        self.log_level = LogLevel(log_level)
        self.global_log_level = LogLevel(global_log_level)
        self.verbose = verbose
        self.log_path = Path(log_path) if log_path is not None else Path.cwd()
        self.global_filter = parse_filter(global_filter)

        effective = min(self.log_level, self.global_log_level, key=lambda level: level.rank)
        self.effective_level = effective

        self._logger = logging.getLogger(f"dashkit.service.{service_name}")
        self._logger.setLevel(effective.stdlib_level)
        self._logger.propagate = False
        self._install_handlers()

    @property
    def is_observable(self) -> bool:
        return self.global_filter.get(self.service_name, True)

    @property
    def handlers(self) -> list[logging.Handler]:
        return list(self._logger.handlers)

    def info(self, message: str, *meta: object) -> None:
        if not self.is_observable:
            return
        self._log(logging.INFO, message, meta)

    def warning(self, message: str, *meta: object) -> None:
        self._log(logging.WARNING, message, meta)

    def debug(self, message: str, *meta: object) -> None:
        if not self.is_observable:
            return
        self._log(logging.DEBUG, message, meta)

    def error(self, message: str, *meta: object) -> RuntimeError:
        """Log `message` at error level and return an exception for the caller to raise."""

        self._log(logging.ERROR, message, meta)
        text, _ = interpolate(message, meta)
        return RuntimeError(text)

    def exception(self, message: str, *meta: object) -> None:
        """Log `message` at error level with the exception being handled."""

        message, meta = interpolate(message, meta)
        self._logger.error(
            message, exc_info=True, extra={"service": self.service_name, "meta": meta}
        )

    def add_transport(self, relative_path: str | Path, log_level: LogLevel | str | None = None) -> None:
        """Also write records to ``log_path / relative_path``."""

        if not self.verbose:
            return

        full_path = self.log_path / relative_path
        full_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(full_path, encoding="utf-8", delay=True)
        handler.setFormatter(_ServiceFormatter())
        if log_level is not None:
            handler.setLevel(LogLevel(log_level).stdlib_level)
        self._logger.addHandler(handler)

    def close(self) -> None:
        """Detach and close every handler owned by this service."""

        for handler in list(self._logger.handlers):
            self._logger.removeHandler(handler)
            handler.close()

    def _log(self, level: int, message: str, meta: tuple[object, ...]) -> None:
        message, meta = interpolate(message, meta)
        self._logger.log(level, message, extra={"service": self.service_name, "meta": meta})

    def _install_handlers(self) -> None:
        log_dir = self.log_path / "logs"
        existing_files = {getattr(h, "baseFilename", None) for h in self._logger.handlers}
        has_console = any(
            isinstance(h.formatter, _ConsoleFormatter) for h in self._logger.handlers
        )

        error_path = log_dir / "error.log"
        combined_path = log_dir / "combined.log"
        if os.path.abspath(error_path) not in existing_files:
            log_dir.mkdir(parents=True, exist_ok=True)
            error_handler = logging.FileHandler(error_path, encoding="utf-8", delay=True)
            error_handler.setLevel(logging.ERROR)
            error_handler.setFormatter(_ServiceFormatter())
            self._logger.addHandler(error_handler)
        if os.path.abspath(combined_path) not in existing_files:
            log_dir.mkdir(parents=True, exist_ok=True)
            combined_handler = logging.FileHandler(combined_path, encoding="utf-8", delay=True)
            combined_handler.setFormatter(_ServiceFormatter())
            self._logger.addHandler(combined_handler)

        if self.verbose and not has_console:
            console = logging.StreamHandler(stream=sys.stdout)
            console.setFormatter(_ConsoleFormatter())
            self._logger.addHandler(console)


__all__ = [
    "LogLevel",
    "ServiceLogger",
    "configure_logging",
    "interpolate",
    "parse_filter",
    "render_meta",
]
