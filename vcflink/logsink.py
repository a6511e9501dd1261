"""Operational log sink with console/file routing.

Six severities are used, in order: DEBUG < INFO < ADVISORY < WARNING <
EXCEPTION < ERROR. ADVISORY and EXCEPTION are registered with the standard
``logging`` module so third-party handlers render them by name.

Console output is filtered by the configured minimum level; the log file
receives every record. Per-record routing flags travel through ``extra``:

``no_console``
    skip the console handler.
``no_file``
    skip the file handler.
``blank_before`` / ``blank_after``
    surround the rendered line with an empty line.
"""

from __future__ import annotations

import logging
from enum import IntEnum
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

ADVISORY = 25
EXCEPTION = 35

logging.addLevelName(ADVISORY, "ADVISORY")
logging.addLevelName(EXCEPTION, "EXCEPTION")

ROOT_LOGGER = "vcflink"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class Severity(IntEnum):
    """Strictly ordered severities understood by the sink."""

    DEBUG = logging.DEBUG
    INFO = logging.INFO
    ADVISORY = ADVISORY
    WARNING = logging.WARNING
    EXCEPTION = EXCEPTION
    ERROR = logging.ERROR

    @classmethod
    def parse(cls, value: str | int) -> Severity:
        if isinstance(value, int):
            return cls(value)
        try:
            return cls[value.strip().upper()]
        except KeyError as exc:
            raise ValueError(f"Unknown log level '{value}'") from exc


class _RouteFilter(logging.Filter):
    """Drops records carrying the given suppression flag."""

    def __init__(self, flag: str) -> None:
        super().__init__()
        self._flag = flag

    def filter(self, record: logging.LogRecord) -> bool:
        return not getattr(record, self._flag, False)


class _FileFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        if getattr(record, "blank_before", False):
            text = "\n" + text
        if getattr(record, "blank_after", False):
            text = text + "\n"
        return text


class ConsoleHandler(RichHandler):
    """Rich console handler that honours the blank-line flags."""

    def emit(self, record: logging.LogRecord) -> None:
        if getattr(record, "blank_before", False):
            self.console.print()
        super().emit(record)
        if getattr(record, "blank_after", False):
            self.console.print()


def configure_logging(
    level: str | int = "INFO",
    log_file: Path | None = None,
    *,
    console: Console | None = None,
) -> logging.Logger:
    """Install console and file handlers on the package logger.

    Calling this again replaces the previously installed handlers.
    """

    root = logging.getLogger(ROOT_LOGGER)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.DEBUG)
    root.propagate = False

    console_handler = ConsoleHandler(
        level=int(Severity.parse(level)),
        console=console or Console(stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=False,
    )
    console_handler.addFilter(_RouteFilter("no_console"))
    root.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(_FileFormatter(FILE_FORMAT))
        file_handler.addFilter(_RouteFilter("no_file"))
        root.addHandler(file_handler)
    return root


class OperationLog:
    """Thin wrapper exposing the sink interface on top of a stdlib logger."""

    def __init__(self, logger: logging.Logger | str | None = None) -> None:
        if isinstance(logger, logging.Logger):
            self._logger = logger
        else:
            self._logger = logging.getLogger(logger or ROOT_LOGGER)

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def log(
        self,
        level: Severity | int,
        text: str,
        *,
        no_console: bool = False,
        no_file: bool = False,
        blank_before: bool = False,
        blank_after: bool = False,
    ) -> None:
        self._logger.log(
            int(level),
            text,
            extra={
                "no_console": no_console,
                "no_file": no_file,
                "blank_before": blank_before,
                "blank_after": blank_after,
            },
        )

    def debug(self, text: str, **flags: bool) -> None:
        self.log(Severity.DEBUG, text, **flags)

    def info(self, text: str, **flags: bool) -> None:
        self.log(Severity.INFO, text, **flags)

    def advisory(self, text: str, **flags: bool) -> None:
        self.log(Severity.ADVISORY, text, **flags)

    def warning(self, text: str, **flags: bool) -> None:
        self.log(Severity.WARNING, text, **flags)

    def exception(self, text: str, **flags: bool) -> None:
        self.log(Severity.EXCEPTION, text, **flags)

    def error(self, text: str, **flags: bool) -> None:
        self.log(Severity.ERROR, text, **flags)


def get_log(name: str) -> OperationLog:
    """Return an `OperationLog` bound to a child of the package logger."""

    return OperationLog(logging.getLogger(name))


__all__ = [
    "ADVISORY",
    "EXCEPTION",
    "ConsoleHandler",
    "OperationLog",
    "Severity",
    "configure_logging",
    "get_log",
]
