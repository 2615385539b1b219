"""A structured logger backed by the standard ``logging`` module."""

from __future__ import annotations

import logging
from typing import Any, Optional

from .log import Fields, Logger, _sprint, _sprintf

_FATAL_EXIT_CODE = 1


class StdlibLogger(Logger):
    """Logger that forwards to a ``logging.Logger``.

    Fields travel with every record as its ``fields`` attribute.
    """

    def __init__(self, logger: logging.Logger, fields: Optional[Fields] = None) -> None:
        self.logger = logger
        self.fields: dict[str, Any] = dict(fields) if fields else {}

    def _emit(self, level: int, message: str) -> None:
        self.logger.log(level, message, extra={"fields": dict(self.fields)}, stacklevel=3)

    def debug(self, *args: Any) -> None:
        self._emit(logging.DEBUG, _sprint(args))

    def debugf(self, fmt: str, *args: Any) -> None:
        self._emit(logging.DEBUG, _sprintf(fmt, args))

    def info(self, *args: Any) -> None:
        self._emit(logging.INFO, _sprint(args))

    def infof(self, fmt: str, *args: Any) -> None:
        self._emit(logging.INFO, _sprintf(fmt, args))

    def warn(self, *args: Any) -> None:
        self._emit(logging.WARNING, _sprint(args))

    def warnf(self, fmt: str, *args: Any) -> None:
        self._emit(logging.WARNING, _sprintf(fmt, args))

    def error(self, *args: Any) -> None:
        self._emit(logging.ERROR, _sprint(args))

    def errorf(self, fmt: str, *args: Any) -> None:
        self._emit(logging.ERROR, _sprintf(fmt, args))

    def fatal(self, *args: Any) -> None:
        self._emit(logging.CRITICAL, _sprint(args))
        raise SystemExit(_FATAL_EXIT_CODE)

    def fatalf(self, fmt: str, *args: Any) -> None:
        self._emit(logging.CRITICAL, _sprintf(fmt, args))
        raise SystemExit(_FATAL_EXIT_CODE)

    def with_field(self, key: str, value: Any) -> Logger:
        return self.with_fields({key: value})

    def with_fields(self, fields: Fields) -> Logger:
        return StdlibLogger(self.logger, {**self.fields, **fields})

    def with_error(self, err: BaseException) -> Logger:
        return self.with_fields({"error": err})


def from_logging(logger: logging.Logger) -> StdlibLogger:
    """Wrap a standard library logger."""
    return StdlibLogger(logger)