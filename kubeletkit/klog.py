"""A leveled, verbosity-gated logger that appends its fields to each message."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .log import Fields, Logger, _sprint, _sprintf

_DEBUG_VERBOSITY = 4
_FATAL_EXIT_CODE = 255
_DEFAULT_BACKEND = "kubeletkit.klog"


@dataclass
class _Settings:
    verbosity: int = 0


_settings = _Settings()


def set_verbosity(level: int) -> int:
    """Set the global verbosity and return the previous value."""
    previous = _settings.verbosity
    _settings.verbosity = level
    return previous


def process_fields(fields: Mapping[str, Any]) -> str:
    """Render fields as a sorted ``" [k=v ...]"`` suffix."""
    rendered = sorted(f"{key}={value}" for key, value in fields.items())
    return f" [{' '.join(rendered)}]"


class FieldMap:
    """Fields whose rendered form is computed once, on first use."""

    def __init__(self, fields: Optional[Fields] = None) -> None:
        self.fields: dict[str, Any] = dict(fields) if fields else {}
        self.processed_fields = ""
        self._done = False
        self._lock = threading.Lock()

    def __str__(self) -> str:
        with self._lock:
            if not self._done:
                if self.fields and not self.processed_fields:
                    self.processed_fields = process_fields(self.fields)
                self._done = True
        return self.processed_fields


class KlogLogger(Logger):
    """Logger that writes to a ``logging.Logger`` with fields as a suffix."""

    def __init__(
        self,
        fields: Optional[Fields] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.fields = FieldMap(fields)
        self.logger = logger if logger is not None else logging.getLogger(_DEFAULT_BACKEND)

    def _emit(self, level: int, message: str) -> None:
        self.logger.log(level, message, stacklevel=3)

    def debug(self, *args: Any) -> None:
        if _settings.verbosity >= _DEBUG_VERBOSITY:
            self._emit(logging.INFO, _sprint([*args, str(self.fields)]))

    def debugf(self, fmt: str, *args: Any) -> None:
        if _settings.verbosity >= _DEBUG_VERBOSITY:
            self._emit(logging.INFO, _sprintf(fmt, args) + str(self.fields))

    def info(self, *args: Any) -> None:
        self._emit(logging.INFO, _sprint([*args, str(self.fields)]))

    def infof(self, fmt: str, *args: Any) -> None:
        self._emit(logging.INFO, _sprintf(fmt, args) + str(self.fields))

    def warn(self, *args: Any) -> None:
        self._emit(logging.WARNING, _sprint([*args, str(self.fields)]))

    def warnf(self, fmt: str, *args: Any) -> None:
        self._emit(logging.WARNING, _sprintf(fmt, args) + str(self.fields))

    def error(self, *args: Any) -> None:
        self._emit(logging.ERROR, _sprint([*args, str(self.fields)]))

    def errorf(self, fmt: str, *args: Any) -> None:
        self._emit(logging.ERROR, _sprintf(fmt, args) + str(self.fields))

    def fatal(self, *args: Any) -> None:
        self._emit(logging.CRITICAL, _sprint([*args, str(self.fields)]))
        raise SystemExit(_FATAL_EXIT_CODE)

    def fatalf(self, fmt: str, *args: Any) -> None:
        self._emit(logging.CRITICAL, _sprintf(fmt, args) + str(self.fields))
        raise SystemExit(_FATAL_EXIT_CODE)

    def with_field(self, key: str, value: Any) -> Logger:
        return self.with_fields({key: value})

    def with_fields(self, fields: Fields) -> Logger:
        merged = {**self.fields.fields, **fields}
        return KlogLogger(merged, self.logger)

    def with_error(self, err: BaseException) -> Logger:
        return self.with_fields({"err": err})


def new(fields: Optional[Fields] = None) -> KlogLogger:
    """Create a logger with the given fields and the default backend."""
    return KlogLogger(fields)