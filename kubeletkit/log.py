"""Logger interface, a no-op logger and context-scoped logger lookup."""

from __future__ import annotations

import contextvars
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Mapping, Optional, Sequence

Fields = Mapping[str, Any]


class Logger(ABC):
    """Structured logger used throughout the package."""

    @abstractmethod
    def debug(self, *args: Any) -> None: ...

    @abstractmethod
    def debugf(self, fmt: str, *args: Any) -> None: ...

    @abstractmethod
    def info(self, *args: Any) -> None: ...

    @abstractmethod
    def infof(self, fmt: str, *args: Any) -> None: ...

    @abstractmethod
    def warn(self, *args: Any) -> None: ...

    @abstractmethod
    def warnf(self, fmt: str, *args: Any) -> None: ...

    @abstractmethod
    def error(self, *args: Any) -> None: ...

    @abstractmethod
    def errorf(self, fmt: str, *args: Any) -> None: ...

    @abstractmethod
    def fatal(self, *args: Any) -> None: ...

    @abstractmethod
    def fatalf(self, fmt: str, *args: Any) -> None: ...

    @abstractmethod
    def with_field(self, key: str, value: Any) -> "Logger": ...

    @abstractmethod
    def with_fields(self, fields: Fields) -> "Logger": ...

    @abstractmethod
    def with_error(self, err: BaseException) -> "Logger": ...


class NopLogger(Logger):
    """A logger that discards everything."""

    def debug(self, *args: Any) -> None:
        pass

    def debugf(self, fmt: str, *args: Any) -> None:
        pass

    def info(self, *args: Any) -> None:
        pass

    def infof(self, fmt: str, *args: Any) -> None:
        pass

    def warn(self, *args: Any) -> None:
        pass

    def warnf(self, fmt: str, *args: Any) -> None:
        pass

    def error(self, *args: Any) -> None:
        pass

    def errorf(self, fmt: str, *args: Any) -> None:
        pass

    def fatal(self, *args: Any) -> None:
        pass

    def fatalf(self, fmt: str, *args: Any) -> None:
        pass

    def with_field(self, key: str, value: Any) -> Logger:
        return self

    def with_fields(self, fields: Fields) -> Logger:
        return self

    def with_error(self, err: BaseException) -> Logger:
        return self


@dataclass
class _DefaultSlot:
    logger: Optional[Logger]


_current: contextvars.ContextVar[Optional[Logger]] = contextvars.ContextVar(
    "kubeletkit_logger", default=None
)
_default = _DefaultSlot(NopLogger())


@contextmanager
def with_logger(logger: Logger) -> Iterator[Logger]:
    """Make *logger* the current logger for the enclosed block."""
    token = _current.set(logger)
    try:
        yield logger
    finally:
        _current.reset(token)


def get_logger() -> Logger:
    """Return the current logger, falling back to the default logger."""
    logger = _current.get()
    if logger is not None:
        return logger
    if _default.logger is None:
        raise RuntimeError("default logger not initialized")
    return _default.logger


def set_default_logger(logger: Optional[Logger]) -> Optional[Logger]:
    """Replace the default logger and return the previous one."""
    previous = _default.logger
    _default.logger = logger
    return previous


def _sprint(args: Sequence[Any]) -> str:
    """Join operands, adding a space between two adjacent non-strings."""
    parts: list[str] = []
    prev_is_str = True
    for position, arg in enumerate(args):
        is_str = isinstance(arg, str)
        if position > 0 and not is_str and not prev_is_str:
            parts.append(" ")
        parts.append(str(arg))
        prev_is_str = is_str
    return "".join(parts)


def _sprintf(fmt: str, args: Sequence[Any]) -> str:
    """Apply printf-style formatting when arguments are given."""
    return fmt % tuple(args) if args else fmt