"""Logging utilities for txthook."""

import logging
import sys
import time
from contextvars import ContextVar, Token

_root = logging.getLogger("txthook")
_root.addHandler(logging.NullHandler())

# Hostname of the challenge being processed, attached to log records as extra
_current_hostname: ContextVar[str | None] = ContextVar("current_hostname", default=None)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def set_hostname(hostname: str | None) -> Token[str | None]:
    """Set the current challenge hostname for logging context.

    Args:
        hostname: Hostname whose challenge is being processed.

    Returns:
        Token to reset the context.
    """
    return _current_hostname.set(hostname)


def reset_hostname(token: Token[str | None]) -> None:
    """Reset hostname context.

    Args:
        token: Token from set_hostname() call.
    """
    _current_hostname.reset(token)


def get_hostname_extra() -> dict[str, str]:
    """Get hostname info for log extra fields.

    Returns:
        Dict with 'hostname', or empty dict when no challenge is active.
    """
    hostname = _current_hostname.get()
    if hostname is None:
        return {}
    return {"hostname": hostname}


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the txthook namespace.

    Args:
        name: The module name (typically __name__).

    Returns:
        A logger instance for the module.
    """
    return logging.getLogger(name)


def configure_cli_logging(level: int | str = logging.INFO) -> logging.Handler:
    """Attach a stderr handler to the txthook logger.

    The ACME client captures the hook's stderr, so that is where
    progress and failures go when running as an executable.

    Args:
        level: Level name or number for the txthook logger.

    Returns:
        The installed handler.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    _root.addHandler(handler)
    _root.setLevel(level)
    return handler


class Timer:
    """Context manager for timing operations.

    Usage:
        with Timer() as t:
            # do work
        print(f"Elapsed: {t.elapsed_ms}ms")
    """

    def __init__(self) -> None:
        self.elapsed_ms: float = 0
        self._start: float = 0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, *args: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000
