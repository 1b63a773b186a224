"""
Process-wide logging for the order, inventory and notification services,
the fulfillment worker and the seed script.

One stdout handler on the root logger; each line carries the process name
given to setup_logging() so interleaved container logs stay readable. The
broker and HTTP client libraries are chatty at INFO (one line per frame or
request), so they are held at WARNING unless the process runs at DEBUG.
"""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(service_name)s %(name)s %(message)s"

_NOISY_LIBRARIES = ("aio_pika", "aiormq", "httpx", "httpcore")


class _ServiceFormatter(logging.Formatter):
    """Stamps every record with the process name unless it already has one."""

    def __init__(self, service_name: str, **kwargs: object) -> None:
        super().__init__(**kwargs)
        self._service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        record.service_name = getattr(record, "service_name", self._service_name)
        return super().format(record)


def _resolve_level(level: str | int) -> int:
    """
    Accept a level name from LOG_LEVEL or a logging constant. Unknown names fall back to INFO.

    >>> _resolve_level("warning") == logging.WARNING
    True
    >>> _resolve_level("LOUD") == logging.INFO
    True
    """
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(service_name: str, level: str | int = logging.INFO) -> None:
    """
    Configure the root logger for one process. Safe to call again (the
    lifespan hooks re-apply LOG_LEVEL after import-time setup).

    >>> setup_logging("order-service", "DEBUG")
    >>> logging.getLogger().level == logging.DEBUG
    True
    >>> setup_logging("order-service", "INFO")
    >>> logging.getLogger("aio_pika").level == logging.WARNING
    True
    """
    level = _resolve_level(level)
    root = logging.getLogger()
    root.setLevel(level)

    formatter = _ServiceFormatter(service_name, fmt=LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S")
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        root.addHandler(handler)
    for handler in root.handlers:
        handler.setFormatter(formatter)

    library_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in _NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(library_level)
