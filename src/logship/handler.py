"""Bridge from the stdlib ``logging`` module to a shipper."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

_RESERVED_KEYS = ("_timestamp", "level", "logger", "message")
# The shipper's own loggers plus the HTTP stack it sends through.
_INTERNAL_LOGGERS = ("logship", "httpx", "httpcore")


def _is_internal(record: logging.LogRecord) -> bool:
    for name in _INTERNAL_LOGGERS:
        if record.name == name or record.name.startswith(name + "."):
            return True
    # anything a custom transport logs from the worker threads
    return (record.threadName or "").startswith("logship-")


class ShipperHandler(logging.Handler):
    """Turns ``logging.LogRecord`` objects into documents and enqueues them.

    Records emitted by the shipper's own loggers, by ``httpx``/``httpcore``
    and on the shipper's worker threads are skipped, so neither an overflow
    warning nor a request log line can feed back into the queue. Extra
    keys can be attached per call with ``extra={"fields": {...}}``.
    """

    def __init__(
        self,
        shipper: Any,
        level: int = logging.NOTSET,
        *,
        static_fields: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(level)
        self._shipper = shipper
        self._static_fields = dict(static_fields or {})

    def build_document(self, record: logging.LogRecord) -> Dict[str, Any]:
        document: Dict[str, Any] = dict(self._static_fields)
        fields = getattr(record, "fields", None)
        if isinstance(fields, Mapping):
            document.update(fields)
        for key in _RESERVED_KEYS:
            document.pop(key, None)
        document.update(
            {
                "_timestamp": int(record.created * 1_000_000),
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
            }
        )
        if record.exc_info:
            formatter = self.formatter or logging.Formatter()
            document["exception"] = formatter.formatException(record.exc_info)
        return document

    def emit(self, record: logging.LogRecord) -> None:
        if _is_internal(record):
            return
        try:
            self._shipper.enqueue(self.build_document(record))
        except Exception:
            self.handleError(record)


__all__ = ["ShipperHandler"]
