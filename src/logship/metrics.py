"""Prometheus instruments shared by the shippers and transports."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

RECORDS_ENQUEUED = Counter("logship_records_enqueued_total", "Records accepted by the intake queue")
RECORDS_DROPPED = Counter("logship_records_dropped_total", "Records discarded before delivery", ["reason"])
SENDS = Counter("logship_sends_total", "Transport calls by trigger and outcome", ["trigger", "outcome"])
FLUSH_BATCH_SIZE = Histogram(
    "logship_flush_batch_size",
    "Number of records handed to the transport per flush",
    buckets=(1, 2, 4, 8, 16, 32, 64, 128, 256, 512, 1024),
)
SEND_LATENCY = Histogram("logship_send_latency_seconds", "Transport round-trip latency", ["outcome"])


def outcome_label(ok: bool) -> str:
    return "success" if ok else "failure"


__all__ = [
    "RECORDS_ENQUEUED",
    "RECORDS_DROPPED",
    "SENDS",
    "FLUSH_BATCH_SIZE",
    "SEND_LATENCY",
    "outcome_label",
]
