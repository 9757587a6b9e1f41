"""Batching log shipper for HTTP ingestion endpoints."""

from .aio import AsyncLogShipper
from .config import ShipperConfig
from .handler import ShipperHandler
from .shipper import LogShipper
from .transport import AsyncHttpTransport, AsyncTransport, HttpTransport, Transport

__all__ = [
    "LogShipper",
    "AsyncLogShipper",
    "ShipperConfig",
    "ShipperHandler",
    "Transport",
    "AsyncTransport",
    "HttpTransport",
    "AsyncHttpTransport",
]
