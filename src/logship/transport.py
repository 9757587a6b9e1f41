"""HTTP transports that deliver record batches to the ingestion endpoint."""

from __future__ import annotations

import gzip
import json
import logging
import time
import zlib
from datetime import date
from typing import Any, Dict, Optional, Tuple

import httpx

from .config import ShipperConfig
from .metrics import SEND_LATENCY, outcome_label

logger = logging.getLogger("logship.transport")

# compress_level -1 selects the zlib default.
DEFAULT_COMPRESS_LEVEL = 6


def resolve_index(name: str, daily: bool, today: Optional[date] = None) -> str:
    if not daily:
        return name
    today = today or date.today()
    return f"{name}_{today:%Y%m%d}"


def encode_body(payload: Any, compress: bool = False, level: int = -1) -> Tuple[bytes, bool]:
    """Serialize ``payload`` to JSON, gzip it when asked.

    Raises ``TypeError``, ``ValueError`` or ``RecursionError`` for payloads
    that cannot be serialized. A failed compression falls back to the raw
    body and reports ``False``.
    """
    data = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    if not compress:
        return data, False
    try:
        return gzip.compress(data, compresslevel=DEFAULT_COMPRESS_LEVEL if level == -1 else level), True
    except (OSError, ValueError, zlib.error) as exc:
        logger.warning("gzip compression failed, sending uncompressed: %s", exc)
        return data, False


class Transport:
    """Blocking delivery contract. ``send`` must never raise."""

    def send(self, payload: Any, destination: str) -> bool:  # pragma: no cover - interface
        raise NotImplementedError

    def close(self) -> None:  # pragma: no cover - optional override
        return None


class AsyncTransport:
    """Asyncio delivery contract. ``send`` must never raise."""

    async def send(self, payload: Any, destination: str) -> bool:  # pragma: no cover - interface
        raise NotImplementedError

    async def aclose(self) -> None:  # pragma: no cover - optional override
        return None


class _HttpRequestBuilder:
    def __init__(self, config: ShipperConfig, log: Optional[logging.Logger]) -> None:
        self._config = config
        self._logger = log or logger

    def _auth(self) -> Optional[httpx.BasicAuth]:
        if self._config.username is not None:
            return httpx.BasicAuth(self._config.username, self._config.password or "")
        return None

    def _path(self, destination: str) -> str:
        return f"/api/{self._config.organization}/{destination}/_json"

    def _prepare(self, payload: Any) -> Optional[Tuple[bytes, Dict[str, str]]]:
        try:
            body, compressed = encode_body(payload, self._config.compress, self._config.compress_level)
        except (TypeError, ValueError, RecursionError) as exc:
            self._logger.error("Failed to serialize payload: %s", exc)
            return None
        headers = {"Content-Type": "application/json"}
        if compressed:
            headers["Content-Encoding"] = "gzip"
        if self._config.token is not None:
            headers["Authorization"] = f"Basic {self._config.token}"
        return body, headers

    def _classify(self, response: httpx.Response, destination: str) -> bool:
        if response.status_code == 200:
            return True
        self._logger.error(
            "Ingestion request failed index=%s status=%s body=%s",
            destination,
            response.status_code,
            response.text,
        )
        return False


class HttpTransport(_HttpRequestBuilder, Transport):
    def __init__(
        self,
        config: ShipperConfig,
        *,
        transport: Optional[httpx.BaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(config, logger)
        self._client = httpx.Client(
            base_url=config.base_url,
            timeout=config.request_timeout,
            auth=self._auth(),
            transport=transport,
        )

    def send(self, payload: Any, destination: str) -> bool:
        prepared = self._prepare(payload)
        if prepared is None:
            return False
        body, headers = prepared
        if self._client.is_closed:
            self._logger.error("Transport is closed; cannot send to index=%s", destination)
            return False
        start = time.perf_counter()
        ok = False
        try:
            response = self._client.post(self._path(destination), content=body, headers=headers)
            ok = self._classify(response, destination)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            self._logger.error("Ingestion request to index=%s failed: %s", destination, exc)
        SEND_LATENCY.labels(outcome=outcome_label(ok)).observe(time.perf_counter() - start)
        return ok

    def close(self) -> None:
        self._client.close()


class AsyncHttpTransport(_HttpRequestBuilder, AsyncTransport):
    def __init__(
        self,
        config: ShipperConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(config, logger)
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.request_timeout,
            auth=self._auth(),
            transport=transport,
        )

    async def send(self, payload: Any, destination: str) -> bool:
        prepared = self._prepare(payload)
        if prepared is None:
            return False
        body, headers = prepared
        if self._client.is_closed:
            self._logger.error("Transport is closed; cannot send to index=%s", destination)
            return False
        start = time.perf_counter()
        ok = False
        try:
            response = await self._client.post(self._path(destination), content=body, headers=headers)
            ok = self._classify(response, destination)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            self._logger.error("Ingestion request to index=%s failed: %s", destination, exc)
        SEND_LATENCY.labels(outcome=outcome_label(ok)).observe(time.perf_counter() - start)
        return ok

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = [
    "Transport",
    "AsyncTransport",
    "HttpTransport",
    "AsyncHttpTransport",
    "encode_body",
    "resolve_index",
]
