"""Configuration objects for the log shipper."""

from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes", "on")


class ShipperConfig(BaseModel):
    """Immutable shipper settings, validated once at construction."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: str = Field(..., min_length=1)
    organization: str = Field("default", min_length=1)
    index_name: str = Field("open", min_length=1)
    daily_index: bool = False

    full_size: int = Field(16, ge=1)
    batching: bool = True
    flush_interval: float = Field(0.0, ge=0)
    request_timeout: float = Field(10.0, gt=0)
    queue_size: Optional[int] = Field(None, ge=1)
    max_retained: Optional[int] = Field(None, ge=1)
    poll_interval: float = Field(0.1, gt=0)

    compress: bool = False
    compress_level: int = Field(-1, ge=-1, le=9)

    username: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None

    @model_validator(mode="after")
    def _check_consistency(self) -> "ShipperConfig":
        if self.queue_size is not None and self.queue_size < self.full_size:
            raise ValueError("queue_size must be at least full_size")
        if self.max_retained is not None and self.max_retained < self.full_size:
            raise ValueError("max_retained must be at least full_size")
        if (self.username is None) != (self.password is None):
            raise ValueError("username and password must be set together")
        if self.token is not None and self.username is not None:
            raise ValueError("token and basic auth credentials are mutually exclusive")
        return self

    @property
    def intake_capacity(self) -> int:
        # Headroom so a burst arriving during a flush does not overflow at once.
        return self.queue_size if self.queue_size is not None else self.full_size * 2

    @property
    def retention_limit(self) -> int:
        return self.max_retained if self.max_retained is not None else self.full_size * 10

    @property
    def base_url(self) -> str:
        return self.url.rstrip("/")

    @classmethod
    def from_env(cls, prefix: str = "LOGSHIP_") -> "ShipperConfig":
        env = os.environ

        def get(name: str) -> Optional[str]:
            value = env.get(prefix + name)
            return value if value not in (None, "") else None

        values: dict = {"url": get("URL") or "http://localhost:5080"}
        for key, name in (
            ("organization", "ORGANIZATION"),
            ("index_name", "INDEX"),
            ("username", "USERNAME"),
            ("password", "PASSWORD"),
            ("token", "TOKEN"),
        ):
            raw = get(name)
            if raw is not None:
                values[key] = raw
        for key, name in (
            ("full_size", "FULL_SIZE"),
            ("queue_size", "QUEUE_SIZE"),
            ("max_retained", "MAX_RETAINED"),
            ("compress_level", "COMPRESS_LEVEL"),
        ):
            raw = get(name)
            if raw is not None:
                values[key] = int(raw)
        for key, name in (
            ("flush_interval", "FLUSH_INTERVAL"),
            ("request_timeout", "REQUEST_TIMEOUT"),
        ):
            raw = get(name)
            if raw is not None:
                values[key] = float(raw)
        for key, name in (
            ("daily_index", "DAILY_INDEX"),
            ("batching", "BATCHING"),
            ("compress", "COMPRESS"),
        ):
            raw = get(name)
            if raw is not None:
                values[key] = _parse_bool(raw)

        return cls(**values)


__all__ = ["ShipperConfig"]
