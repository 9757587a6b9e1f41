from __future__ import annotations

import pytest
from pydantic import ValidationError

from logship.config import ShipperConfig


def test_defaults_follow_full_size() -> None:
    cfg = ShipperConfig(url="http://localhost:5080/")

    assert cfg.full_size == 16
    assert cfg.intake_capacity == 32
    assert cfg.retention_limit == 160
    assert cfg.flush_interval == 0.0
    assert cfg.request_timeout == 10.0
    assert cfg.index_name == "open"
    assert cfg.organization == "default"
    assert cfg.base_url == "http://localhost:5080"


def test_explicit_sizes_override_defaults() -> None:
    cfg = ShipperConfig(url="http://x", full_size=4, queue_size=100, max_retained=8)

    assert cfg.intake_capacity == 100
    assert cfg.retention_limit == 8


@pytest.mark.parametrize("level", [-2, 10])
def test_out_of_range_compress_level_rejected(level: int) -> None:
    with pytest.raises(ValidationError):
        ShipperConfig(url="http://x", compress=True, compress_level=level)


@pytest.mark.parametrize(
    "overrides",
    [
        {"full_size": 0},
        {"flush_interval": -1},
        {"request_timeout": 0},
        {"full_size": 10, "queue_size": 5},
        {"full_size": 10, "max_retained": 9},
        {"username": "root"},
        {"password": "secret"},
        {"token": "abc", "username": "root", "password": "pw"},
        {"url": ""},
    ],
)
def test_invalid_combinations_rejected(overrides: dict) -> None:
    values = {"url": "http://x"}
    values.update(overrides)
    with pytest.raises(ValidationError):
        ShipperConfig(**values)


def test_config_is_immutable() -> None:
    cfg = ShipperConfig(url="http://x")
    with pytest.raises(ValidationError):
        cfg.full_size = 3  # type: ignore[misc]


def test_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOGSHIP_URL", "http://oo:5080")
    monkeypatch.setenv("LOGSHIP_INDEX", "app")
    monkeypatch.setenv("LOGSHIP_DAILY_INDEX", "true")
    monkeypatch.setenv("LOGSHIP_FULL_SIZE", "2")
    monkeypatch.setenv("LOGSHIP_FLUSH_INTERVAL", "3.5")
    monkeypatch.setenv("LOGSHIP_COMPRESS", "yes")
    monkeypatch.setenv("LOGSHIP_COMPRESS_LEVEL", "9")
    monkeypatch.setenv("LOGSHIP_TOKEN", "dG9rZW4=")
    monkeypatch.setenv("LOGSHIP_BATCHING", "0")

    cfg = ShipperConfig.from_env()

    assert cfg.url == "http://oo:5080"
    assert cfg.index_name == "app"
    assert cfg.daily_index is True
    assert cfg.full_size == 2
    assert cfg.flush_interval == 3.5
    assert cfg.compress is True
    assert cfg.compress_level == 9
    assert cfg.token == "dG9rZW4="
    assert cfg.batching is False


def test_from_env_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("URL", "INDEX", "FULL_SIZE", "TOKEN", "USERNAME", "PASSWORD"):
        monkeypatch.delenv(f"LOGSHIP_{name}", raising=False)

    cfg = ShipperConfig.from_env()
    assert cfg.url == "http://localhost:5080"
    assert cfg.full_size == 16
