from __future__ import annotations

from pathlib import Path
from typing import Iterable

import pytest

from datastore.reading_store import build_default_store
from services.broadcast import build_default_relay
from services.ingestion import build_default_coordinator
from services.registry import build_default_registry
from settings import get_settings

_CACHES = (
    get_settings,
    build_default_store,
    build_default_registry,
    build_default_relay,
    build_default_coordinator,
)


def _clear_caches(caches: Iterable) -> None:
    for cache in caches:
        cache.cache_clear()


@pytest.fixture(autouse=True)
def fresh_caches():
    _clear_caches(_CACHES)
    yield
    _clear_caches(_CACHES)


def test_defaults(monkeypatch) -> None:
    for name in (
        "READINGS_STORE_NAME",
        "READINGS_STORE_PATH",
        "APP_ENV",
        "READINGS_STORE_FAIL_FAST",
        "READINGS_RECENT_LIMIT",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = get_settings()

    assert settings.store_name == "readings"
    assert settings.store_path == "./tmp/readings.jsonl"
    assert settings.environment == "development"
    assert settings.store_fail_fast is False
    assert settings.recent_limit == 100
    assert settings.log_level == "INFO"


def test_environment_overrides_apply(monkeypatch, tmp_path) -> None:
    store_path = tmp_path / "readings.jsonl"

    monkeypatch.setenv("READINGS_STORE_NAME", "custom-readings")
    monkeypatch.setenv("READINGS_STORE_PATH", str(store_path))
    monkeypatch.setenv("READINGS_RECENT_LIMIT", "25")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    store = build_default_store()
    coordinator = build_default_coordinator()
    settings = get_settings()

    assert store.name == "custom-readings"
    assert store.persistence_path == Path(store_path)
    assert coordinator.store is store
    assert coordinator.relay is build_default_relay()
    assert coordinator.relay.registry is build_default_registry()
    assert settings.recent_limit == 25
    assert settings.log_level == "DEBUG"


def test_blank_store_path_keeps_readings_in_memory(monkeypatch) -> None:
    monkeypatch.setenv("READINGS_STORE_PATH", "  ")

    assert build_default_store().persistence_path is None


def test_production_defaults_to_fail_fast(monkeypatch) -> None:
    monkeypatch.setenv("APP_ENV", "Production")
    monkeypatch.delenv("READINGS_STORE_FAIL_FAST", raising=False)

    settings = get_settings()

    assert settings.is_production
    assert settings.store_fail_fast is True


def test_explicit_fail_fast_flag_wins(monkeypatch) -> None:
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("READINGS_STORE_FAIL_FAST", "off")

    assert get_settings().store_fail_fast is False


def test_invalid_values_fall_back_to_defaults(monkeypatch) -> None:
    monkeypatch.delenv("APP_ENV", raising=False)
    monkeypatch.setenv("READINGS_STORE_FAIL_FAST", "maybe")
    monkeypatch.setenv("READINGS_RECENT_LIMIT", "-3")

    settings = get_settings()

    assert settings.store_fail_fast is False
    assert settings.recent_limit == 100
