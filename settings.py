from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_STORE_NAME_ENV = "READINGS_STORE_NAME"
_STORE_PATH_ENV = "READINGS_STORE_PATH"
_ENVIRONMENT_ENV = "APP_ENV"
_FAIL_FAST_ENV = "READINGS_STORE_FAIL_FAST"
_RECENT_LIMIT_ENV = "READINGS_RECENT_LIMIT"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    store_name: str
    store_path: Optional[str]
    environment: str
    store_fail_fast: bool
    recent_limit: int
    log_level: str

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in _TRUE_VALUES:
        return True
    if candidate in _FALSE_VALUES:
        return False
    return default


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    environment = _read_str_env(_ENVIRONMENT_ENV, "development").lower()
    return Settings(
        store_name=_read_str_env(_STORE_NAME_ENV, "readings"),
        store_path=_read_optional_env(_STORE_PATH_ENV, "./tmp/readings.jsonl"),
        environment=environment,
        store_fail_fast=_read_bool_env(_FAIL_FAST_ENV, environment == "production"),
        recent_limit=_read_positive_int(_RECENT_LIMIT_ENV, 100),
        log_level=_read_log_level("INFO"),
    )
