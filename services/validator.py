"""Minimal shape check applied before a reading is persisted."""

from __future__ import annotations

from typing import Any, Mapping

CORE_FIELDS = ("temperature", "TDS_Value", "latitude")


class ReadingValidator:
    """Accepts payloads carrying at least one core measurement.

    Ranges and types are not checked here; the store enforces the schema.
    A core field counts only when it is present and truthy, so a lone
    ``temperature: 0`` is treated as missing.
    """

    def __init__(self, core_fields: tuple[str, ...] = CORE_FIELDS) -> None:
        self.core_fields = core_fields

    def accept(self, payload: Mapping[str, Any]) -> bool:
        return any(payload.get(field) for field in self.core_fields)
