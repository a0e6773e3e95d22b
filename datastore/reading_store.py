from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any, Callable, List, Mapping, Optional
from uuid import uuid4

from pydantic import ValidationError

from app.schemas import DERIVED_READING_FIELDS, Reading
from services.errors import StoreUnavailable, ValidationFailure
from settings import get_settings

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ReadingStore:
    """Append-only reading collection, optionally backed by a JSON Lines file."""

    def __init__(
        self,
        name: str,
        persistence_path: Optional[Path] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.name = name
        self.persistence_path = persistence_path
        self.available = True
        self._items: List[Reading] = []
        self._clock = clock
        self._last_timestamp: Optional[datetime] = None
        self._lock = Lock()
        if persistence_path:
            self._load_from_disk()

    def check_available(self) -> None:
        """Make sure the backing file can be created and appended to."""
        if not self.persistence_path:
            return
        with self._lock:
            try:
                self.persistence_path.parent.mkdir(parents=True, exist_ok=True)
                with self.persistence_path.open("a", encoding="utf-8"):
                    pass
            except OSError as exc:
                self.available = False
                raise StoreUnavailable(
                    f"Reading store {self.name!r} cannot open {self.persistence_path}: {exc}"
                ) from exc
            self.available = True

    def persist(self, payload: Mapping[str, Any]) -> Reading:
        """Validate and append a reading, stamping it with a server arrival time."""
        with self._lock:
            timestamp = self._next_timestamp()
            candidate = {**payload, "id": str(uuid4()), "timestamp": timestamp}
            try:
                reading = Reading.model_validate(candidate)
            except ValidationError as exc:
                raise ValidationFailure.from_validation_error(exc) from exc

            self._append(reading)
            self._items.append(reading)
            self._last_timestamp = timestamp
            return reading.model_copy(deep=True)

    def get(self, reading_id: str) -> Optional[Reading]:
        with self._lock:
            for reading in self._items:
                if reading.id == reading_id:
                    return reading.model_copy(deep=True)
        return None

    def recent(self, limit: int) -> list[Reading]:
        """Return up to ``limit`` readings, newest first."""
        if limit <= 0:
            return []
        with self._lock:
            ordered = sorted(reversed(self._items), key=lambda item: item.timestamp, reverse=True)
            return [item.model_copy(deep=True) for item in ordered[:limit]]

    def between(self, start: datetime, end: datetime) -> list[Reading]:
        """Return readings with ``start <= timestamp <= end``, newest first."""
        lower, upper = as_utc(start), as_utc(end)
        with self._lock:
            matching = [item for item in reversed(self._items) if lower <= item.timestamp <= upper]
        matching.sort(key=lambda item: item.timestamp, reverse=True)
        return [item.model_copy(deep=True) for item in matching]

    def scan(self) -> list[Reading]:
        """Return deep copies of all stored readings in insertion order."""

        with self._lock:
            return [item.model_copy(deep=True) for item in self._items]

    def count(self) -> int:
        with self._lock:
            return len(self._items)

    def _next_timestamp(self) -> datetime:
        now = as_utc(self._clock())
        if self._last_timestamp is not None and now < self._last_timestamp:
            return self._last_timestamp
        return now

    def _append(self, reading: Reading) -> None:
        if not self.persistence_path:
            return
        line = json.dumps(
            reading.model_dump(mode="json", by_alias=True, exclude=set(DERIVED_READING_FIELDS))
        )
        try:
            self.persistence_path.parent.mkdir(parents=True, exist_ok=True)
            with self.persistence_path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        except OSError as exc:
            self.available = False
            raise StoreUnavailable(
                f"Reading store {self.name!r} failed to write {self.persistence_path}: {exc}"
            ) from exc
        self.available = True

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            lines = self.persistence_path.read_text(encoding="utf-8").splitlines()
        except OSError as exc:
            logger.warning(
                "Could not read existing readings",
                extra={"store_path": str(self.persistence_path), "reason": str(exc)},
            )
            return

        for line_number, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                reading = Reading.model_validate(json.loads(line))
            except (json.JSONDecodeError, ValidationError):
                logger.warning(
                    "Skipping unreadable stored reading on line %d",
                    line_number,
                    extra={"store_path": str(self.persistence_path)},
                )
                continue
            reading.timestamp = as_utc(reading.timestamp)
            self._items.append(reading)
            if self._last_timestamp is None or reading.timestamp > self._last_timestamp:
                self._last_timestamp = reading.timestamp


@lru_cache
def build_default_store(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> ReadingStore:
    settings = get_settings()
    store_name = settings.store_name if name is None else name
    store_path = settings.store_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return ReadingStore(name=store_name, persistence_path=persistence)
