"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from app.schemas import IngestStatus, Reading
from services.errors import IngestError


@dataclass(slots=True)
class IngestOutcome:
    """Where a single inbound message ended up."""

    status: IngestStatus
    reading: Optional[Reading] = None
    recipients: int = 0
    error: Optional[IngestError] = None

    @property
    def accepted(self) -> bool:
        return self.status is IngestStatus.broadcast
