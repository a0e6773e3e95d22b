"""Exceptions raised along the ingestion path."""

from __future__ import annotations

from typing import Dict, Mapping

from pydantic import ValidationError


class IngestError(Exception):
    """Base class for failures that drop a single inbound message."""


class DecodeError(IngestError):
    """The wire payload could not be decoded into a JSON object."""


class RejectedReading(IngestError):
    """The payload decoded but carries none of the core measurements."""


class ValidationFailure(IngestError):
    """The payload violates the reading schema enforced by the store."""

    def __init__(self, field_errors: Mapping[str, str]) -> None:
        self.field_errors: Dict[str, str] = dict(field_errors)
        detail = "; ".join(f"{field}: {reason}" for field, reason in self.field_errors.items())
        super().__init__(detail or "Reading failed validation.")

    @classmethod
    def from_validation_error(cls, exc: ValidationError) -> "ValidationFailure":
        field_errors: Dict[str, str] = {}
        for error in exc.errors():
            field = ".".join(str(part) for part in error.get("loc", ())) or "__root__"
            # Keep the first message per field.
            field_errors.setdefault(field, error.get("msg", "invalid value"))
        return cls(field_errors)


class StoreUnavailable(IngestError):
    """The durable store cannot be opened or written."""


class ConnectionSendError(IngestError):
    """Sending a frame to a single peer connection failed."""
