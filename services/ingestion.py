"""Per-message orchestration: decode, validate, persist, broadcast."""

from __future__ import annotations

import json
import logging
import math
from functools import lru_cache
from typing import Any, Dict, Optional, Union

from fastapi.concurrency import run_in_threadpool

from app.schemas import IngestStatus
from datastore.reading_store import ReadingStore, build_default_store
from models.records import IngestOutcome
from services.broadcast import BroadcastRelay, build_default_relay
from services.errors import DecodeError, RejectedReading, StoreUnavailable, ValidationFailure
from services.registry import Connection
from services.validator import ReadingValidator

logger = logging.getLogger(__name__)

RawMessage = Union[str, bytes, bytearray]

_PREVIEW_LENGTH = 200


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Unsupported JSON constant {name}")


def _parse_finite_float(literal: str) -> float:
    value = float(literal)
    if not math.isfinite(value):
        raise ValueError(f"Number {literal} is out of range")
    return value


def decode_message(raw_message: RawMessage) -> Dict[str, Any]:
    """Decode a wire frame into a JSON object."""
    if isinstance(raw_message, (bytes, bytearray)):
        try:
            text = bytes(raw_message).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError("Message is not valid UTF-8.") from exc
    else:
        text = raw_message

    try:
        payload = json.loads(text, parse_constant=_reject_constant, parse_float=_parse_finite_float)
    except ValueError as exc:
        raise DecodeError(f"Invalid JSON received: {exc}") from exc

    if not isinstance(payload, dict):
        raise DecodeError(f"Expected a JSON object, got {type(payload).__name__}.")
    return payload


def _preview(raw_message: RawMessage) -> str:
    if isinstance(raw_message, (bytes, bytearray)):
        text = bytes(raw_message).decode("utf-8", errors="replace")
    else:
        text = raw_message
    if len(text) > _PREVIEW_LENGTH:
        return text[:_PREVIEW_LENGTH] + "..."
    return text


class IngestionCoordinator:
    """Runs one inbound message to completion and contains its failures.

    A message ends in one of three states: ``broadcast`` after it was stored
    and relayed, ``rejected`` when it could not be decoded or carried no core
    measurement, or ``failed`` when the store refused it. None of these
    affect the connection that sent it. The broadcast carries the decoded
    payload as received, so server-assigned fields stay out of it.
    """

    def __init__(
        self,
        validator: ReadingValidator,
        store: ReadingStore,
        relay: BroadcastRelay,
    ) -> None:
        self.validator = validator
        self.store = store
        self.relay = relay

    async def handle(self, connection: Optional[Connection], raw_message: RawMessage) -> IngestOutcome:
        connection_id = getattr(connection, "connection_id", None)
        try:
            payload = decode_message(raw_message)
            logger.debug(
                "Received sensor data: temperature=%s TDS=%s location=%s, %s",
                payload.get("temperature"),
                payload.get("TDS_Value"),
                payload.get("latitude"),
                payload.get("longitude"),
                extra={"connection_id": connection_id},
            )
            if not self.validator.accept(payload):
                raise RejectedReading("Incomplete sensor data received.")
            # Only suspension point; the store serializes concurrent writers.
            reading = await run_in_threadpool(self.store.persist, payload)
        except (DecodeError, RejectedReading) as exc:
            logger.warning(
                "Dropping message: %s",
                exc,
                extra={"connection_id": connection_id, "raw_message": _preview(raw_message)},
            )
            return IngestOutcome(status=IngestStatus.rejected, error=exc)
        except ValidationFailure as exc:
            logger.error(
                "Reading failed schema validation",
                extra={"connection_id": connection_id, "field_errors": exc.field_errors},
            )
            return IngestOutcome(status=IngestStatus.failed, error=exc)
        except StoreUnavailable as exc:
            logger.error(
                "Reading dropped because the store is unavailable",
                extra={"connection_id": connection_id, "reason": str(exc)},
            )
            return IngestOutcome(status=IngestStatus.failed, error=exc)

        logger.info(
            "Sensor data saved",
            extra={"connection_id": connection_id, "reading_id": reading.id},
        )
        recipients = await self.relay.broadcast(connection, payload)
        return IngestOutcome(status=IngestStatus.broadcast, reading=reading, recipients=recipients)


@lru_cache
def build_default_coordinator() -> IngestionCoordinator:
    """Factory that wires the coordinator with the default store and relay."""
    return IngestionCoordinator(
        validator=ReadingValidator(),
        store=build_default_store(),
        relay=build_default_relay(),
    )
