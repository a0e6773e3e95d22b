"""Tests for the per-message ingestion pipeline."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone

import pytest

from app.schemas import IngestStatus
from datastore.reading_store import ReadingStore
from services.broadcast import BroadcastRelay
from services.errors import DecodeError, RejectedReading, StoreUnavailable, ValidationFailure
from services.ingestion import IngestionCoordinator, decode_message
from services.registry import ConnectionRegistry
from services.validator import ReadingValidator

SAMPLE = {
    "temperature": 25.5,
    "TDS_Value": 450,
    "latitude": 31.9686,
    "longitude": 35.9163,
    "speed": 1.5,
}


class FakeConnection:
    def __init__(self, connection_id: str) -> None:
        self.connection_id = connection_id
        self.is_open = True
        self.sent: list[str] = []

    async def send_text(self, data: str) -> None:
        self.sent.append(data)


def _build(store: ReadingStore | None = None, *connections: FakeConnection):
    registry = ConnectionRegistry()
    for connection in connections:
        registry.connect(connection)
    store = store or ReadingStore(name="readings")
    coordinator = IngestionCoordinator(
        validator=ReadingValidator(),
        store=store,
        relay=BroadcastRelay(registry),
    )
    return coordinator, store


def test_decode_message_accepts_text_and_bytes() -> None:
    assert decode_message('{"temperature": 1.5}') == {"temperature": 1.5}
    assert decode_message(b'{"latitude": 2}') == {"latitude": 2}


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "",
        "[1, 2, 3]",
        "42",
        "null",
        '{"temperature": NaN}',
        '{"temperature": 20, "depth": 1e400}',
        '{"temperature": -1e400}',
        b"\xff\xfe",
    ],
)
def test_decode_message_rejects_malformed_frames(raw) -> None:
    with pytest.raises(DecodeError):
        decode_message(raw)


def test_valid_reading_is_stored_and_relayed_to_others() -> None:
    sender, viewer_b, viewer_c = FakeConnection("a"), FakeConnection("b"), FakeConnection("c")
    coordinator, store = _build(None, sender, viewer_b, viewer_c)
    sent_at = datetime.now(timezone.utc)

    outcome = asyncio.run(coordinator.handle(sender, json.dumps(SAMPLE)))

    assert outcome.status is IngestStatus.broadcast
    assert outcome.accepted
    assert outcome.recipients == 2
    assert outcome.reading is not None
    assert outcome.reading.timestamp >= sent_at
    assert sender.sent == []
    assert [json.loads(message) for message in viewer_b.sent] == [SAMPLE]
    assert [json.loads(message) for message in viewer_c.sent] == [SAMPLE]
    assert store.count() == 1


def test_broadcast_carries_the_payload_as_received() -> None:
    sender, viewer = FakeConnection("a"), FakeConnection("b")
    coordinator, _ = _build(None, sender, viewer)
    payload = {"temperature": 21.0, "device": "esp8266"}

    asyncio.run(coordinator.handle(sender, json.dumps(payload)))

    relayed = json.loads(viewer.sent[0])
    assert relayed == payload
    assert "timestamp" not in relayed
    assert "id" not in relayed


def test_incomplete_reading_is_neither_stored_nor_relayed() -> None:
    sender, viewer = FakeConnection("a"), FakeConnection("b")
    coordinator, store = _build(None, sender, viewer)

    outcome = asyncio.run(coordinator.handle(sender, json.dumps({"longitude": 35.9, "speed": 1.0})))

    assert outcome.status is IngestStatus.rejected
    assert isinstance(outcome.error, RejectedReading)
    assert store.count() == 0
    assert viewer.sent == []


def test_malformed_frame_is_rejected_without_side_effects(caplog) -> None:
    sender, viewer = FakeConnection("a"), FakeConnection("b")
    coordinator, store = _build(None, sender, viewer)

    with caplog.at_level(logging.WARNING, logger="services.ingestion"):
        outcome = asyncio.run(coordinator.handle(sender, "{broken"))

    assert outcome.status is IngestStatus.rejected
    assert isinstance(outcome.error, DecodeError)
    assert store.count() == 0
    assert viewer.sent == []
    assert any(getattr(record, "raw_message", None) == "{broken" for record in caplog.records)


def test_overflowing_number_is_never_relayed_as_infinity() -> None:
    sender, viewer = FakeConnection("a"), FakeConnection("b")
    coordinator, store = _build(None, sender, viewer)

    outcome = asyncio.run(coordinator.handle(sender, '{"temperature": 20, "depth": 1e400}'))

    assert outcome.status is IngestStatus.rejected
    assert isinstance(outcome.error, DecodeError)
    assert store.count() == 0
    assert viewer.sent == []


def test_out_of_range_reading_fails_without_broadcast(caplog) -> None:
    sender, viewer = FakeConnection("a"), FakeConnection("b")
    coordinator, store = _build(None, sender, viewer)

    with caplog.at_level(logging.ERROR, logger="services.ingestion"):
        outcome = asyncio.run(coordinator.handle(sender, json.dumps({"latitude": 200})))

    assert outcome.status is IngestStatus.failed
    assert isinstance(outcome.error, ValidationFailure)
    assert "latitude" in outcome.error.field_errors
    assert store.count() == 0
    assert viewer.sent == []
    records = [record for record in caplog.records if record.name == "services.ingestion"]
    assert any("latitude" in (getattr(record, "field_errors", None) or {}) for record in records)


def test_store_outage_drops_the_reading(tmp_path) -> None:
    sender, viewer = FakeConnection("a"), FakeConnection("b")
    coordinator, store = _build(ReadingStore(name="readings", persistence_path=tmp_path), sender, viewer)

    outcome = asyncio.run(coordinator.handle(sender, json.dumps(SAMPLE)))

    assert outcome.status is IngestStatus.failed
    assert isinstance(outcome.error, StoreUnavailable)
    assert viewer.sent == []
    assert store.count() == 0


def test_connection_keeps_working_after_a_bad_frame() -> None:
    sender, viewer = FakeConnection("a"), FakeConnection("b")
    coordinator, store = _build(None, sender, viewer)

    async def run() -> None:
        await coordinator.handle(sender, "garbage")
        await coordinator.handle(sender, json.dumps({"temperature": 19.0}))

    asyncio.run(run())

    assert store.count() == 1
    assert [json.loads(message) for message in viewer.sent] == [{"temperature": 19.0}]


def test_concurrent_senders_store_every_reading_once() -> None:
    connections = [FakeConnection(f"c{index}") for index in range(10)]
    coordinator, store = _build(None, *connections)

    async def send_batch(connection: FakeConnection, index: int) -> None:
        for offset in range(10):
            payload = {"temperature": 10 + offset, "latitude": index + 1}
            await coordinator.handle(connection, json.dumps(payload))

    async def run() -> None:
        await asyncio.gather(
            *(send_batch(connection, index) for index, connection in enumerate(connections))
        )

    asyncio.run(run())

    stored = store.scan()
    assert len(stored) == 100
    assert len({reading.id for reading in stored}) == 100
    # Each connection hears every reading except its own ten.
    assert all(len(connection.sent) == 90 for connection in connections)
