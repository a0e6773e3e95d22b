from __future__ import annotations

import logging

from logging_config import ContextualFormatter


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("services.ingestion", logging.INFO, __file__, 1, "Sensor data saved", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_appends_known_context() -> None:
    formatter = ContextualFormatter(fmt="%(message)s")

    line = formatter.format(_record(connection_id="abc", reading_id="r-1", unrelated="skip"))

    assert line == "Sensor data saved | connection_id=abc reading_id=r-1"


def test_formatter_flattens_field_errors() -> None:
    formatter = ContextualFormatter(fmt="%(message)s")

    line = formatter.format(_record(field_errors={"latitude": "too large", "speed": "negative"}))

    assert line.endswith("field_errors=latitude:too large,speed:negative")


def test_formatter_without_context_leaves_message_untouched() -> None:
    formatter = ContextualFormatter(fmt="%(levelname)s %(message)s")

    assert formatter.format(_record()) == "INFO Sensor data saved"
