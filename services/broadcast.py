"""Fan-out of accepted readings to connected peers."""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Any, Mapping, Optional

from services.errors import ConnectionSendError
from services.registry import Connection, ConnectionRegistry, build_default_registry

logger = logging.getLogger(__name__)


class BroadcastRelay:
    """Sends a payload to every open registry member except its originator."""

    def __init__(self, registry: ConnectionRegistry) -> None:
        self.registry = registry

    async def broadcast(self, originator: Optional[Connection], payload: Mapping[str, Any]) -> int:
        message = json.dumps(payload, separators=(",", ":"))
        sent = 0
        for member in self.registry.members():
            if member is originator or not member.is_open:
                continue
            try:
                await member.send_text(message)
            except ConnectionSendError as exc:
                logger.warning(
                    "Skipping peer after failed send",
                    extra={"connection_id": member.connection_id, "reason": str(exc)},
                )
                continue
            sent += 1

        logger.info(
            "Broadcasted to %d connected clients",
            sent,
            extra={
                "connection_id": getattr(originator, "connection_id", None),
                "recipients": sent,
            },
        )
        return sent


@lru_cache
def build_default_relay() -> BroadcastRelay:
    return BroadcastRelay(registry=build_default_registry())
