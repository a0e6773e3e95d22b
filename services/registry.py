"""Tracking of open duplex connections."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Iterator, Protocol, Set
from uuid import uuid4

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from services.errors import ConnectionSendError

logger = logging.getLogger(__name__)


class Connection(Protocol):
    connection_id: str

    @property
    def is_open(self) -> bool: ...

    async def send_text(self, data: str) -> None: ...


@dataclass(eq=False)
class SocketConnection:
    """A WebSocket peer, either a sensor device or a dashboard viewer."""

    websocket: WebSocket
    connection_id: str = field(default_factory=lambda: uuid4().hex)

    @property
    def is_open(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def send_text(self, data: str) -> None:
        try:
            await self.websocket.send_text(data)
        except (WebSocketDisconnect, RuntimeError, OSError) as exc:
            raise ConnectionSendError(
                f"Send to connection {self.connection_id} failed: {exc!r}"
            ) from exc


class ConnectionRegistry:
    """Set of currently registered connections; iteration order is unspecified."""

    def __init__(self) -> None:
        self._members: Set[Connection] = set()

    def connect(self, connection: Connection) -> None:
        self._members.add(connection)
        logger.debug(
            "Connection registered (%d open)",
            len(self._members),
            extra={"connection_id": connection.connection_id},
        )

    def disconnect(self, connection: Connection) -> None:
        self._members.discard(connection)
        logger.debug(
            "Connection unregistered (%d open)",
            len(self._members),
            extra={"connection_id": connection.connection_id},
        )

    def members(self) -> Set[Connection]:
        """Snapshot of the membership, safe to iterate across awaits."""
        return set(self._members)

    def clear(self) -> None:
        self._members.clear()

    def __len__(self) -> int:
        return len(self._members)

    def __contains__(self, connection: object) -> bool:
        return connection in self._members

    def __iter__(self) -> Iterator[Connection]:
        return iter(self.members())


@lru_cache
def build_default_registry() -> ConnectionRegistry:
    return ConnectionRegistry()
