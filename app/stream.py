from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from app.api import get_coordinator, get_registry
from services.ingestion import IngestionCoordinator
from services.registry import ConnectionRegistry, SocketConnection

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/")
@router.websocket("/ws")
async def telemetry_socket(
    websocket: WebSocket,
    coordinator: IngestionCoordinator = Depends(get_coordinator),
    registry: ConnectionRegistry = Depends(get_registry),
) -> None:
    """Duplex channel shared by sensor devices and dashboard viewers.

    Every frame is handed to the ingestion coordinator; nothing is sent back
    to the sender. Peers only ever receive readings relayed from others.
    """
    connection = SocketConnection(websocket)
    registry.connect(connection)
    try:
        await websocket.accept()
        logger.info("New connection established", extra={"connection_id": connection.connection_id})

        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes") or b""
            try:
                await coordinator.handle(connection, raw)
            except Exception:
                logger.exception(
                    "Error handling message",
                    extra={"connection_id": connection.connection_id},
                )
    except WebSocketDisconnect:
        pass
    finally:
        registry.disconnect(connection)
        logger.info("Connection closed", extra={"connection_id": connection.connection_id})
