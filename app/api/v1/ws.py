import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.realtime.connection import WebSocketConnection
from app.schemas.messages import ErrorMessage

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def session_socket(websocket: WebSocket):
    gateway = websocket.app.state.gateway

    await websocket.accept()
    connection = WebSocketConnection(websocket)
    logger.info("Socket connected: %s", connection.id)

    try:
        while True:
            text = await websocket.receive_text()
            try:
                payload = json.loads(text)
            except ValueError:
                await connection.deliver(ErrorMessage(message="Frames must be JSON").to_wire())
                continue

            await gateway.receive(connection, payload)
    except WebSocketDisconnect:
        pass
    finally:
        gateway.disconnect(connection)
        logger.info("Socket disconnected: %s", connection.id)
