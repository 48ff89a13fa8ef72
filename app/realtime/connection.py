import logging
from uuid import uuid4

from fastapi import WebSocket
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)


class WebSocketConnection:
    """A hub member backed by one accepted WebSocket."""

    def __init__(self, websocket: WebSocket):
        self.id = f"ws_{uuid4().hex[:12]}"
        self.websocket = websocket

    async def deliver(self, message: dict) -> bool:
        if self.websocket.application_state != WebSocketState.CONNECTED:
            return False
        try:
            await self.websocket.send_json(message)
        except (RuntimeError, OSError) as e:
            logger.warning("Send to %s failed: %s", self.id, e)
            return False
        return True
