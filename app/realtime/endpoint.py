"""
Client-side view of the transport: named channels with disposable handlers.

A presentation layer feeds server frames into ``dispatch`` and supplies a
``send`` coroutine that writes frames to the server. Outgoing frames are
queued and written in order by a single pump task.
"""
import asyncio
import inspect
import logging
from collections import defaultdict, deque
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

Handler = Callable[[dict], object]
Send = Callable[[dict], Awaitable[None]]


class EndpointBus:
    def __init__(self, send: Send):
        self._send = send
        self._handlers: dict[str, list[Handler]] = defaultdict(list)
        self._outbox: deque = deque()
        self._pump: Optional[asyncio.Task] = None

    def on(self, kind: str, handler: Handler) -> Callable[[], None]:
        self._handlers[kind].append(handler)

        def dispose():
            handlers = self._handlers.get(kind, [])
            if handler in handlers:
                handlers.remove(handler)

        return dispose

    def handler_count(self, kind: str) -> int:
        return len(self._handlers.get(kind, []))

    async def dispatch(self, message: dict) -> None:
        kind = message.get("type")
        for handler in list(self._handlers.get(kind, [])):
            try:
                result = handler(message)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Handler for %s failed", kind)

    def emit(self, message: dict) -> None:
        self._outbox.append(message)
        if self._pump is None or self._pump.done():
            self._pump = asyncio.get_running_loop().create_task(self._drain_outbox())

    async def _drain_outbox(self) -> None:
        while self._outbox:
            message = self._outbox.popleft()
            try:
                await self._send(message)
            except Exception:
                logger.exception("Failed to send %s", message.get("type"))

    async def flush(self) -> None:
        """Wait until every queued frame has been handed to ``send``."""
        while self._pump is not None and not self._pump.done():
            await self._pump
