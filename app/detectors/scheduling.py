import asyncio
import logging
import time
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)

Cancel = Callable[[], None]
Clock = Callable[[], float]


def monotonic_ms() -> float:
    return time.monotonic() * 1000


class Scheduler(Protocol):
    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> Cancel:
        ...

    def call_every(self, interval_ms: float, callback: Callable[[], None]) -> Cancel:
        ...


class LoopScheduler:
    """Timers on an asyncio event loop. Callback errors are logged, never raised."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> Cancel:
        handle = self.loop.call_later(delay_ms / 1000, self._guard(callback))
        return handle.cancel

    def call_every(self, interval_ms: float, callback: Callable[[], None]) -> Cancel:
        state = {"handle": None, "cancelled": False}
        guarded = self._guard(callback)

        def tick():
            if state["cancelled"]:
                return
            guarded()
            state["handle"] = self.loop.call_later(interval_ms / 1000, tick)

        state["handle"] = self.loop.call_later(interval_ms / 1000, tick)

        def cancel():
            state["cancelled"] = True
            if state["handle"] is not None:
                state["handle"].cancel()

        return cancel

    @staticmethod
    def _guard(callback: Callable[[], None]) -> Callable[[], None]:
        def run():
            try:
                callback()
            except Exception:
                logger.exception("Scheduled detector callback failed")

        return run
