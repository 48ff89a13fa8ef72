import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional

from app.detectors.host import EventTarget, Listener
from app.detectors.scheduling import Cancel, Clock, Scheduler, monotonic_ms
from app.schemas.event import BehaviorSignal
from app.utils.enums import EventType, SeverityLevel

logger = logging.getLogger(__name__)

SignalSink = Callable[[BehaviorSignal], None]

SNAPSHOT_LIMIT = 300


class DetectorStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    ACTIVE = "active"
    UNAVAILABLE = "unavailable"
    DETACHED = "detached"


class Detachment:
    """Handle returned by ``attach``. Detaching more than once is a no-op."""

    def __init__(self, detach: Callable[[], None]):
        self._detach = detach
        self._done = False

    @property
    def detached(self) -> bool:
        return self._done

    def detach(self) -> None:
        if self._done:
            return
        self._done = True
        self._detach()

    __call__ = detach


class Detector:
    """
    Base for all behavior detectors.

    Subclasses register listeners and timers in ``_setup`` through ``_listen``,
    ``_every`` and ``_later``; everything registered that way is undone on
    detach. Any exception raised by a listener or the signal sink is logged and
    contained so that the host page never sees it.
    """

    def __init__(self, sink: SignalSink, clock: Optional[Clock] = None):
        self._sink = sink
        self._clock = clock or monotonic_ms
        self._cleanups: list[Cancel] = []
        self._handle: Optional[Detachment] = None
        self.status = DetectorStatus.IDLE

    @property
    def attached(self) -> bool:
        return self._handle is not None and not self._handle.detached

    def attach(self) -> Detachment:
        if self.attached:
            return self._handle

        self._cleanups = []
        self.status = DetectorStatus.ACTIVE
        self._handle = Detachment(self._teardown)
        try:
            self._setup()
        except Exception:
            logger.exception("%s failed to attach", type(self).__name__)
            self._handle.detach()
            self.status = DetectorStatus.UNAVAILABLE
        return self._handle

    def detach(self) -> None:
        if self._handle is not None:
            self._handle.detach()

    def _setup(self) -> None:
        raise NotImplementedError

    def _teardown(self) -> None:
        while self._cleanups:
            cleanup = self._cleanups.pop()
            try:
                cleanup()
            except Exception:
                logger.exception("%s cleanup failed", type(self).__name__)
        if self.status != DetectorStatus.UNAVAILABLE:
            self.status = DetectorStatus.DETACHED

    def _on_cleanup(self, cleanup: Cancel) -> None:
        self._cleanups.append(cleanup)

    def _listen(self, target: EventTarget, event_type: str, listener: Listener) -> None:
        guarded = self._guard(listener)
        target.add_listener(event_type, guarded)
        self._on_cleanup(lambda: target.remove_listener(event_type, guarded))

    def _every(self, scheduler: Scheduler, interval_ms: float, callback: Callable[[], None]) -> None:
        self._on_cleanup(scheduler.call_every(interval_ms, self._guard(callback)))

    def _later(self, scheduler: Scheduler, delay_ms: float, callback: Callable[[], None]) -> Cancel:
        """One-shot timer; its cleanup is dropped once it fires or is cancelled."""
        guarded = self._guard(callback)

        def fire() -> None:
            self._forget(cancel)
            guarded()

        def cancel() -> None:
            self._forget(cancel)
            handle()

        handle = scheduler.call_later(delay_ms, fire)
        self._on_cleanup(cancel)
        return cancel

    def _forget(self, cleanup: Cancel) -> None:
        if cleanup in self._cleanups:
            self._cleanups.remove(cleanup)

    def _guard(self, callback):
        def run(*args):
            try:
                callback(*args)
            except Exception:
                logger.exception("%s callback failed", type(self).__name__)

        return run

    def _emit(
        self,
        event_type: EventType,
        severity: SeverityLevel,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        signal = BehaviorSignal(
            event_type=event_type.value,
            severity=severity,
            timestamp=datetime.now(timezone.utc),
            metadata=metadata,
        )
        try:
            self._sink(signal)
        except Exception:
            logger.exception("Signal sink rejected %s", event_type.value)


@contextmanager
def attached(*detectors: Detector):
    """Attach detectors for the duration of a block and always detach them."""
    handles = []
    try:
        for detector in detectors:
            handles.append(detector.attach())
        yield handles
    finally:
        for handle in reversed(handles):
            handle.detach()
