import logging
from typing import Optional

from app.detectors.base import Detector, SignalSink
from app.detectors.host import Page
from app.detectors.scheduling import Cancel, Scheduler
from app.utils.enums import EventType, SeverityLevel

logger = logging.getLogger(__name__)

# Give the host time to settle before asking for fullscreen again
REENTER_DELAY_MS = 300


class FullscreenDetector(Detector):
    """
    Enforces fullscreen for the candidate.

    Call ``exit_intentionally`` before tearing the interview down so that the
    resulting exit is not reported or undone.
    """

    def __init__(self, page: Page, sink: SignalSink, scheduler: Scheduler, enter_on_attach: bool = True):
        super().__init__(sink)
        self.page = page
        self.scheduler = scheduler
        self.enter_on_attach = enter_on_attach
        self._intentional = False
        self._reenter: Optional[Cancel] = None

    def _setup(self) -> None:
        self._intentional = False
        self._reenter = None
        self._listen(self.page, "fullscreenchange", self._on_change)
        if self.enter_on_attach:
            self.enter()

    def enter(self) -> bool:
        try:
            self.page.request_fullscreen()
        except Exception as e:
            # Hosts may refuse without a user gesture; retried on the next exit
            logger.warning("Fullscreen request failed: %s", e)
            return False
        return True

    def exit_intentionally(self) -> None:
        self._intentional = True
        try:
            self.page.exit_fullscreen()
        except Exception as e:
            logger.warning("Fullscreen exit failed: %s", e)

    def _on_change(self, event) -> None:
        if self.page.fullscreen:
            self._emit(EventType.FULLSCREEN_ENTER, SeverityLevel.LOW)
            return

        if self._intentional:
            self._intentional = False
            return

        self._emit(EventType.FULLSCREEN_EXIT, SeverityLevel.HIGH)
        if self._reenter is not None:
            self._reenter()
        self._reenter = self._later(self.scheduler, REENTER_DELAY_MS, self._reenter_now)

    def _reenter_now(self) -> None:
        self._reenter = None
        self.enter()
