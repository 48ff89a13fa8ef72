from app.core.config import settings
from app.detectors.base import Detector, SignalSink
from app.detectors.host import Page
from app.detectors.scheduling import Scheduler
from app.utils.enums import EventType, SeverityLevel

DEVTOOLS_WIDTH_THRESHOLD = 200
DEVTOOLS_HEIGHT_THRESHOLD = 200
POLL_INTERVAL_MS = settings.DEVTOOLS_POLL_INTERVAL_MS


class DevtoolsDetector(Detector):
    """
    Infers a docked devtools panel from the gap between outer and inner window size.

    Approximate by nature; it samples on a timer and reports only the
    closed -> open transition.
    """

    def __init__(self, page: Page, sink: SignalSink, scheduler: Scheduler, interval_ms: float = POLL_INTERVAL_MS):
        super().__init__(sink)
        self.page = page
        self.scheduler = scheduler
        self.interval_ms = interval_ms
        self.is_open = False

    def _setup(self) -> None:
        self.is_open = False
        self._every(self.scheduler, self.interval_ms, self.sample)

    def sample(self) -> None:
        outer_w, outer_h = self.page.outer_size
        inner_w, inner_h = self.page.inner_size
        width_diff = outer_w - inner_w
        height_diff = outer_h - inner_h
        open_now = width_diff > DEVTOOLS_WIDTH_THRESHOLD or height_diff > DEVTOOLS_HEIGHT_THRESHOLD

        if open_now and not self.is_open:
            self._emit(
                EventType.DEVTOOLS_OPEN,
                SeverityLevel.CRITICAL,
                {"width_diff": width_diff, "height_diff": height_diff},
            )
        self.is_open = open_now
