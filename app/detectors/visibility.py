from app.detectors.base import Detector, SignalSink
from app.detectors.host import Page
from app.utils.enums import EventType, SeverityLevel


class VisibilityDetector(Detector):
    """Tab switches and window focus changes. Every transition is its own signal."""

    def __init__(self, page: Page, sink: SignalSink):
        super().__init__(sink)
        self.page = page

    def _setup(self) -> None:
        self._listen(self.page, "visibilitychange", self._on_visibility)
        self._listen(self.page, "blur", self._on_blur)
        self._listen(self.page, "focus", self._on_focus)

    def _on_visibility(self, event) -> None:
        if self.page.hidden:
            self._emit(EventType.TAB_SWITCH, SeverityLevel.HIGH)

    def _on_blur(self, event) -> None:
        self._emit(EventType.WINDOW_BLUR, SeverityLevel.MEDIUM)

    def _on_focus(self, event) -> None:
        self._emit(EventType.WINDOW_FOCUS, SeverityLevel.LOW)
