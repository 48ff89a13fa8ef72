from collections import deque
from typing import Optional

from app.detectors.base import SNAPSHOT_LIMIT, Detector, SignalSink
from app.detectors.host import InputElement
from app.detectors.scheduling import Clock
from app.utils.enums import EventType, SeverityLevel

CRITICAL_PASTE_WORDS = 30
HIGH_PASTE_WORDS = 10

WORD_BURST_WORDS = 40
WORD_BURST_WINDOW_MS = 2000
FAST_TYPING_WPM = 150
LONG_DELAY_MS = 30000
LONG_DELAY_WORDS = 5

SPEED_WINDOW = 10


def count_words(text: str) -> int:
    return len(text.split())


def paste_severity(word_count: int) -> SeverityLevel:
    if word_count > CRITICAL_PASTE_WORDS:
        return SeverityLevel.CRITICAL
    if word_count > HIGH_PASTE_WORDS:
        return SeverityLevel.HIGH
    return SeverityLevel.MEDIUM


class AnswerBoxDetector(Detector):
    """Paste and typing-rhythm heuristics for the free-text answer box."""

    def __init__(self, element: InputElement, sink: SignalSink, clock: Optional[Clock] = None):
        super().__init__(sink, clock)
        self.element = element
        self._last_value = ""
        self._last_keyup_ms = 0.0
        self._speeds: deque = deque(maxlen=SPEED_WINDOW)

    def typing_speeds(self) -> list[float]:
        return list(self._speeds)

    def _setup(self) -> None:
        self._last_value = self.element.value
        self._last_keyup_ms = 0.0
        self._listen(self.element, "paste", self._on_paste)
        self._listen(self.element, "keyup", self._on_keyup)

    def _on_paste(self, event) -> None:
        pasted = event.clipboard_text or ""
        words = count_words(pasted)
        self._emit(
            EventType.PASTE_ATTEMPT,
            paste_severity(words),
            {"word_count": words, "text_snapshot": pasted[:SNAPSHOT_LIMIT]},
        )

    def _on_keyup(self, event) -> None:
        now = self._clock()
        value = self.element.value
        delta = count_words(value) - count_words(self._last_value)
        elapsed = now - self._last_keyup_ms

        if self._last_keyup_ms > 0 and elapsed > 0:
            wpm = (delta / elapsed) * 60000
            self._speeds.append(max(0.0, wpm))

            if delta > WORD_BURST_WORDS and elapsed < WORD_BURST_WINDOW_MS:
                self._emit(
                    EventType.WORD_BURST,
                    SeverityLevel.CRITICAL,
                    {"words_inserted": delta, "time_ms": round(elapsed)},
                )
            if wpm > FAST_TYPING_WPM:
                self._emit(EventType.TYPING_FAST, SeverityLevel.MEDIUM, {"wpm": round(wpm)})
            if elapsed > LONG_DELAY_MS and delta > LONG_DELAY_WORDS:
                self._emit(EventType.LONG_DELAY, SeverityLevel.MEDIUM, {"delay_ms": round(elapsed)})

        self._last_value = value
        self._last_keyup_ms = now
