from typing import Optional

from app.detectors.base import SNAPSHOT_LIMIT, Detector, SignalSink
from app.detectors.host import InputElement
from app.detectors.scheduling import Clock
from app.utils.enums import EventType, SeverityLevel

CODE_PASTE_CHARS = 80
CRITICAL_CODE_PASTE_CHARS = 500

AI_BURST_CHARS = 200
RAPID_SOLUTION_CHARS = 150
RAPID_SOLUTION_WINDOW_MS = 30000
RAPID_SOLUTION_PRIOR_CHARS = 20

MONITORED_ATTRIBUTE = "data-monitored"


def is_devtools_shortcut(event) -> bool:
    key = event.key or ""
    if key == "F12":
        return True
    if event.ctrl_key and key.lower() == "u":
        return True
    return event.ctrl_key and event.shift_key and key.upper() in {"I", "J", "C"}


class CodeEditorDetector(Detector):
    """Anti-tamper heuristics for the coding editor."""

    def __init__(self, element: InputElement, sink: SignalSink, clock: Optional[Clock] = None):
        super().__init__(sink, clock)
        self.element = element
        self._first_keystroke_ms = 0.0
        self._last_code = ""

    def _setup(self) -> None:
        self._first_keystroke_ms = 0.0
        self._last_code = self.element.value

        self.element.attributes[MONITORED_ATTRIBUTE] = "true"
        self._on_cleanup(lambda: self.element.attributes.pop(MONITORED_ATTRIBUTE, None))

        self._listen(self.element, "contextmenu", self._on_context_menu)
        self._listen(self.element, "paste", self._on_paste)
        self._listen(self.element, "keydown", self._on_keydown)
        self._listen(self.element, "input", self._on_input)

    def _on_context_menu(self, event) -> None:
        event.prevent_default()
        self._emit(EventType.RIGHT_CLICK_ATTEMPT, SeverityLevel.LOW)

    def _on_paste(self, event) -> None:
        pasted = event.clipboard_text or ""
        if len(pasted) <= CODE_PASTE_CHARS:
            return

        severity = SeverityLevel.CRITICAL if len(pasted) > CRITICAL_CODE_PASTE_CHARS else SeverityLevel.HIGH
        self._emit(
            EventType.CODE_PASTE,
            severity,
            {"chars_pasted": len(pasted), "code_snapshot": pasted[:SNAPSHOT_LIMIT]},
        )

    def _on_keydown(self, event) -> None:
        if not is_devtools_shortcut(event):
            return

        event.prevent_default()
        self._emit(
            EventType.KEYBOARD_SHORTCUT_CHEAT,
            SeverityLevel.HIGH,
            {"key": event.key, "combo": f"ctrl:{event.ctrl_key} shift:{event.shift_key}"},
        )

    def _on_input(self, event) -> None:
        now = self._clock()
        code = self.element.value

        if not self._first_keystroke_ms and code:
            self._first_keystroke_ms = now

        elapsed = now - self._first_keystroke_ms if self._first_keystroke_ms else 0
        added = len(code) - len(self._last_code)

        if added > AI_BURST_CHARS and elapsed > 0:
            self._emit(
                EventType.AI_PATTERN_DETECTED,
                SeverityLevel.CRITICAL,
                {"chars_added": added, "code_snapshot": code[:SNAPSHOT_LIMIT]},
            )

        if (
            self._first_keystroke_ms
            and elapsed < RAPID_SOLUTION_WINDOW_MS
            and len(code) > RAPID_SOLUTION_CHARS
            and len(self._last_code) < RAPID_SOLUTION_PRIOR_CHARS
        ):
            self._emit(
                EventType.RAPID_SOLUTION,
                SeverityLevel.HIGH,
                {
                    "elapsed_ms": round(elapsed),
                    "char_count": len(code),
                    "code_snapshot": code[:SNAPSHOT_LIMIT],
                },
            )

        self._last_code = code
