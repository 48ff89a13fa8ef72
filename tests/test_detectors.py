"""
Tests for behavior detectors

Detectors run against fake host handles and a manual scheduler, so every
timing condition is deterministic.
"""
import pytest

from app.ai.face_monitor import FaceObservation
from app.detectors.answer_box import AnswerBoxDetector, paste_severity
from app.detectors.base import DetectorStatus, attached
from app.detectors.code_editor import MONITORED_ATTRIBUTE, CodeEditorDetector
from app.detectors.devtools import DevtoolsDetector
from app.detectors.face import FaceGazeDetector, FaceStatus, gaze_offset_ratio, is_gaze_away
from app.detectors.fullscreen import FullscreenDetector
from app.detectors.host import HostEvent, InputElement, Page
from app.detectors.visibility import VisibilityDetector


def types(signals):
    return [signal.event_type for signal in signals]


def words(n):
    return " ".join(["word"] * n)


class TestDetachment:
    """Lifecycle shared by every detector"""

    def test_double_detach_is_noop(self, signals):
        page = Page()
        detector = VisibilityDetector(page, signals.append)

        handle = detector.attach()
        assert page.listener_count() == 3

        handle.detach()
        handle.detach()
        detector.detach()

        assert page.listener_count() == 0
        assert detector.status == DetectorStatus.DETACHED

    def test_attach_twice_returns_same_handle(self, signals):
        detector = VisibilityDetector(Page(), signals.append)
        assert detector.attach() is detector.attach()

    def test_nothing_emitted_after_detach(self, signals):
        page = Page()
        detector = VisibilityDetector(page, signals.append)
        detector.attach().detach()

        page.set_hidden(True)
        page.dispatch(HostEvent("blur"))

        assert signals == []

    def test_attached_block_always_detaches(self, signals, scheduler):
        page = Page()
        devtools = DevtoolsDetector(page, signals.append, scheduler)

        with pytest.raises(RuntimeError):
            with attached(VisibilityDetector(page, signals.append), devtools):
                assert scheduler.active_count() == 1
                raise RuntimeError("boom")

        assert page.listener_count() == 0
        assert scheduler.active_count() == 0

    def test_sink_errors_do_not_reach_host(self):
        page = Page()

        def broken_sink(signal):
            raise RuntimeError("transport down")

        VisibilityDetector(page, broken_sink).attach()
        page.set_hidden(True)


class TestVisibilityDetector:

    def test_transitions(self, signals):
        page = Page()
        VisibilityDetector(page, signals.append).attach()

        page.set_hidden(True)
        page.set_hidden(False)
        page.dispatch(HostEvent("blur"))
        page.dispatch(HostEvent("focus"))

        assert types(signals) == ["tab_switch", "window_blur", "window_focus"]
        assert [s.severity.value for s in signals] == ["high", "medium", "low"]


class TestFullscreenDetector:
    """Fullscreen enforcement"""

    def make(self, signals, scheduler):
        requests = []
        page = Page(request_fullscreen=lambda: requests.append("enter"), exit_fullscreen=lambda: None)
        detector = FullscreenDetector(page, signals.append, scheduler)
        return page, detector, requests

    def test_requests_fullscreen_on_attach(self, signals, scheduler):
        page, detector, requests = self.make(signals, scheduler)
        detector.attach()
        assert requests == ["enter"]

    def test_unintended_exit_reports_and_reenters(self, signals, scheduler):
        page, detector, requests = self.make(signals, scheduler)
        detector.attach()

        page.set_fullscreen(True)
        page.set_fullscreen(False)

        assert types(signals) == ["fullscreen_enter", "fullscreen_exit"]
        assert signals[-1].severity.value == "high"

        scheduler.advance(299)
        assert requests == ["enter"]
        scheduler.advance(1)
        assert requests == ["enter", "enter"]

    def test_intentional_exit_is_silent(self, signals, scheduler):
        page, detector, requests = self.make(signals, scheduler)
        detector.attach()
        page.set_fullscreen(True)

        detector.exit_intentionally()
        page.set_fullscreen(False)
        scheduler.advance(1000)

        assert types(signals) == ["fullscreen_enter"]
        assert requests == ["enter"]

    def test_detach_cancels_pending_reentry(self, signals, scheduler):
        page, detector, requests = self.make(signals, scheduler)
        detector.attach()
        page.set_fullscreen(False)

        detector.detach()
        scheduler.advance(1000)

        assert requests == ["enter"]

    def test_repeated_exits_keep_one_pending_reentry(self, signals, scheduler):
        page, detector, requests = self.make(signals, scheduler)
        detector.attach()

        for _ in range(5):
            page.set_fullscreen(True)
            page.set_fullscreen(False)

        assert scheduler.active_count() == 1
        scheduler.advance(300)
        assert requests == ["enter", "enter"]
        assert scheduler.active_count() == 0

    def test_fired_reentries_are_not_retained(self, signals, scheduler):
        page, detector, requests = self.make(signals, scheduler)
        detector.attach()

        for _ in range(5):
            page.set_fullscreen(True)
            page.set_fullscreen(False)
            scheduler.advance(300)

        assert len(requests) == 6
        # Only the fullscreenchange listener is left to undo
        assert len(detector._cleanups) == 1

    def test_unsupported_host_does_not_raise(self, signals, scheduler):
        detector = FullscreenDetector(Page(), signals.append, scheduler)
        detector.attach()

        assert detector.status == DetectorStatus.ACTIVE
        assert detector.enter() is False


class TestAnswerBoxDetector:
    """Paste and typing rhythm"""

    @pytest.mark.parametrize("count,severity", [
        (31, "critical"),
        (30, "high"),
        (11, "high"),
        (10, "medium"),
        (0, "medium"),
    ])
    def test_paste_severity(self, count, severity):
        assert paste_severity(count).value == severity

    def test_paste_metadata(self, signals, scheduler):
        box = InputElement()
        AnswerBoxDetector(box, signals.append, scheduler.clock).attach()

        text = words(31) + " " + "z" * 400
        box.dispatch(HostEvent("paste", clipboard_text=text))

        assert types(signals) == ["paste_attempt"]
        assert signals[0].severity.value == "critical"
        assert signals[0].metadata["word_count"] == 32
        assert len(signals[0].metadata["text_snapshot"]) == 300

    def test_first_keyup_only_records(self, signals, scheduler):
        box = InputElement()
        detector = AnswerBoxDetector(box, signals.append, scheduler.clock)
        detector.attach()

        box.value = words(50)
        box.dispatch(HostEvent("keyup"))

        assert signals == []
        assert detector.typing_speeds() == []

    def test_word_burst(self, signals, scheduler):
        box = InputElement()
        AnswerBoxDetector(box, signals.append, scheduler.clock).attach()
        box.dispatch(HostEvent("keyup"))

        scheduler.advance(1000)
        box.value = words(41)
        box.dispatch(HostEvent("keyup"))

        burst = [s for s in signals if s.event_type == "word_burst"]
        assert len(burst) == 1
        assert burst[0].severity.value == "critical"
        assert burst[0].metadata == {"words_inserted": 41, "time_ms": 1000}
        assert "typing_fast" in types(signals)

    def test_slow_large_insert_is_long_delay(self, signals, scheduler):
        box = InputElement()
        AnswerBoxDetector(box, signals.append, scheduler.clock).attach()
        box.dispatch(HostEvent("keyup"))

        scheduler.advance(31000)
        box.value = words(6)
        box.dispatch(HostEvent("keyup"))

        assert types(signals) == ["long_delay"]
        assert signals[0].metadata == {"delay_ms": 31000}

    def test_normal_typing_is_quiet(self, signals, scheduler):
        box = InputElement()
        detector = AnswerBoxDetector(box, signals.append, scheduler.clock)
        detector.attach()
        box.dispatch(HostEvent("keyup"))

        for n in range(1, 15):
            scheduler.advance(1000)
            box.value = words(n)
            box.dispatch(HostEvent("keyup"))

        assert signals == []
        assert len(detector.typing_speeds()) == 10


class TestCodeEditorDetector:
    """Anti-tamper heuristics"""

    def attach(self, signals, scheduler, value=""):
        editor = InputElement(value)
        detector = CodeEditorDetector(editor, signals.append, scheduler.clock)
        detector.attach()
        return editor, detector

    def test_marks_and_unmarks_editor(self, signals, scheduler):
        editor, detector = self.attach(signals, scheduler)
        assert editor.attributes[MONITORED_ATTRIBUTE] == "true"

        detector.detach()
        assert MONITORED_ATTRIBUTE not in editor.attributes

    def test_context_menu_is_blocked(self, signals, scheduler):
        editor, _ = self.attach(signals, scheduler)

        event = editor.dispatch(HostEvent("contextmenu"))

        assert event.default_prevented
        assert types(signals) == ["right_click_attempt"]

    @pytest.mark.parametrize("length,expected", [
        (80, None),
        (81, "high"),
        (500, "high"),
        (501, "critical"),
    ])
    def test_code_paste_thresholds(self, signals, scheduler, length, expected):
        editor, _ = self.attach(signals, scheduler)
        editor.dispatch(HostEvent("paste", clipboard_text="x" * length))

        if expected is None:
            assert signals == []
        else:
            assert signals[0].event_type == "code_paste"
            assert signals[0].severity.value == expected
            assert signals[0].metadata["chars_pasted"] == length
            assert len(signals[0].metadata["code_snapshot"]) <= 300

    @pytest.mark.parametrize("key,ctrl,shift", [
        ("F12", False, False),
        ("u", True, False),
        ("U", True, True),
        ("I", True, True),
        ("j", True, True),
        ("C", True, True),
    ])
    def test_devtools_shortcuts_are_blocked(self, signals, scheduler, key, ctrl, shift):
        editor, _ = self.attach(signals, scheduler)

        event = editor.dispatch(HostEvent("keydown", key=key, ctrl_key=ctrl, shift_key=shift))

        assert event.default_prevented
        assert types(signals) == ["keyboard_shortcut_cheat"]

    def test_ordinary_keys_pass(self, signals, scheduler):
        editor, _ = self.attach(signals, scheduler)

        event = editor.dispatch(HostEvent("keydown", key="u"))
        editor.dispatch(HostEvent("keydown", key="I", ctrl_key=True))

        assert not event.default_prevented
        assert signals == []

    def test_large_fast_insert_is_flagged(self, signals, scheduler):
        editor, _ = self.attach(signals, scheduler)

        editor.value = "d"
        editor.dispatch(HostEvent("input"))
        scheduler.advance(4000)
        editor.value = "d" + "x" * 250
        editor.dispatch(HostEvent("input"))

        assert types(signals) == ["ai_pattern_detected", "rapid_solution"]
        assert signals[0].metadata["chars_added"] == 250
        assert signals[1].metadata["elapsed_ms"] == 4000

    def test_insert_on_first_keystroke_is_not_ai_pattern(self, signals, scheduler):
        editor, _ = self.attach(signals, scheduler)

        editor.value = "x" * 250
        editor.dispatch(HostEvent("input"))

        # Zero elapsed time since the first keystroke
        assert "ai_pattern_detected" not in types(signals)

    def test_slow_solution_is_not_rapid(self, signals, scheduler):
        editor, _ = self.attach(signals, scheduler)

        editor.value = "d"
        editor.dispatch(HostEvent("input"))
        scheduler.advance(31000)
        editor.value = "d" + "x" * 180
        editor.dispatch(HostEvent("input"))

        assert signals == []


class TestDevtoolsDetector:

    def test_reports_only_on_open_transition(self, signals, scheduler):
        page = Page()
        page.resize((1400, 900), (1400, 900))
        DevtoolsDetector(page, signals.append, scheduler).attach()

        scheduler.advance(1500)
        assert signals == []

        page.resize((1400, 900), (1100, 900))
        scheduler.advance(1500)
        scheduler.advance(1500)
        assert types(signals) == ["devtools_open"]
        assert signals[0].metadata == {"width_diff": 300, "height_diff": 0}

        page.resize((1400, 900), (1400, 900))
        scheduler.advance(1500)
        page.resize((1400, 900), (1400, 650))
        scheduler.advance(1500)
        assert types(signals) == ["devtools_open", "devtools_open"]

    def test_threshold_is_exclusive(self, signals, scheduler):
        page = Page()
        page.resize((1400, 900), (1200, 700))
        detector = DevtoolsDetector(page, signals.append, scheduler)
        detector.attach()

        detector.sample()
        assert signals == []

    def test_detach_stops_polling(self, signals, scheduler):
        detector = DevtoolsDetector(Page(), signals.append, scheduler)
        detector.attach()
        detector.detach()
        assert scheduler.active_count() == 0


class FakeVision:
    def __init__(self, loads=True):
        self.loads = loads
        self.load_error = None if loads else "No camera"
        self.results = []

    def ensure_loaded(self):
        return self.loads

    def analyze(self, frame):
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def face(nose_x=150.0):
    return FaceObservation(nose_tip=(nose_x, 120.0), left_eye=[(100.0, 100.0)], right_eye=[(200.0, 100.0)])


class TestGaze:

    def test_centered_face(self):
        assert gaze_offset_ratio(face(150)) == 0
        assert not is_gaze_away(face(150))

    def test_turned_face(self):
        assert gaze_offset_ratio(face(195)) == pytest.approx(0.45)
        assert is_gaze_away(face(195))

    def test_degenerate_eyes(self):
        squashed = FaceObservation(nose_tip=(150.0, 120.0), left_eye=[(150.0, 100.0)], right_eye=[(150.5, 100.0)])
        assert gaze_offset_ratio(squashed) is None
        assert not is_gaze_away(squashed)


class TestFaceGazeDetector:
    """Camera heuristics and per-type cooldowns"""

    def make(self, signals, scheduler, vision=None):
        vision = vision or FakeVision()
        detector = FaceGazeDetector(
            frames=lambda: "frame",
            vision=vision,
            sink=signals.append,
            scheduler=scheduler,
            clock=scheduler.clock,
        )
        return detector, vision

    def test_missing_face_needs_two_samples(self, signals, scheduler):
        detector, _ = self.make(signals, scheduler)

        detector.observe([])
        assert signals == []
        detector.observe([])

        assert types(signals) == ["face_not_detected"]
        assert signals[0].metadata == {"consecutive_samples": 2}
        assert detector.face_status == FaceStatus.NO_FACE

    def test_cooldown_suppresses_repeats(self, signals, scheduler):
        detector, _ = self.make(signals, scheduler)
        detector.observe([])
        detector.observe([])

        scheduler.advance(10000)
        detector.observe([])
        assert len(signals) == 1

        scheduler.advance(1)
        detector.observe([])
        assert len(signals) == 2

    def test_multiple_faces(self, signals, scheduler):
        detector, _ = self.make(signals, scheduler)

        detector.observe([face(), face()])
        detector.observe([face(), face()])

        assert types(signals) == ["multiple_faces_detected"]
        assert signals[0].severity.value == "critical"
        assert signals[0].metadata == {"face_count": 2}

    def test_gaze_away_needs_three_samples(self, signals, scheduler):
        detector, _ = self.make(signals, scheduler)

        detector.observe([face(195)])
        detector.observe([face(195)])
        assert signals == []
        detector.observe([face(195)])

        assert types(signals) == ["gaze_away"]
        assert signals[0].severity.value == "medium"

    def test_looking_back_resets_gaze_streak(self, signals, scheduler):
        detector, _ = self.make(signals, scheduler)

        detector.observe([face(195)])
        detector.observe([face(195)])
        detector.observe([face(150)])
        detector.observe([face(195)])

        assert signals == []
        assert detector.face_status == FaceStatus.GAZE_AWAY

    def test_cooldowns_are_per_type(self, signals, scheduler):
        detector, _ = self.make(signals, scheduler)

        detector.observe([])
        detector.observe([])
        detector.observe([face(), face()])

        assert types(signals) == ["face_not_detected", "multiple_faces_detected"]

    def test_sampling_skips_bad_frames(self, signals, scheduler):
        detector, vision = self.make(signals, scheduler)
        vision.results = [RuntimeError("decode"), [], []]
        detector.attach()

        scheduler.advance(2500 * 3)

        assert types(signals) == ["face_not_detected"]

    def test_unavailable_vision(self, signals, scheduler):
        detector, _ = self.make(signals, scheduler, FakeVision(loads=False))

        detector.attach()

        assert detector.status == DetectorStatus.UNAVAILABLE
        assert detector.face_status == FaceStatus.NO_CAMERA
        assert scheduler.active_count() == 0
