import logging
from enum import Enum
from typing import Any, Callable, Optional, Sequence

from app.ai.face_monitor import FaceObservation, Point, VisionCapability
from app.core.config import settings
from app.detectors.base import Detector, DetectorStatus, SignalSink
from app.detectors.scheduling import Clock, Scheduler
from app.utils.enums import EventType, SeverityLevel

logger = logging.getLogger(__name__)

SAMPLE_INTERVAL_MS = settings.FACE_SAMPLE_INTERVAL_MS

NO_FACE_SAMPLES = 2
GAZE_AWAY_SAMPLES = 3
GAZE_OFFSET_RATIO = 0.40

DEFAULT_COOLDOWN_MS = 8000
COOLDOWNS_MS = {
    EventType.FACE_NOT_DETECTED: 10000,
    EventType.MULTIPLE_FACES_DETECTED: 12000,
    EventType.GAZE_AWAY: 15000,
}

FrameSource = Callable[[], Optional[Any]]


class FaceStatus(str, Enum):
    LOADING = "loading"
    READY = "ready"
    FACE_DETECTED = "face_detected"
    NO_FACE = "no_face"
    MULTIPLE_FACES = "multiple_faces"
    GAZE_AWAY = "gaze_away"
    NO_CAMERA = "no_camera"


def _center(points: Sequence[Point]) -> Point:
    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    return (sum(xs) / len(xs), sum(ys) / len(ys))


def gaze_offset_ratio(face: FaceObservation) -> Optional[float]:
    """
    Horizontal nose offset from the eye midpoint, in units of inter-eye distance.

    None when the landmarks are missing or the eyes are less than a pixel apart.
    """
    if not face.left_eye or not face.right_eye or face.nose_tip is None:
        return None

    left = _center(face.left_eye)
    right = _center(face.right_eye)
    eye_distance = abs(right[0] - left[0])
    if eye_distance < 1:
        return None

    eye_mid_x = (left[0] + right[0]) / 2
    return abs(face.nose_tip[0] - eye_mid_x) / eye_distance


def is_gaze_away(face: FaceObservation) -> bool:
    ratio = gaze_offset_ratio(face)
    return ratio is not None and ratio > GAZE_OFFSET_RATIO


class FaceGazeDetector(Detector):
    """
    Samples the local camera and reports absent, extra or averted faces.

    Each signal type has its own cooldown so a persisting condition is not
    re-reported on every sample.
    """

    def __init__(
        self,
        frames: FrameSource,
        vision: VisionCapability,
        sink: SignalSink,
        scheduler: Scheduler,
        clock: Optional[Clock] = None,
        interval_ms: float = SAMPLE_INTERVAL_MS,
    ):
        super().__init__(sink, clock)
        self.frames = frames
        self.vision = vision
        self.scheduler = scheduler
        self.interval_ms = interval_ms

        self.face_status = FaceStatus.LOADING
        self.face_count = 0
        self._no_face_streak = 0
        self._gaze_away_streak = 0
        self._last_emitted: dict[EventType, float] = {}

    def _setup(self) -> None:
        self.face_status = FaceStatus.LOADING
        if not self.vision.ensure_loaded():
            self.face_status = FaceStatus.NO_CAMERA
            self.status = DetectorStatus.UNAVAILABLE
            logger.warning("Face detection unavailable: %s", self.vision.load_error)
            return

        self.face_status = FaceStatus.READY
        self._every(self.scheduler, self.interval_ms, self.sample)

    def _can_emit(self, event_type: EventType) -> bool:
        now = self._clock()
        cooldown = COOLDOWNS_MS.get(event_type, DEFAULT_COOLDOWN_MS)
        last = self._last_emitted.get(event_type)
        if last is not None and now - last <= cooldown:
            return False
        self._last_emitted[event_type] = now
        return True

    def sample(self) -> None:
        frame = self.frames()
        if frame is None:
            return

        try:
            faces = self.vision.analyze(frame)
        except Exception as e:
            # Missed frames are skipped, not retried
            logger.debug("Skipping frame: %s", e)
            return

        self.observe(faces)

    def observe(self, faces: list[FaceObservation]) -> None:
        count = len(faces)
        self.face_count = count

        if count == 0:
            self._no_face_streak += 1
            self.face_status = FaceStatus.NO_FACE
            if self._no_face_streak >= NO_FACE_SAMPLES and self._can_emit(EventType.FACE_NOT_DETECTED):
                self._emit(
                    EventType.FACE_NOT_DETECTED,
                    SeverityLevel.HIGH,
                    {"consecutive_samples": self._no_face_streak},
                )
            return

        self._no_face_streak = 0

        if count >= 2:
            self.face_status = FaceStatus.MULTIPLE_FACES
            if self._can_emit(EventType.MULTIPLE_FACES_DETECTED):
                self._emit(
                    EventType.MULTIPLE_FACES_DETECTED,
                    SeverityLevel.CRITICAL,
                    {"face_count": count},
                )
            return

        if is_gaze_away(faces[0]):
            self._gaze_away_streak += 1
            self.face_status = FaceStatus.GAZE_AWAY
            if self._gaze_away_streak >= GAZE_AWAY_SAMPLES and self._can_emit(EventType.GAZE_AWAY):
                self._emit(
                    EventType.GAZE_AWAY,
                    SeverityLevel.MEDIUM,
                    {"offset_ratio": round(gaze_offset_ratio(faces[0]), 3)},
                )
        else:
            self._gaze_away_streak = 0
            self.face_status = FaceStatus.FACE_DETECTED
