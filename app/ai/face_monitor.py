import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

Point = tuple[float, float]

# MediaPipe face mesh indices
NOSE_TIP = 1
LEFT_EYE = [362, 385, 387, 263, 373, 380]
RIGHT_EYE = [33, 160, 158, 133, 153, 144]


@dataclass
class FaceObservation:
    nose_tip: Point
    left_eye: list[Point]
    right_eye: list[Point]


class VisionCapability:
    """
    Face detection and landmark estimation, loaded on first use.

    One instance is built at process start and shared by every face detector.
    A failed load is remembered and reported as unavailable instead of raising.
    """

    def __init__(self, max_faces: int = 4, min_detection_confidence: float = 0.5):
        self.max_faces = max_faces
        self.min_detection_confidence = min_detection_confidence
        self._mesh = None
        self._cv2 = None
        self._load_error: Optional[str] = None

    @property
    def available(self) -> bool:
        return self._mesh is not None

    @property
    def load_error(self) -> Optional[str]:
        return self._load_error

    def ensure_loaded(self) -> bool:
        if self._mesh is not None:
            return True
        if self._load_error is not None:
            return False

        try:
            import cv2
            import mediapipe as mp

            self._cv2 = cv2
            self._mesh = mp.solutions.face_mesh.FaceMesh(
                static_image_mode=False,
                max_num_faces=self.max_faces,
                min_detection_confidence=self.min_detection_confidence,
            )
        except Exception as e:
            self._load_error = str(e)
            logger.warning("Face model failed to load: %s", e)
            return False

        logger.info("Face model loaded (max faces: %d)", self.max_faces)
        return True

    def analyze(self, frame) -> list[FaceObservation]:
        """Return one observation per face in a BGR frame."""
        if not self.ensure_loaded():
            raise RuntimeError(f"Vision unavailable: {self._load_error}")

        height, width = frame.shape[:2]
        rgb = self._cv2.cvtColor(frame, self._cv2.COLOR_BGR2RGB)
        result = self._mesh.process(rgb)

        observations = []
        for face in result.multi_face_landmarks or []:
            marks = face.landmark

            def point(index: int) -> Point:
                return (marks[index].x * width, marks[index].y * height)

            observations.append(FaceObservation(
                nose_tip=point(NOSE_TIP),
                left_eye=[point(i) for i in LEFT_EYE],
                right_eye=[point(i) for i in RIGHT_EYE],
            ))
        return observations

    def close(self) -> None:
        if self._mesh is not None:
            self._mesh.close()
            self._mesh = None
