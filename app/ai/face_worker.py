"""
Standalone camera worker.

Runs the face/gaze detector against a local camera and posts every signal to
the HTTP ingestion endpoint:

    python -m app.ai.face_worker --session-id <SESSION_ID>
"""
import argparse
import asyncio
import logging

import cv2
import requests

from app.core.capabilities import build_capabilities
from app.core.config import settings
from app.core.logging import setup_logging
from app.detectors.base import DetectorStatus, attached
from app.detectors.face import FaceGazeDetector
from app.detectors.scheduling import LoopScheduler
from app.schemas.event import BehaviorSignal

logger = logging.getLogger(__name__)


class SignalPoster:
    def __init__(self, api_url: str, session_id: str, timeout: float = 2.0):
        self.api_url = api_url
        self.session_id = session_id
        self.timeout = timeout
        self.http = requests.Session()

    def __call__(self, signal: BehaviorSignal) -> None:
        payload = {"session_id": self.session_id, **signal.model_dump(mode="json")}
        try:
            response = self.http.post(self.api_url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.warning("Failed to post %s: %s", signal.event_type, e)
            return
        logger.info("Posted %s -> score %s", signal.event_type, response.json().get("current_score"))


def open_camera(index: int):
    cap = cv2.VideoCapture(index)
    if not cap.isOpened():
        raise RuntimeError(f"Could not open camera {index}")
    return cap


async def run_worker(session_id: str, api_url: str, camera: int, interval_ms: int) -> None:
    capabilities = build_capabilities()
    cap = open_camera(camera)

    def read_frame():
        ok, frame = cap.read()
        return frame if ok else None

    detector = FaceGazeDetector(
        frames=read_frame,
        vision=capabilities.vision,
        sink=SignalPoster(api_url, session_id),
        scheduler=LoopScheduler(),
        interval_ms=interval_ms,
    )

    try:
        with attached(detector):
            if detector.status == DetectorStatus.UNAVAILABLE:
                raise RuntimeError(f"Face detection unavailable: {capabilities.vision.load_error}")
            logger.info("Face worker started for session %s. Press Ctrl+C to stop.", session_id)
            await asyncio.Event().wait()
    finally:
        cap.release()
        capabilities.vision.close()


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Camera face/gaze worker")
    parser.add_argument("--session-id", required=True)
    parser.add_argument("--api-url", default=settings.FACE_WORKER_API_URL)
    parser.add_argument("--camera", type=int, default=settings.FACE_WORKER_CAMERA)
    parser.add_argument("--interval-ms", type=int, default=settings.FACE_SAMPLE_INTERVAL_MS)
    args = parser.parse_args(argv)

    setup_logging(settings.LOG_LEVEL)
    try:
        asyncio.run(run_worker(args.session_id, args.api_url, args.camera, args.interval_ms))
    except KeyboardInterrupt:
        logger.info("Stopping face worker...")


if __name__ == "__main__":
    main()
