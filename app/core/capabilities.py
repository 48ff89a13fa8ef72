from dataclasses import dataclass, field

from app.ai.face_monitor import VisionCapability
from app.core.config import settings


@dataclass
class Capabilities:
    """Process-wide, lazily initialized services handed to detectors and endpoints."""

    vision: VisionCapability = field(default_factory=VisionCapability)
    ice_servers: list[str] = field(default_factory=list)


def build_capabilities() -> Capabilities:
    return Capabilities(
        vision=VisionCapability(),
        ice_servers=list(settings.ICE_SERVERS),
    )
