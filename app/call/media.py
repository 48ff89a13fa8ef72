"""Media and peer capabilities the call controller is built on."""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class MediaTrack(Protocol):
    kind: str  # "audio" | "video"
    enabled: bool

    def stop(self) -> None:
        ...


class MediaStream(Protocol):
    def get_tracks(self) -> list[MediaTrack]:
        ...


class MediaDevices(Protocol):
    async def get_user_media(self, audio: bool, video: bool) -> MediaStream:
        ...

    async def get_display_media(self) -> MediaStream:
        ...


def audio_tracks(stream: MediaStream) -> list[MediaTrack]:
    return [track for track in stream.get_tracks() if track.kind == "audio"]


def video_tracks(stream: MediaStream) -> list[MediaTrack]:
    return [track for track in stream.get_tracks() if track.kind == "video"]


def stop_stream(stream: Optional[MediaStream]) -> None:
    if stream is None:
        return
    for track in stream.get_tracks():
        try:
            track.stop()
        except Exception:
            logger.exception("Failed to stop %s track", getattr(track, "kind", "?"))


async def acquire(request: Callable[[], Awaitable[MediaStream]], timeout: float, what: str) -> Optional[MediaStream]:
    """Run a media request with a deadline. Denial, absence or timeout yield None."""
    try:
        return await asyncio.wait_for(request(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("%s request timed out after %.1fs", what, timeout)
    except Exception as e:
        logger.warning("%s not available: %s", what, e)
    return None


@dataclass
class PeerCallbacks:
    on_signal: Callable[[dict], None]
    on_stream: Callable[[Any], None]
    on_connect: Callable[[], None]
    on_error: Callable[[Exception], None]
    on_close: Callable[[], None]


@dataclass
class PeerOptions:
    initiator: bool
    stream: Optional[MediaStream]
    ice_servers: list[str] = field(default_factory=list)
    trickle: bool = True


class Peer(Protocol):
    def signal(self, data: dict) -> None:
        """Feed a remote offer, answer or ICE candidate."""
        ...

    def destroy(self) -> None:
        ...


PeerFactory = Callable[[PeerOptions, PeerCallbacks], Peer]
