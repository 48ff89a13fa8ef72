import logging
from typing import Any, Callable, Optional

from app.call.media import (
    MediaDevices,
    MediaStream,
    Peer,
    PeerCallbacks,
    PeerFactory,
    PeerOptions,
    acquire,
    audio_tracks,
    stop_stream,
    video_tracks,
)
from app.call.state import CallStateMachine
from app.core.config import settings
from app.realtime.endpoint import EndpointBus
from app.schemas.messages import CallReady, IceMessage, ScreenShareStopped, SdpMessage
from app.utils.enums import CallChannel, CallState, Role

logger = logging.getLogger(__name__)

RESTARTABLE = (CallState.IDLE, CallState.ENDED, CallState.ERROR)


def _is_description(data: dict) -> bool:
    return data.get("type") in ("offer", "answer") or "sdp" in data


class CallController:
    """
    One endpoint's side of the interview call.

    The recruiter initiates the primary audio/video channel once the candidate
    announces readiness; the candidate initiates the screen-share channel. The
    two channels have separate peers, streams and state machines, and nothing
    that happens on the screen channel touches the primary one.
    """

    def __init__(
        self,
        role: Role,
        meeting_id: str,
        session_id: str,
        bus: EndpointBus,
        devices: MediaDevices,
        peer_factory: PeerFactory,
        ice_servers: Optional[list[str]] = None,
        media_timeout: float = settings.MEDIA_TIMEOUT_SECONDS,
    ):
        self.role = role
        self.meeting_id = meeting_id
        self.session_id = session_id
        self.bus = bus
        self.devices = devices
        self.peer_factory = peer_factory
        self.ice_servers = list(ice_servers if ice_servers is not None else settings.ICE_SERVERS)
        self.media_timeout = media_timeout

        self.primary = CallStateMachine(CallChannel.PRIMARY, self._state_changed)
        self.screen = CallStateMachine(CallChannel.SCREEN, self._state_changed)

        self.local_stream: Optional[MediaStream] = None
        self.remote_stream: Optional[Any] = None
        self.screen_stream: Optional[MediaStream] = None
        self.remote_screen_stream: Optional[Any] = None

        self.has_camera = True
        self.is_muted = False
        self.is_camera_off = False

        self.on_state_change: Optional[Callable[[CallChannel, CallState], None]] = None
        self.on_local_stream: Optional[Callable[[Optional[MediaStream]], None]] = None
        self.on_remote_stream: Optional[Callable[[Optional[Any]], None]] = None
        self.on_remote_screen_stream: Optional[Callable[[Optional[Any]], None]] = None

        self._peer: Optional[Peer] = None
        self._screen_peer: Optional[Peer] = None
        # Bumped whenever a channel is started or torn down; a media request
        # that resolves under an older generation is released, not used
        self._generation = {CallChannel.PRIMARY: 0, CallChannel.SCREEN: 0}
        self._disposers: list[Callable[[], None]] = []

    @property
    def call_state(self) -> CallState:
        return self.primary.state

    @property
    def screen_state(self) -> CallState:
        return self.screen.state

    @property
    def is_screen_sharing(self) -> bool:
        return self.screen_stream is not None

    # Wiring

    def attach(self) -> Callable[[], None]:
        """Subscribe to the transport channels this role listens on."""
        if self._disposers:
            return self.detach

        handlers = {"session_ended": self._on_session_ended}
        if self.role == Role.RECRUITER:
            handlers.update({
                "peer_call_ready": self._on_peer_call_ready,
                "webrtc_answer": self._on_primary_description,
                "webrtc_ice_candidate": self._on_primary_ice,
                "screen_share_offer": self._on_screen_offer,
                "screen_share_ice": self._on_screen_ice,
                "screen_share_stopped": self._on_screen_stopped,
            })
        else:
            handlers.update({
                "webrtc_offer": self._on_primary_offer,
                "webrtc_ice_candidate": self._on_primary_ice,
                "screen_share_answer": self._on_screen_answer,
                "screen_share_ice": self._on_screen_ice,
            })

        for kind, handler in handlers.items():
            self._disposers.append(self.bus.on(kind, handler))
        return self.detach

    def detach(self) -> None:
        while self._disposers:
            self._disposers.pop()()

    # Controls

    async def start_call(self) -> CallState:
        if self.primary.state not in RESTARTABLE:
            logger.debug("start_call ignored in state %s", self.primary.state.value)
            return self.primary.state

        generation = self._bump(CallChannel.PRIMARY)

        if self.role == Role.CANDIDATE:
            stream = await self._acquire_local(generation)
            if self._superseded(CallChannel.PRIMARY, generation):
                return self.primary.state
            if stream is None:
                self.primary.to(CallState.ERROR)
                return self.primary.state

            self.primary.to(CallState.WAITING)
            self.bus.emit(CallReady(
                type="call_ready",
                meeting_id=self.meeting_id,
                session_id=self.session_id,
            ).model_dump(mode="json"))
        else:
            # The recruiter may join without a camera and still receive
            await self._acquire_local(generation)
            if self._superseded(CallChannel.PRIMARY, generation):
                return self.primary.state
            self.primary.to(CallState.WAITING)
            if self.screen.state in RESTARTABLE:
                self.screen.to(CallState.WAITING)

        return self.primary.state

    def end_call(self) -> None:
        """Tear down both channels and release every local track. Safe in any state."""
        self._bump(CallChannel.PRIMARY)
        self._bump(CallChannel.SCREEN)
        self._drop_peer(CallChannel.PRIMARY)
        self._drop_peer(CallChannel.SCREEN)

        if self.local_stream is not None:
            stop_stream(self.local_stream)
            self.local_stream = None
            self._notify(self.on_local_stream, None)
        if self.screen_stream is not None:
            stop_stream(self.screen_stream)
            self.screen_stream = None

        self._set_remote(CallChannel.PRIMARY, None)
        self._set_remote(CallChannel.SCREEN, None)

        for machine in (self.primary, self.screen):
            if machine.state != CallState.ENDED:
                machine.to(CallState.ENDED)

    def toggle_mute(self) -> bool:
        if self.local_stream is not None:
            for track in audio_tracks(self.local_stream):
                track.enabled = self.is_muted
            self.is_muted = not self.is_muted
        return self.is_muted

    def toggle_camera(self) -> bool:
        if self.local_stream is not None:
            for track in video_tracks(self.local_stream):
                track.enabled = self.is_camera_off
            self.is_camera_off = not self.is_camera_off
        return self.is_camera_off

    async def start_screen_share(self) -> bool:
        if self.role != Role.CANDIDATE:
            logger.warning("Only the candidate shares a screen")
            return False
        if self.screen_stream is not None:
            return True

        generation = self._bump(CallChannel.SCREEN)
        if self.screen.state in RESTARTABLE:
            self.screen.to(CallState.WAITING)

        stream = await acquire(self.devices.get_display_media, self.media_timeout, "Screen capture")
        if self._superseded(CallChannel.SCREEN, generation) or self.screen.state != CallState.WAITING:
            stop_stream(stream)
            return False
        if stream is None:
            self.screen.to(CallState.ERROR)
            return False

        self.screen_stream = stream
        self.screen.to(CallState.CONNECTING)
        self._screen_peer = self._create_peer(CallChannel.SCREEN, initiator=True, stream=stream)

        # Stopping from the host's own "stop sharing" control ends the share too
        for track in video_tracks(stream):
            add_ended = getattr(track, "add_ended_callback", None)
            if add_ended is not None:
                add_ended(self.stop_screen_share)
        return True

    def stop_screen_share(self) -> None:
        was_sharing = self.screen_stream is not None
        self._bump(CallChannel.SCREEN)
        self._drop_peer(CallChannel.SCREEN)

        if self.screen_stream is not None:
            stop_stream(self.screen_stream)
            self.screen_stream = None

        if self.screen.state not in (CallState.IDLE, CallState.ENDED):
            self.screen.to(CallState.ENDED)

        if was_sharing:
            self.bus.emit(ScreenShareStopped(
                type="screen_share_stopped",
                meeting_id=self.meeting_id,
                session_id=self.session_id,
            ).model_dump(mode="json"))

    # Inbound transport messages

    def _for_this_session(self, message: dict) -> bool:
        return message.get("session_id") in (None, self.session_id)

    def _on_peer_call_ready(self, message: dict) -> None:
        if not self._for_this_session(message):
            return
        if self.primary.state != CallState.WAITING:
            logger.info("Ignoring call readiness in state %s", self.primary.state.value)
            return

        self.primary.to(CallState.CONNECTING)
        self._peer = self._create_peer(CallChannel.PRIMARY, initiator=True, stream=self.local_stream)

    def _on_primary_offer(self, message: dict) -> None:
        if not self._for_this_session(message) or self.local_stream is None:
            return
        if self.primary.state not in (CallState.WAITING, CallState.CONNECTING):
            logger.info("Ignoring offer in state %s", self.primary.state.value)
            return

        if self._peer is None:
            self.primary.to(CallState.CONNECTING)
            self._peer = self._create_peer(CallChannel.PRIMARY, initiator=False, stream=self.local_stream)
        self._peer.signal(message["signal"])

    def _on_primary_description(self, message: dict) -> None:
        if self._peer is not None and self._for_this_session(message):
            self._peer.signal(message["signal"])

    def _on_primary_ice(self, message: dict) -> None:
        if self._peer is not None and self._for_this_session(message):
            self._peer.signal(message["candidate"])

    def _on_screen_offer(self, message: dict) -> None:
        if not self._for_this_session(message):
            return

        if self._screen_peer is None:
            if self.screen.state in RESTARTABLE:
                self.screen.to(CallState.WAITING)
            self.screen.to(CallState.CONNECTING)
            # Receive-only: the recruiter sends no screen of its own
            self._screen_peer = self._create_peer(CallChannel.SCREEN, initiator=False, stream=None)
        self._screen_peer.signal(message["signal"])

    def _on_screen_answer(self, message: dict) -> None:
        if self._screen_peer is not None and self._for_this_session(message):
            self._screen_peer.signal(message["signal"])

    def _on_screen_ice(self, message: dict) -> None:
        if self._screen_peer is not None and self._for_this_session(message):
            self._screen_peer.signal(message["candidate"])

    def _on_screen_stopped(self, message: dict) -> None:
        if not self._for_this_session(message):
            return
        self._drop_peer(CallChannel.SCREEN)
        self._set_remote(CallChannel.SCREEN, None)
        if self.screen.state not in (CallState.IDLE, CallState.ENDED):
            self.screen.to(CallState.ENDED)

    def _on_session_ended(self, message: dict) -> None:
        logger.info("Session ended (final score %s), ending call", message.get("final_score"))
        self.end_call()

    # Peers

    def _create_peer(self, channel: CallChannel, initiator: bool, stream: Optional[MediaStream]) -> Peer:
        holder: dict[str, Peer] = {}

        def current() -> bool:
            peer = self._peer if channel == CallChannel.PRIMARY else self._screen_peer
            return peer is not None and peer is holder.get("peer")

        def on_signal(data: dict) -> None:
            if current():
                self.bus.emit(self._outgoing(channel, initiator, data))

        def on_stream(remote) -> None:
            if current():
                self._set_remote(channel, remote)
                self._connected(channel)

        def on_connect() -> None:
            if current():
                self._connected(channel)

        def on_error(error: Exception) -> None:
            if current():
                logger.error("%s peer error: %s", channel.value, error)
                self._failed(channel)

        def on_close() -> None:
            if current():
                self._closed(channel)

        peer = self.peer_factory(
            PeerOptions(initiator=initiator, stream=stream, ice_servers=self.ice_servers),
            PeerCallbacks(
                on_signal=on_signal,
                on_stream=on_stream,
                on_connect=on_connect,
                on_error=on_error,
                on_close=on_close,
            ),
        )
        holder["peer"] = peer
        return peer

    def _outgoing(self, channel: CallChannel, initiator: bool, data: dict) -> dict:
        other = Role.CANDIDATE if self.role == Role.RECRUITER else Role.RECRUITER
        prefix = "webrtc" if channel == CallChannel.PRIMARY else "screen_share"

        if _is_description(data):
            kind = f"{prefix}_offer" if initiator else f"{prefix}_answer"
            message = SdpMessage(
                type=kind,
                meeting_id=self.meeting_id,
                session_id=self.session_id,
                signal=data,
            )
        else:
            kind = "webrtc_ice_candidate" if channel == CallChannel.PRIMARY else "screen_share_ice"
            message = IceMessage(
                type=kind,
                target=other,
                meeting_id=self.meeting_id,
                session_id=self.session_id,
                candidate=data,
            )
        return message.model_dump(mode="json")

    def _machine(self, channel: CallChannel) -> CallStateMachine:
        return self.primary if channel == CallChannel.PRIMARY else self.screen

    def _connected(self, channel: CallChannel) -> None:
        machine = self._machine(channel)
        if machine.state == CallState.CONNECTING:
            machine.to(CallState.CONNECTED)

    def _failed(self, channel: CallChannel) -> None:
        self._drop_peer(channel)
        if channel == CallChannel.PRIMARY:
            stop_stream(self.local_stream)
            if self.local_stream is not None:
                self.local_stream = None
                self._notify(self.on_local_stream, None)
        else:
            stop_stream(self.screen_stream)
            self.screen_stream = None
        self._set_remote(channel, None)

        machine = self._machine(channel)
        if machine.can(CallState.ERROR):
            machine.to(CallState.ERROR)

    def _closed(self, channel: CallChannel) -> None:
        if channel == CallChannel.PRIMARY:
            self._peer = None
        else:
            self._screen_peer = None
        self._set_remote(channel, None)

        machine = self._machine(channel)
        if not machine.finished and machine.state != CallState.IDLE:
            machine.to(CallState.ENDED)

    def _drop_peer(self, channel: CallChannel) -> None:
        if channel == CallChannel.PRIMARY:
            peer, self._peer = self._peer, None
        else:
            peer, self._screen_peer = self._screen_peer, None
        if peer is None:
            return
        try:
            peer.destroy()
        except Exception:
            logger.exception("Failed to destroy %s peer", channel.value)

    def _set_remote(self, channel: CallChannel, stream) -> None:
        if channel == CallChannel.PRIMARY:
            if self.remote_stream is stream:
                return
            self.remote_stream = stream
            self._notify(self.on_remote_stream, stream)
        else:
            if self.remote_screen_stream is stream:
                return
            self.remote_screen_stream = stream
            self._notify(self.on_remote_screen_stream, stream)

    async def _acquire_local(self, generation: int) -> Optional[MediaStream]:
        if self.local_stream is not None:
            return self.local_stream

        stream = await acquire(
            lambda: self.devices.get_user_media(audio=True, video=True),
            self.media_timeout,
            "Camera/microphone",
        )
        if self._superseded(CallChannel.PRIMARY, generation):
            stop_stream(stream)
            return None
        if stream is None:
            self.has_camera = False
            return None

        self.has_camera = True
        self.local_stream = stream
        self._notify(self.on_local_stream, stream)
        return stream

    def _bump(self, channel: CallChannel) -> int:
        self._generation[channel] += 1
        return self._generation[channel]

    def _superseded(self, channel: CallChannel, generation: int) -> bool:
        if self._generation[channel] == generation:
            return False
        logger.info("Discarding %s media request cancelled while pending", channel.value)
        return True

    def _state_changed(self, channel: CallChannel, state: CallState) -> None:
        self._notify(self.on_state_change, channel, state)

    @staticmethod
    def _notify(callback, *args) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("Call callback failed")
