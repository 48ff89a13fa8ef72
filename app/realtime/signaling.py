"""Stateless forwarding of call handshake messages between the two room sides."""
import logging
from typing import Awaitable, Callable, Union

from app.realtime.bus import Member, RoomHub, candidate_room, recruiter_room
from app.schemas.messages import (
    CallReady,
    IceMessage,
    PeerCallReady,
    RelayedSignal,
    ScreenShareStopped,
    SdpMessage,
)
from app.utils.enums import CallChannel, Role

logger = logging.getLogger(__name__)

SignalingMessage = Union[CallReady, SdpMessage, IceMessage, ScreenShareStopped]

# Returns True while the session may still carry call traffic
SessionGuard = Callable[[str, str], Awaitable[bool]]

# kind -> (sending role, receiving role)
ROUTES = {
    "call_ready": (Role.CANDIDATE, Role.RECRUITER),
    "webrtc_offer": (Role.RECRUITER, Role.CANDIDATE),
    "webrtc_answer": (Role.CANDIDATE, Role.RECRUITER),
    "screen_share_offer": (Role.CANDIDATE, Role.RECRUITER),
    "screen_share_answer": (Role.RECRUITER, Role.CANDIDATE),
    "screen_share_stopped": (Role.CANDIDATE, Role.RECRUITER),
}

ICE_KINDS = {"webrtc_ice_candidate", "screen_share_ice"}

SIGNALING_KINDS = set(ROUTES) | ICE_KINDS


def channel_of(kind: str) -> CallChannel:
    return CallChannel.SCREEN if kind.startswith("screen_share") else CallChannel.PRIMARY


def _opposite(role: Role) -> Role:
    return Role.RECRUITER if role == Role.CANDIDATE else Role.CANDIDATE


class SignalingRelay:
    """
    Forwards offer/answer/ICE for the primary and screen-share channels.

    The relay keeps no call state. It only checks that the sender sits in the
    room of the side it claims to speak for and that the session is still
    open, then hands the payload to the other side unchanged.
    """

    def __init__(self, hub: RoomHub, session_guard: SessionGuard):
        self.hub = hub
        self.session_guard = session_guard

    def _room_for(self, role: Role, message: SignalingMessage) -> str:
        if role == Role.RECRUITER:
            return recruiter_room(message.meeting_id)
        return candidate_room(message.session_id)

    async def relay(self, sender: Member, message: SignalingMessage) -> bool:
        if message.type in ICE_KINDS:
            target = message.target
            source = _opposite(target)
        else:
            source, target = ROUTES[message.type]

        if not self.hub.is_member(self._room_for(source, message), sender):
            logger.warning(
                "Dropping %s from %s: not in the %s room for session %s",
                message.type, sender.id, source.value, message.session_id,
            )
            return False

        if not await self.session_guard(message.meeting_id, message.session_id):
            logger.info(
                "Dropping %s for closed session %s", message.type, message.session_id
            )
            return False

        outbound = self._outbound(message, source)
        await self.hub.publish(self._room_for(target, message), outbound.to_wire())
        logger.debug(
            "Relayed %s (%s channel) %s -> %s",
            message.type, channel_of(message.type).value, source.value, target.value,
        )
        return True

    def _outbound(self, message: SignalingMessage, source: Role):
        if isinstance(message, CallReady):
            return PeerCallReady(meeting_id=message.meeting_id, session_id=message.session_id)

        payload = {}
        if isinstance(message, SdpMessage):
            payload["signal"] = message.signal
        elif isinstance(message, IceMessage):
            payload["candidate"] = message.candidate

        return RelayedSignal(
            type=message.type,
            meeting_id=message.meeting_id,
            session_id=message.session_id,
            from_role=source,
            **payload,
        )
