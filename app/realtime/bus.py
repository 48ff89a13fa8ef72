"""
Room-scoped publish/subscribe for the session transport.

Each meeting has a recruiter (observer) room and each candidate session has a
candidate room. Publishing fans out to whoever is in the room right now; late
joiners get nothing retroactively, history is fetched from the event log.
"""
import asyncio
import logging
from collections import defaultdict
from contextlib import contextmanager
from typing import Callable, Protocol

logger = logging.getLogger(__name__)

RECRUITER_ROOM = "recruiter"
CANDIDATE_ROOM = "candidate"

Disposer = Callable[[], None]


class Member(Protocol):
    id: str

    async def deliver(self, message: dict) -> bool:
        """Send a message; return False if the member is gone."""
        ...


def recruiter_room(meeting_id: str) -> str:
    return f"{RECRUITER_ROOM}:{meeting_id}"


def candidate_room(session_id: str) -> str:
    return f"{CANDIDATE_ROOM}:{session_id}"


def room_kind(room: str) -> str:
    return room.split(":", 1)[0]


class RoomHub:
    def __init__(self):
        # room -> member id -> member, insertion ordered
        self._rooms: dict[str, dict[str, Member]] = defaultdict(dict)
        # member id -> room kind -> room
        self._memberships: dict[str, dict[str, str]] = defaultdict(dict)
        # Held by callers across accept -> persist -> publish
        self.sequencer = asyncio.Lock()

    def join(self, room: str, member: Member) -> Disposer:
        kind = room_kind(room)
        current = self._memberships[member.id].get(kind)
        if current is not None and current != room:
            # At most one room of each kind per member
            self.leave(current, member)

        self._rooms[room][member.id] = member
        self._memberships[member.id][kind] = room
        logger.debug("Member %s joined %s", member.id, room)

        def dispose():
            self.leave(room, member)

        return dispose

    @contextmanager
    def scoped(self, room: str, member: Member):
        dispose = self.join(room, member)
        try:
            yield
        finally:
            dispose()

    def leave(self, room: str, member: Member) -> None:
        members = self._rooms.get(room)
        if members is None or member.id not in members:
            return

        del members[member.id]
        if not members:
            del self._rooms[room]

        rooms = self._memberships.get(member.id, {})
        if rooms.get(room_kind(room)) == room:
            del rooms[room_kind(room)]
        if not rooms:
            self._memberships.pop(member.id, None)
        logger.debug("Member %s left %s", member.id, room)

    def leave_all(self, member: Member) -> None:
        for room in list(self._memberships.get(member.id, {}).values()):
            self.leave(room, member)

    def is_member(self, room: str, member: Member) -> bool:
        return member.id in self._rooms.get(room, {})

    def members(self, room: str) -> list[Member]:
        return list(self._rooms.get(room, {}).values())

    def rooms_of(self, member: Member) -> dict[str, str]:
        return dict(self._memberships.get(member.id, {}))

    async def publish(self, room: str, message: dict) -> int:
        """Deliver to every current member in join order. Returns the delivery count."""
        delivered = 0
        for member in self.members(room):
            if await member.deliver(message):
                delivered += 1
            else:
                logger.warning(
                    "Delivery of %s to %s failed, dropping member",
                    message.get("type"), member.id,
                )
                self.leave_all(member)
        return delivered
