import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import SessionClosedError, SessionNotFoundError
from app.realtime.bus import Member, RoomHub, candidate_room, recruiter_room
from app.realtime.signaling import SIGNALING_KINDS, SignalingRelay
from app.schemas.event import BehaviorSignal
from app.schemas.messages import (
    CandidateStatus,
    CandidateWarning,
    CheatAlertMessage,
    CodeUpdateOut,
    ErrorMessage,
    LiveEventUpdate,
    QuestionPushed,
    ScoreUpdateMessage,
    SessionEnded,
    Subscribed,
    parse_inbound,
)
from app.services import meeting_service
from app.services.event_service import SignalOutcome, finish_session, submit_signal
from app.utils.enums import EventType, SeverityLevel

logger = logging.getLogger(__name__)


class SessionGateway:
    """
    Entry point for every inbound transport frame.

    Frames are validated against the closed message union, then dispatched
    while holding the hub's sequencer so that concurrent signals for a session
    are accepted, scored and published one at a time. Database work runs in a
    worker thread so the event loop keeps serving other sockets meanwhile.
    """

    def __init__(self, hub: RoomHub, session_factory: Callable[[], Session]):
        self.hub = hub
        self.session_factory = session_factory
        self.relay = SignalingRelay(hub, self._session_open)

    async def receive(self, member: Member, payload) -> None:
        try:
            message = parse_inbound(payload)
        except ValidationError as e:
            kind = payload.get("type") if isinstance(payload, dict) else None
            logger.warning("Rejected frame %r from %s: %d errors", kind, member.id, e.error_count())
            await member.deliver(ErrorMessage(message=f"Invalid message: {kind}").to_wire())
            return

        try:
            async with self.hub.sequencer:
                if message.type in SIGNALING_KINDS:
                    await self.relay.relay(member, message)
                    return

                handler = getattr(self, f"_on_{message.type}")
                await handler(member, message)
        except (ValueError, SQLAlchemyError) as e:
            logger.exception("Failed to handle %s from %s", message.type, member.id)
            await member.deliver(ErrorMessage(message=f"Could not handle {message.type}: {e}").to_wire())

    def disconnect(self, member: Member) -> None:
        rooms = self.hub.rooms_of(member)
        self.hub.leave_all(member)
        logger.info("Member %s disconnected (rooms: %s)", member.id, ", ".join(rooms.values()) or "none")

    async def _session_open(self, meeting_id: str, session_id: str) -> bool:
        return await asyncio.to_thread(self._load_open_meeting_id, session_id) == meeting_id

    # Blocking lookups, run through asyncio.to_thread

    def _load_meeting_exists(self, meeting_id: str) -> bool:
        with self.session_factory() as db:
            return meeting_service.get_meeting_by_id(db, meeting_id) is not None

    def _load_meeting_id(self, session_id: str) -> Optional[str]:
        with self.session_factory() as db:
            session = meeting_service.get_session_by_id(db, session_id)
            return session.meeting_id if session is not None else None

    def _load_open_meeting_id(self, session_id: str) -> Optional[str]:
        with self.session_factory() as db:
            session = meeting_service.get_session_by_id(db, session_id)
            if session is None or session.ended_at is not None:
                return None
            return session.meeting_id

    def _submit(self, session_id: str, signal: BehaviorSignal) -> SignalOutcome:
        with self.session_factory() as db:
            return submit_signal(db, session_id, signal)

    def _finish(self, session_id: str) -> int:
        with self.session_factory() as db:
            return finish_session(db, session_id)

    async def _reject(self, member: Member, message: str) -> None:
        logger.warning("Rejected request from %s: %s", member.id, message)
        await member.deliver(ErrorMessage(message=message).to_wire())

    # Subscriptions

    async def _on_recruiter_subscribe(self, member: Member, message) -> None:
        if not await asyncio.to_thread(self._load_meeting_exists, message.meeting_id):
            await self._reject(member, f"Meeting not found: {message.meeting_id}")
            return

        room = recruiter_room(message.meeting_id)
        self.hub.join(room, member)
        await member.deliver(Subscribed(room=room).to_wire())
        logger.info("Recruiter %s subscribed to meeting %s", member.id, message.meeting_id)

    async def _on_candidate_joined(self, member: Member, message) -> None:
        if not await self._session_open(message.meeting_id, message.session_id):
            await self._reject(member, f"Session not open: {message.session_id}")
            return

        # A reconnecting candidate lands in the same room
        room = candidate_room(message.session_id)
        self.hub.join(room, member)
        await member.deliver(Subscribed(room=room).to_wire())
        logger.info("Candidate joined: %s (session: %s)", message.candidate_name, message.session_id)

        await self.hub.publish(
            recruiter_room(message.meeting_id),
            CandidateStatus(
                joined=True,
                candidate_name=message.candidate_name,
                monitoring_active=True,
            ).to_wire(),
        )

    # Behavior signals

    async def _on_behavior_event(self, member: Member, message) -> None:
        if not self.hub.is_member(candidate_room(message.session_id), member):
            await self._reject(member, "Behavior events must come from the candidate room")
            return
        await self.accept_signal(message.session_id, message.event)

    async def _on_answer_submitted(self, member: Member, message) -> None:
        if not self.hub.is_member(candidate_room(message.session_id), member):
            await self._reject(member, "Answers must come from the candidate room")
            return

        signal = BehaviorSignal(
            event_type=EventType.ANSWER_SUBMITTED.value,
            severity=SeverityLevel.LOW,
            timestamp=datetime.now(timezone.utc),
            metadata={
                "question_index": message.question_index,
                "word_count": len(message.answer.split()),
            },
        )
        await self.accept_signal(message.session_id, signal)

    async def accept_signal(self, session_id: str, signal: BehaviorSignal):
        """Run a signal through scoring and fan the results out. Caller holds the sequencer."""
        try:
            outcome = await asyncio.to_thread(self._submit, session_id, signal)
        except SessionClosedError:
            logger.info("Dropping %s for ended session %s", signal.event_type, session_id)
            return None
        except SessionNotFoundError:
            logger.warning("Dropping %s for unknown session %s", signal.event_type, session_id)
            return None

        await self.publish_outcome(session_id, outcome)
        return outcome

    async def publish_outcome(self, session_id: str, outcome: SignalOutcome) -> None:
        room = recruiter_room(outcome.meeting_id)

        await self.hub.publish(room, LiveEventUpdate(event=outcome.record).to_wire())
        await self.hub.publish(room, ScoreUpdateMessage(**outcome.score.model_dump()).to_wire())
        if outcome.alert is not None:
            await self.hub.publish(room, CheatAlertMessage(alert=outcome.alert).to_wire())

        if outcome.warning is not None:
            await self.hub.publish(
                candidate_room(session_id),
                CandidateWarning(
                    event_type=outcome.record.event_type,
                    message=outcome.warning,
                ).to_wire(),
            )

    # Coding

    async def _on_code_update(self, member: Member, message) -> None:
        if not self.hub.is_member(candidate_room(message.session_id), member):
            await self._reject(member, "Code updates must come from the candidate room")
            return

        meeting_id = await asyncio.to_thread(self._load_open_meeting_id, message.session_id)
        if meeting_id is None:
            logger.info("Dropping code update for closed session %s", message.session_id)
            return

        await self.hub.publish(
            recruiter_room(meeting_id),
            CodeUpdateOut(
                session_id=message.session_id,
                code=message.code,
                language=message.language,
                char_count=len(message.code),
                timestamp=datetime.now(timezone.utc),
            ).to_wire(),
        )

    async def _on_recruiter_push_question(self, member: Member, message) -> None:
        if not self.hub.is_member(recruiter_room(message.meeting_id), member):
            await self._reject(member, "Questions must come from the recruiter room")
            return

        if not await self._session_open(message.meeting_id, message.session_id):
            logger.info("Dropping question for closed session %s", message.session_id)
            return

        await self.hub.publish(
            candidate_room(message.session_id),
            QuestionPushed(challenge=message.challenge).to_wire(),
        )
        logger.info("Question %s pushed to session %s", message.challenge.id, message.session_id)

    # Lifecycle

    async def _on_session_end(self, member: Member, message) -> None:
        meeting_id = await asyncio.to_thread(self._load_meeting_id, message.session_id)
        if meeting_id is None:
            await self._reject(member, f"Session not found: {message.session_id}")
            return

        allowed = self.hub.is_member(candidate_room(message.session_id), member) or \
            self.hub.is_member(recruiter_room(meeting_id), member)
        if not allowed:
            await self._reject(member, "Only session participants may end it")
            return

        try:
            final_score = await asyncio.to_thread(self._finish, message.session_id)
        except SessionClosedError:
            logger.info("Session %s already ended", message.session_id)
            return

        await self.announce_end(meeting_id, message.session_id, final_score)

    async def announce_end(self, meeting_id: str, session_id: str, final_score: int) -> None:
        ended = SessionEnded(final_score=final_score).to_wire()
        await self.hub.publish(recruiter_room(meeting_id), ended)
        await self.hub.publish(candidate_room(session_id), ended)
