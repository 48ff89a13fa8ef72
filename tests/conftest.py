"""
Pytest configuration: in-memory database, app factory and host/media fakes
"""
import asyncio

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import get_db, init_db
from app.services import meeting_service


# Database

@pytest.fixture
def engine():
    """Fresh in-memory database per test"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def meeting(db):
    return meeting_service.create_meeting(db, "Riya")


@pytest.fixture
def candidate_session(db, meeting):
    return meeting_service.create_session(db, meeting.id, "Arjun")


# App

@pytest.fixture
def app(session_factory):
    """FastAPI app wired to the test database"""
    from app.main import create_app

    application = create_app(session_factory=session_factory)

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    application.dependency_overrides[get_db] = override_get_db
    return application


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


# Detector host fakes

class FakeScheduler:
    """Manual clock and timer queue. ``advance`` fires due timers in order."""

    def __init__(self, start_ms: float = 1000.0):
        self.now = start_ms
        self._timers = []

    def clock(self) -> float:
        return self.now

    def call_later(self, delay_ms, callback):
        return self._add(delay_ms, None, callback)

    def call_every(self, interval_ms, callback):
        return self._add(interval_ms, interval_ms, callback)

    def _add(self, delay_ms, interval_ms, callback):
        timer = {"due": self.now + delay_ms, "interval": interval_ms, "callback": callback, "active": True}
        self._timers.append(timer)

        def cancel():
            timer["active"] = False

        return cancel

    def active_count(self) -> int:
        return sum(1 for timer in self._timers if timer["active"])

    def advance(self, ms: float) -> None:
        target = self.now + ms
        while True:
            due = [t for t in self._timers if t["active"] and t["due"] <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t["due"])
            self.now = timer["due"]
            if timer["interval"] is None:
                timer["active"] = False
            else:
                timer["due"] += timer["interval"]
            timer["callback"]()
        self.now = target


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def signals():
    """Collected detector output; pass ``signals.append`` as the sink"""
    return []


# Realtime fakes

class FakeMember:
    def __init__(self, member_id: str):
        self.id = member_id
        self.inbox = []
        self.alive = True

    async def deliver(self, message: dict) -> bool:
        if not self.alive:
            return False
        self.inbox.append(message)
        return True

    def of_type(self, kind: str) -> list:
        return [message for message in self.inbox if message["type"] == kind]

    def types(self) -> list:
        return [message["type"] for message in self.inbox]


@pytest.fixture
def member_factory():
    return FakeMember


# Media fakes

class FakeTrack:
    def __init__(self, kind: str):
        self.kind = kind
        self.enabled = True
        self.stopped = False
        self._ended_callbacks = []

    def stop(self):
        self.stopped = True

    def add_ended_callback(self, callback):
        self._ended_callbacks.append(callback)

    def end(self):
        self.stopped = True
        for callback in self._ended_callbacks:
            callback()


class FakeStream:
    def __init__(self, *kinds):
        self.tracks = [FakeTrack(kind) for kind in kinds]

    def get_tracks(self):
        return list(self.tracks)

    @property
    def all_stopped(self) -> bool:
        return all(track.stopped for track in self.tracks)


class FakeDevices:
    """
    ``camera``/``screen`` may be a stream, an exception to raise, or "hang".
    With a ``gate``, every request waits for the event before resolving.
    """

    def __init__(self, camera=None, screen=None, gate=None):
        self.camera = camera if camera is not None else FakeStream("audio", "video")
        self.screen = screen if screen is not None else FakeStream("video")
        self.gate = gate

    async def _resolve(self, outcome):
        if self.gate is not None:
            await self.gate.wait()
        if outcome == "hang":
            await asyncio.Event().wait()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def get_user_media(self, audio, video):
        return await self._resolve(self.camera)

    async def get_display_media(self):
        return await self._resolve(self.screen)


class FakePeer:
    def __init__(self, options, callbacks):
        self.options = options
        self.callbacks = callbacks
        self.received = []
        self.destroyed = False

    def signal(self, data):
        self.received.append(data)

    def destroy(self):
        self.destroyed = True
        self.callbacks.on_close()


class PeerRecorder:
    """Peer factory that keeps every peer it builds"""

    def __init__(self):
        self.peers = []

    def __call__(self, options, callbacks):
        peer = FakePeer(options, callbacks)
        self.peers.append(peer)
        return peer

    @property
    def last(self):
        return self.peers[-1]


@pytest.fixture
def media():
    class Media:
        Track = FakeTrack
        Stream = FakeStream
        Devices = FakeDevices

    return Media


@pytest.fixture
def peers():
    return PeerRecorder()
