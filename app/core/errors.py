class SessionNotFoundError(ValueError):
    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class MeetingNotFoundError(ValueError):
    def __init__(self, meeting_id: str):
        super().__init__(f"Meeting not found: {meeting_id}")
        self.meeting_id = meeting_id


class SessionClosedError(ValueError):
    """Raised when a signal arrives for a session that has already ended."""

    def __init__(self, session_id: str):
        super().__init__(f"Session already ended: {session_id}")
        self.session_id = session_id


class InvalidStateError(ValueError):
    pass
