import logging
from typing import Callable, Optional

from app.utils.enums import CallChannel, CallState

logger = logging.getLogger(__name__)

TRANSITIONS = {
    CallState.IDLE: {CallState.WAITING, CallState.ENDED, CallState.ERROR},
    CallState.WAITING: {CallState.CONNECTING, CallState.ENDED, CallState.ERROR},
    CallState.CONNECTING: {CallState.CONNECTED, CallState.ENDED, CallState.ERROR},
    CallState.CONNECTED: {CallState.ENDED, CallState.ERROR},
    # Restart is manual: start again from waiting
    CallState.ENDED: {CallState.WAITING, CallState.ERROR},
    CallState.ERROR: {CallState.WAITING, CallState.ENDED},
}

StateListener = Callable[[CallChannel, CallState], None]


class InvalidCallTransition(Exception):
    def __init__(self, channel: CallChannel, current: CallState, target: CallState):
        super().__init__(f"{channel.value}: cannot go from {current.value} to {target.value}")
        self.channel = channel
        self.current = current
        self.target = target


class CallStateMachine:
    """State of one call channel. Re-entering the current state is a no-op."""

    def __init__(self, channel: CallChannel, listener: Optional[StateListener] = None):
        self.channel = channel
        self.state = CallState.IDLE
        self._listener = listener

    def can(self, target: CallState) -> bool:
        return target == self.state or target in TRANSITIONS[self.state]

    def to(self, target: CallState) -> bool:
        """Move to ``target``. Returns False when already there."""
        if target == self.state:
            return False
        if target not in TRANSITIONS[self.state]:
            raise InvalidCallTransition(self.channel, self.state, target)

        logger.debug("%s channel: %s -> %s", self.channel.value, self.state.value, target.value)
        self.state = target
        if self._listener is not None:
            self._listener(self.channel, target)
        return True

    @property
    def finished(self) -> bool:
        return self.state in (CallState.ENDED, CallState.ERROR)
