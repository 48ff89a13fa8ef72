"""
Host handles that detectors attach to.

The presentation layer translates real UI/input events into ``HostEvent``
objects and dispatches them on these targets; detectors never see the UI
toolkit itself.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)

Listener = Callable[["HostEvent"], None]


@dataclass
class HostEvent:
    type: str
    key: Optional[str] = None
    ctrl_key: bool = False
    shift_key: bool = False
    clipboard_text: Optional[str] = None
    default_prevented: bool = False

    def prevent_default(self) -> None:
        self.default_prevented = True


class EventTarget:
    def __init__(self):
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def add_listener(self, event_type: str, listener: Listener) -> None:
        self._listeners[event_type].append(listener)

    def remove_listener(self, event_type: str, listener: Listener) -> None:
        listeners = self._listeners.get(event_type, [])
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event_type: Optional[str] = None) -> int:
        if event_type is not None:
            return len(self._listeners.get(event_type, []))
        return sum(len(listeners) for listeners in self._listeners.values())

    def dispatch(self, event: HostEvent) -> HostEvent:
        for listener in list(self._listeners.get(event.type, [])):
            listener(event)
        return event


class Page(EventTarget):
    """The candidate's page: visibility, focus, fullscreen and window geometry."""

    def __init__(
        self,
        request_fullscreen: Optional[Callable[[], None]] = None,
        exit_fullscreen: Optional[Callable[[], None]] = None,
    ):
        super().__init__()
        self.hidden = False
        self.fullscreen = False
        self.outer_size = (0, 0)
        self.inner_size = (0, 0)
        self._request_fullscreen = request_fullscreen
        self._exit_fullscreen = exit_fullscreen

    def request_fullscreen(self) -> None:
        if self._request_fullscreen is None:
            raise RuntimeError("Fullscreen is not supported by this host")
        self._request_fullscreen()

    def exit_fullscreen(self) -> None:
        if self._exit_fullscreen is not None:
            self._exit_fullscreen()

    # Helpers used by host adapters to report state changes

    def set_hidden(self, hidden: bool) -> None:
        self.hidden = hidden
        self.dispatch(HostEvent("visibilitychange"))

    def set_fullscreen(self, fullscreen: bool) -> None:
        self.fullscreen = fullscreen
        self.dispatch(HostEvent("fullscreenchange"))

    def resize(self, outer: tuple[int, int], inner: tuple[int, int]) -> None:
        self.outer_size = outer
        self.inner_size = inner


class InputElement(EventTarget):
    """A text area: the free-text answer box or the code editor."""

    def __init__(self, value: str = ""):
        super().__init__()
        self.value = value
        self.attributes: dict[str, str] = {}
