from enum import Enum


class EventType(str, Enum):
    TAB_SWITCH = "tab_switch"
    WINDOW_BLUR = "window_blur"
    WINDOW_FOCUS = "window_focus"
    PASTE_ATTEMPT = "paste_attempt"
    FULLSCREEN_EXIT = "fullscreen_exit"
    FULLSCREEN_ENTER = "fullscreen_enter"
    WORD_BURST = "word_burst"
    LONG_DELAY = "long_delay"
    TYPING_FAST = "typing_fast"
    SESSION_START = "session_start"
    SESSION_END = "session_end"
    ANSWER_SUBMITTED = "answer_submitted"

    # Coding anti-cheat
    CODE_PASTE = "code_paste"
    DEVTOOLS_OPEN = "devtools_open"
    RIGHT_CLICK_ATTEMPT = "right_click_attempt"
    KEYBOARD_SHORTCUT_CHEAT = "keyboard_shortcut_cheat"
    AI_PATTERN_DETECTED = "ai_pattern_detected"
    RAPID_SOLUTION = "rapid_solution"
    CODE_SUBMITTED = "code_submitted"

    # Camera anti-cheat
    FACE_NOT_DETECTED = "face_not_detected"
    MULTIPLE_FACES_DETECTED = "multiple_faces_detected"
    GAZE_AWAY = "gaze_away"


class SeverityLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class MeetingStatus(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    ENDED = "ended"


class IntegrityTier(str, Enum):
    HIGH = "high"
    MODERATE = "moderate"
    LOW = "low"


class CodingLanguage(str, Enum):
    JAVASCRIPT = "javascript"
    PYTHON = "python"
    JAVA = "java"
    CPP = "cpp"
    TYPESCRIPT = "typescript"


class Role(str, Enum):
    CANDIDATE = "candidate"
    RECRUITER = "recruiter"


class CallChannel(str, Enum):
    PRIMARY = "primary"
    SCREEN = "screen"


class CallState(str, Enum):
    IDLE = "idle"
    WAITING = "waiting"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ENDED = "ended"
    ERROR = "error"
