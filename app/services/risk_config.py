from app.utils.enums import EventType

BASE_SCORE = 100

EVENT_WEIGHTS = {
    # Behavioral
    EventType.TAB_SWITCH: {
        "weight": 10,
        "description": "Candidate switched browser tab",
    },
    EventType.PASTE_ATTEMPT: {
        "weight": 20,
        "description": "Large paste detected in answer",
    },
    EventType.FULLSCREEN_EXIT: {
        "weight": 15,
        "description": "Candidate exited fullscreen mode",
    },
    EventType.WORD_BURST: {
        "weight": 25,
        "description": "Large block of words inserted in under 2 seconds",
    },
    EventType.WINDOW_BLUR: {
        "weight": 8,
        "description": "Browser window lost focus",
    },
    EventType.LONG_DELAY: {
        "weight": 10,
        "description": "Unusually long response delay detected",
    },
    EventType.TYPING_FAST: {
        "weight": 5,
        "description": "Abnormally fast typing speed detected",
    },
    # Coding anti-cheat
    EventType.CODE_PASTE: {
        "weight": 30,
        "description": "Large code block pasted into editor",
    },
    EventType.DEVTOOLS_OPEN: {
        "weight": 35,
        "description": "Browser DevTools opened during session",
    },
    EventType.RIGHT_CLICK_ATTEMPT: {
        "weight": 8,
        "description": "Right-click attempted in code editor",
    },
    EventType.KEYBOARD_SHORTCUT_CHEAT: {
        "weight": 20,
        "description": "Cheat keyboard shortcut (F12/Ctrl+U) detected",
    },
    EventType.AI_PATTERN_DETECTED: {
        "weight": 40,
        "description": "AI-generated code pattern detected (rapid, large insertion)",
    },
    EventType.RAPID_SOLUTION: {
        "weight": 25,
        "description": "Full solution appeared in under 30 seconds",
    },
    # Camera anti-cheat
    EventType.FACE_NOT_DETECTED: {
        "weight": 20,
        "description": "Candidate face not visible in camera",
    },
    EventType.MULTIPLE_FACES_DETECTED: {
        "weight": 45,
        "description": "Multiple faces detected, possible external assistance",
    },
    EventType.GAZE_AWAY: {
        "weight": 12,
        "description": "Candidate repeatedly looking away from screen",
    },
}

# Flat pattern penalty once window blur repeats
BLUR_REPEAT_THRESHOLD = 3
BLUR_REPEAT_PENALTY = 15

# Occurrences beyond the threshold are escalated by the multiplier
REPEAT_CHEAT_THRESHOLD = 2
REPEAT_CHEAT_MULTIPLIER = 1.5

CRITICAL_CHEAT_EVENTS = frozenset({
    EventType.CODE_PASTE,
    EventType.DEVTOOLS_OPEN,
    EventType.AI_PATTERN_DETECTED,
    EventType.MULTIPLE_FACES_DETECTED,
    EventType.FACE_NOT_DETECTED,
})

# Always alert on these, regardless of severity
ALERT_ALWAYS_EVENTS = CRITICAL_CHEAT_EVENTS | {
    EventType.RAPID_SOLUTION,
    EventType.KEYBOARD_SHORTCUT_CHEAT,
}

INTEGRITY_THRESHOLDS = {
    "high": 75,
    "moderate": 45,
}
