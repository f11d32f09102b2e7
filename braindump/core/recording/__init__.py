"""Recording state machine and controller."""

from .controller import Notification, RecordingController
from .navigator import QuestionNavigator
from .state import InvalidTransition, KeyAction, KeyEvent, RecordingEvent, RecordingState, transition

__all__ = [
    "InvalidTransition",
    "KeyAction",
    "KeyEvent",
    "Notification",
    "QuestionNavigator",
    "RecordingController",
    "RecordingEvent",
    "RecordingState",
    "transition",
]
