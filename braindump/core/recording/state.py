"""Pure recording state machine, countdown and key bindings.

Nothing in this module touches audio hardware or timers; the controller
feeds it events and renders what it reports.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict, Optional, Tuple


class RecordingState(str, enum.Enum):
    IDLE = "idle"
    RECORDING = "recording"
    PROCESSING = "processing"


class RecordingEvent(str, enum.Enum):
    START = "start"
    STOP = "stop"
    TIMEOUT = "timeout"
    FINISHED = "finished"
    FAILED = "failed"


class InvalidTransition(RuntimeError):
    def __init__(self, state: RecordingState, event: RecordingEvent) -> None:
        super().__init__(f"Cannot apply {event.value} while {state.value}")
        self.state = state
        self.event = event


_TRANSITIONS: Dict[Tuple[RecordingState, RecordingEvent], RecordingState] = {
    (RecordingState.IDLE, RecordingEvent.START): RecordingState.RECORDING,
    (RecordingState.RECORDING, RecordingEvent.STOP): RecordingState.PROCESSING,
    (RecordingState.RECORDING, RecordingEvent.TIMEOUT): RecordingState.PROCESSING,
    (RecordingState.RECORDING, RecordingEvent.FAILED): RecordingState.IDLE,
    (RecordingState.PROCESSING, RecordingEvent.FINISHED): RecordingState.IDLE,
    (RecordingState.PROCESSING, RecordingEvent.FAILED): RecordingState.IDLE,
}


def transition(state: RecordingState, event: RecordingEvent) -> RecordingState:
    """Return the state reached by applying ``event``; raise on illegal moves."""

    try:
        return _TRANSITIONS[(RecordingState(state), RecordingEvent(event))]
    except KeyError:
        raise InvalidTransition(RecordingState(state), RecordingEvent(event)) from None


@dataclass
class RecordingSnapshot:
    state: RecordingState
    remaining_seconds: int
    level: float
    warming_up: bool
    countdown_visible: bool


class RecordingMachine:
    """Recording state plus the countdown, warm-up flag and stopping guard."""

    def __init__(self, max_seconds: int = 300, countdown_threshold: int = 60) -> None:
        self.max_seconds = max_seconds
        self.countdown_threshold = countdown_threshold
        self.state = RecordingState.IDLE
        self.remaining_seconds = max_seconds
        self.level = 0.0
        self.warming_up = False
        self._stopping = False

    def apply(self, event: RecordingEvent) -> RecordingState:
        self.state = transition(self.state, event)
        return self.state

    def start(self) -> None:
        self.apply(RecordingEvent.START)
        self.remaining_seconds = self.max_seconds
        self.warming_up = True
        self._stopping = False

    def request_stop(self, event: RecordingEvent = RecordingEvent.STOP) -> bool:
        """Move to processing once; later requests return ``False``."""

        if self._stopping or self.state != RecordingState.RECORDING:
            return False
        self._stopping = True
        self.apply(event)
        self.level = 0.0
        return True

    def finish(self, success: bool) -> None:
        self.apply(RecordingEvent.FINISHED if success else RecordingEvent.FAILED)
        self._reset()

    def abort(self) -> None:
        """Return to idle from recording when capture breaks mid-take."""

        self.apply(RecordingEvent.FAILED)
        self._reset()

    def _reset(self) -> None:
        self._stopping = False
        self.remaining_seconds = self.max_seconds
        self.level = 0.0
        self.warming_up = False

    def tick(self) -> bool:
        """Advance the countdown by one second; ``True`` when it reached zero."""

        if self.state != RecordingState.RECORDING or self._stopping:
            return False
        self.remaining_seconds = max(self.remaining_seconds - 1, 0)
        return self.remaining_seconds == 0

    def clear_warmup(self) -> None:
        self.warming_up = False

    @property
    def is_stopping(self) -> bool:
        return self._stopping

    @property
    def countdown_visible(self) -> bool:
        return self.state == RecordingState.RECORDING and self.remaining_seconds <= self.countdown_threshold

    def snapshot(self) -> RecordingSnapshot:
        return RecordingSnapshot(
            state=self.state,
            remaining_seconds=self.remaining_seconds,
            level=self.level,
            warming_up=self.warming_up,
            countdown_visible=self.countdown_visible,
        )


class KeyAction(str, enum.Enum):
    START = "start"
    STOP = "stop"
    PREVIOUS = "previous"
    NEXT = "next"


TOGGLE_KEY = "Space"
PREVIOUS_KEY = "ArrowLeft"
NEXT_KEY = "ArrowRight"


@dataclass(frozen=True)
class KeyEvent:
    code: str
    repeat: bool = False
    ctrl: bool = False
    alt: bool = False
    shift: bool = False
    meta: bool = False

    @property
    def has_modifier(self) -> bool:
        return self.ctrl or self.alt or self.shift or self.meta


def resolve_key(
    event: KeyEvent, state: RecordingState, has_previous: bool, has_next: bool
) -> Optional[KeyAction]:
    """Map a key press to a recording or navigation action, if any."""

    if event.code == TOGGLE_KEY:
        if event.repeat or event.has_modifier:
            return None
        if state == RecordingState.IDLE:
            return KeyAction.START
        if state == RecordingState.RECORDING:
            return KeyAction.STOP
        return None

    if state != RecordingState.IDLE:
        return None
    if event.code == PREVIOUS_KEY and has_previous:
        return KeyAction.PREVIOUS
    if event.code == NEXT_KEY and has_next:
        return KeyAction.NEXT
    return None


__all__ = [
    "InvalidTransition",
    "KeyAction",
    "KeyEvent",
    "NEXT_KEY",
    "PREVIOUS_KEY",
    "RecordingEvent",
    "RecordingMachine",
    "RecordingSnapshot",
    "RecordingState",
    "TOGGLE_KEY",
    "resolve_key",
    "transition",
]
