"""Interactive console UI for answering journaling questions."""

from __future__ import annotations

from collections import deque
from typing import Callable, Deque, Optional

from ..core.audio.base import AudioCapture, CaptureConstraints
from ..core.pipeline.orchestrator import JournalOrchestrator
from ..core.recording.controller import Notification, RecordingController
from ..core.recording.navigator import QuestionNavigator
from ..core.recording.state import (
    NEXT_KEY,
    PREVIOUS_KEY,
    TOGGLE_KEY,
    KeyEvent,
    RecordingSnapshot,
    RecordingState,
)
from ..data.live import LiveSession
from ..data.models import Session
from ..logging import get_logger

LOGGER = get_logger(__name__)

# Line commands stand in for key presses since the terminal is line buffered.
KEY_COMMANDS = {
    "": TOGGLE_KEY,
    "r": TOGGLE_KEY,
    "record": TOGGLE_KEY,
    "s": TOGGLE_KEY,
    "stop": TOGGLE_KEY,
    "p": PREVIOUS_KEY,
    "prev": PREVIOUS_KEY,
    "n": NEXT_KEY,
    "next": NEXT_KEY,
}


class JournalConsoleUI:
    """Walk through a session's questions and record spoken answers."""

    def __init__(
        self,
        orchestrator: JournalOrchestrator,
        session: Session,
        capture_factory: Callable[[CaptureConstraints], AudioCapture],
    ) -> None:
        self._orchestrator = orchestrator
        self._session = session
        self._messages: Deque[str] = deque()
        self._snapshot: Optional[RecordingSnapshot] = None
        self._running = True
        self.navigator = QuestionNavigator(session.questions)
        self._live = LiveSession(
            orchestrator.store,
            orchestrator.user_id,
            session.id,
            on_change=self._handle_session_change,
            on_error=self._error,
        )
        self.controller: RecordingController = orchestrator.recording_controller(
            session,
            self.navigator,
            capture_factory,
            notify=self._handle_notification,
            on_update=self._handle_update,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def run(self) -> None:
        self._info(f"Journaling session: {self._session.title}. Press Enter to start or stop recording.")
        self._live.start()
        try:
            while self._running:
                self._flush_messages()
                self._print_question()
                try:
                    choice = input("> ").strip().lower()
                except (KeyboardInterrupt, EOFError):
                    print()
                    choice = "q"
                self.handle_command(choice)
        finally:
            self.controller.close()
            self._live.close()
            LOGGER.debug("Console for session %s closed", self._session.id)
            self._flush_messages()
            print("Goodbye!")

    def handle_command(self, choice: str) -> None:
        if choice in KEY_COMMANDS:
            action = self.controller.handle_key(KeyEvent(KEY_COMMANDS[choice]))
            if action is None and choice in {"p", "prev", "n", "next"}:
                self._info("Navigation is only available while idle and when another question exists.")
        elif choice in {"a", "auto"}:
            keys = self._orchestrator.keys
            keys.auto_advance = not keys.auto_advance
            self._info(f"Auto-advance {'enabled' if keys.auto_advance else 'disabled'}.")
        elif choice in {"x", "delete"}:
            self._delete_latest_response()
        elif choice in {"e", "export"}:
            print()
            print(self._orchestrator.export(self._session.id))
        elif choice in {"q", "quit", "exit"}:
            self._running = False
        else:
            self._info("Unknown command.")

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------
    def _handle_session_change(self, session: Session) -> None:
        self._session = session
        self.navigator.update(session.questions)

    def _handle_notification(self, notification: Notification) -> None:
        if notification.level == "error":
            self._error(notification.message)
        else:
            self._info(notification.message)

    def _handle_update(self, snapshot: RecordingSnapshot) -> None:
        self._snapshot = snapshot

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _delete_latest_response(self) -> None:
        question = self.navigator.current
        if question is None or question.latest_response is None:
            self._info("No response to delete.")
            return
        self._orchestrator.store.delete_response(
            self._orchestrator.user_id, self._session.id, question.id, question.latest_response.id
        )
        self._info("Response deleted.")

    def _status_line(self) -> str:
        snapshot = self._snapshot
        if snapshot is None or snapshot.state == RecordingState.IDLE:
            return "idle"
        if snapshot.state == RecordingState.PROCESSING:
            return "processing..."
        meter = "#" * int(round(snapshot.level * 10))
        status = f"recording [{meter:<10}]"
        if snapshot.warming_up:
            status += " warming up"
        if snapshot.countdown_visible:
            minutes, seconds = divmod(snapshot.remaining_seconds, 60)
            status += f" {minutes}:{seconds:02d} left"
        return status

    def _print_question(self) -> None:
        question = self.navigator.current
        print()
        if question is None:
            print("This session has no questions.")
            return
        print(f"Question {self.navigator.index + 1} of {self.navigator.total}: {question.text}")
        latest = question.latest_response
        if latest is not None:
            print(f"Latest answer: {latest.transcription}")
        print(f"Status: {self._status_line()}")
        print("Enter) record/stop  p) previous  n) next  a) auto-advance  x) delete answer  e) export  q) quit")

    def _info(self, message: str) -> None:
        self._messages.append(f"[info] {message}")

    def _error(self, message: str) -> None:
        self._messages.append(f"[error] {message}")

    def _flush_messages(self) -> None:
        while self._messages:
            print(self._messages.popleft())


__all__ = ["JournalConsoleUI", "KEY_COMMANDS"]
