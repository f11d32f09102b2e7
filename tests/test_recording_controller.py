"""Tests for the microphone-driven recording controller."""

from __future__ import annotations

import threading

import numpy as np
import pytest

from braindump.config import Settings
from braindump.core.audio.base import CaptureError, MicrophonePermissionError, RecorderInitError
from braindump.core.audio.formats import RecorderFormat, WavEncoder
from braindump.core.recording.controller import (
    ADVANCING_MESSAGE,
    RECORDED_MESSAGE,
    SAVE_FAILED_MESSAGE,
    RecordingController,
)
from braindump.core.recording.navigator import QuestionNavigator
from braindump.core.recording.scheduler import ThreadingScheduler
from braindump.core.recording.state import KeyEvent, RecordingEvent, RecordingState
from braindump.data.storage import SessionStore
from braindump.services.transcription.base import TranscriptionService
from braindump.services.transcription.dispatcher import TranscriptionDispatcher


class ScriptedTranscription(TranscriptionService):
    def __init__(self, text="My answer", on_call=None) -> None:
        self.text = text
        self.on_call = on_call
        self.calls = []

    def transcribe(self, clip, api_key):
        self.calls.append(clip)
        if self.on_call is not None:
            self.on_call()
        return self.text


class Harness:
    def __init__(self, tmp_path, scheduler, capture, question_count=3, auto_advance=True, **overrides):
        self.store = SessionStore(tmp_path / "braindump.db")
        self.store.initialize()
        self.session = self.store.create_session(
            "user-1", [f"Question {i}?" for i in range(question_count)], "Session"
        )
        self.navigator = QuestionNavigator(self.session.questions)
        self.service = ScriptedTranscription()
        self.capture = capture
        self.notifications = []
        self.snapshots = []
        self.settings = Settings(
            data_dir=tmp_path,
            max_recording_seconds=overrides.pop("max_recording_seconds", 300),
            countdown_threshold_seconds=60,
        )
        self.capture_factory = overrides.pop("capture_factory", lambda constraints: self.capture)
        self.controller = RecordingController(
            store=self.store,
            dispatcher=TranscriptionDispatcher(self.service),
            navigator=self.navigator,
            user_id="user-1",
            session_id=self.session.id,
            capture_factory=self.capture_factory,
            api_key=overrides.pop("api_key", lambda: "sk-test"),
            auto_advance=lambda: auto_advance,
            scheduler=scheduler,
            notify=self.notifications.append,
            on_update=self.snapshots.append,
            format_selector=overrides.pop(
                "format_selector", lambda: RecorderFormat("audio/wav", WavEncoder(), "wav")
            ),
            settings=self.settings,
        )

    def responses(self, index):
        session = self.store.fetch_session("user-1", self.session.id)
        return [r.transcription for r in session.questions[index].responses]

    def messages(self, level=None):
        return [n.message for n in self.notifications if level is None or n.level == level]


def _speech():
    return np.full((1600, 1), 0.2, dtype=np.float32)


def test_full_take_stores_response_and_advances_first(tmp_path, scheduler, make_capture):
    harness = Harness(tmp_path, scheduler, make_capture([_speech()]))
    seen_index = []
    harness.service.on_call = lambda: seen_index.append(harness.navigator.index)

    assert harness.controller.start() is True
    assert harness.controller.state == RecordingState.RECORDING

    scheduler.fire_every(0.05)
    assert harness.snapshots[-1].level == pytest.approx(0.3)

    harness.capture.push(_speech())
    assert harness.controller.stop() is True
    assert harness.controller.state == RecordingState.PROCESSING
    scheduler.run_pending()

    assert harness.controller.state == RecordingState.IDLE
    assert seen_index == [1]
    assert harness.responses(0) == ["My answer"]
    assert harness.messages() == [ADVANCING_MESSAGE, RECORDED_MESSAGE]
    assert harness.service.calls[0].mime_type == "audio/wav"
    assert harness.service.calls[0].duration == pytest.approx(0.2)


def test_double_stop_tears_down_once(tmp_path, scheduler, make_capture):
    harness = Harness(tmp_path, scheduler, make_capture([_speech()]))
    harness.controller.start()

    assert harness.controller.stop() is True
    assert harness.controller.stop() is False
    assert harness.controller.stop(RecordingEvent.TIMEOUT) is False
    scheduler.run_pending()

    assert harness.capture.stop_calls == 1
    assert harness.capture.close_calls == 1
    assert len(harness.service.calls) == 1


def test_stop_cancels_meter_immediately(tmp_path, scheduler, make_capture):
    harness = Harness(tmp_path, scheduler, make_capture([_speech()]))
    harness.controller.start()

    harness.controller.stop()

    assert scheduler.active(repeating=True) == []
    assert harness.capture.stop_calls == 0
    assert harness.snapshots[-1].level == 0.0


def test_empty_recording_returns_to_idle(tmp_path, scheduler, make_capture):
    harness = Harness(tmp_path, scheduler, make_capture([]))
    harness.controller.start()
    harness.controller.stop()
    scheduler.run_pending()

    assert harness.controller.state == RecordingState.IDLE
    assert harness.navigator.index == 0
    assert harness.messages("error") == ["No audio file provided"]
    assert harness.service.calls == []
    assert harness.responses(0) == []


def test_auto_advance_off_and_last_question(tmp_path, scheduler, make_capture):
    harness = Harness(tmp_path, scheduler, make_capture([_speech()]), question_count=2, auto_advance=False)
    harness.controller.start()
    harness.controller.stop()
    scheduler.run_pending()
    assert harness.navigator.index == 0

    harness.navigator.go_to(1)
    harness.capture.push(_speech())
    harness.controller.start()
    harness.controller.stop()
    scheduler.run_pending()

    assert harness.navigator.index == 1
    assert harness.responses(1) == ["My answer"]
    assert ADVANCING_MESSAGE not in harness.messages()


def test_result_after_close_is_dropped(tmp_path, scheduler, make_capture):
    harness = Harness(tmp_path, scheduler, make_capture([_speech()]))
    harness.service.on_call = harness.controller.close
    harness.controller.start()
    harness.controller.stop()

    scheduler.run_pending()

    assert harness.service.calls
    assert harness.responses(0) == []
    assert RECORDED_MESSAGE not in harness.messages()


def test_close_releases_microphone_and_timers(tmp_path, scheduler, make_capture):
    harness = Harness(tmp_path, scheduler, make_capture([_speech()]))
    harness.controller.start()

    harness.controller.close()
    harness.controller.close()

    assert harness.capture.stop_calls == 1
    assert harness.capture.close_calls == 1
    assert all(timer.cancelled for timer in scheduler.timers)
    assert harness.controller.start() is False


def test_permission_error_stays_idle(tmp_path, scheduler):
    def denied(constraints):
        raise MicrophonePermissionError()

    harness = Harness(tmp_path, scheduler, None, capture_factory=denied)

    assert harness.controller.start() is False
    assert harness.controller.state == RecordingState.IDLE
    assert harness.messages("error") == [
        "Failed to start recording. Please check your microphone permissions."
    ]


def test_recorder_init_error_releases_capture(tmp_path, scheduler, make_capture):
    def unsupported():
        raise RecorderInitError()

    harness = Harness(tmp_path, scheduler, make_capture([]), format_selector=unsupported)

    assert harness.controller.start() is False
    assert harness.capture.stop_calls == 1
    assert harness.capture.close_calls == 1
    assert harness.messages("error") == [
        "Failed to initialize recording. Please try using a supported audio platform."
    ]


def test_countdown_timeout_stops_recording(tmp_path, scheduler, make_capture):
    harness = Harness(tmp_path, scheduler, make_capture([_speech()]), max_recording_seconds=2)
    harness.controller.start()

    scheduler.fire_every(1.0)
    assert harness.controller.state == RecordingState.RECORDING
    assert harness.snapshots[-1].countdown_visible is True
    scheduler.fire_every(1.0)

    assert harness.controller.state == RecordingState.PROCESSING
    scheduler.run_pending()
    assert harness.responses(0) == ["My answer"]


def test_capture_failure_mid_take_aborts(tmp_path, scheduler, make_capture):
    harness = Harness(tmp_path, scheduler, make_capture([_speech()]))
    harness.controller.start()
    harness.capture.error = CaptureError("device unplugged")

    scheduler.fire_every(0.05)

    assert harness.controller.state == RecordingState.IDLE
    assert harness.capture.close_calls == 1
    assert harness.messages("error") == [SAVE_FAILED_MESSAGE]


def test_keys_drive_recording_and_navigation(tmp_path, scheduler, make_capture):
    harness = Harness(tmp_path, scheduler, make_capture([_speech()]))

    harness.controller.handle_key(KeyEvent("ArrowRight"))
    assert harness.navigator.index == 1

    harness.controller.handle_key(KeyEvent("Space"))
    assert harness.controller.state == RecordingState.RECORDING
    harness.controller.handle_key(KeyEvent("ArrowLeft"))
    assert harness.navigator.index == 1

    harness.controller.handle_key(KeyEvent("Space"))
    assert harness.controller.state == RecordingState.PROCESSING


def test_threading_scheduler_runs_and_cancels():
    fired = threading.Event()
    ticks = []
    scheduler = ThreadingScheduler()

    scheduler.call_later(0.01, fired.set)
    repeating = scheduler.call_every(0.01, lambda: ticks.append(1))
    cancelled = scheduler.call_later(5, lambda: ticks.append("late"))
    cancelled.cancel()

    assert fired.wait(2)
    repeating.cancel()
    assert "late" not in ticks


def test_unreadable_key_returns_to_idle(tmp_path, scheduler, make_capture):
    def broken_key():
        raise UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")

    harness = Harness(tmp_path, scheduler, make_capture([_speech()]), api_key=broken_key)
    harness.controller.start()
    harness.controller.stop()

    scheduler.run_pending()

    assert harness.controller.state == RecordingState.IDLE
    assert harness.messages("error") == [SAVE_FAILED_MESSAGE]
    assert harness.responses(0) == []
    harness.capture.push(_speech())
    assert harness.controller.start() is True


def test_pending_timers_do_not_accumulate_across_takes(tmp_path, scheduler, make_capture):
    harness = Harness(tmp_path, scheduler, make_capture([_speech()]), auto_advance=False)

    for _ in range(3):
        harness.capture.push(_speech())
        harness.controller.start()
        harness.controller.stop()
        scheduler.run_pending()

    harness.controller.start()

    assert len(harness.controller._timers) == 1
    assert harness.responses(0) == ["My answer"] * 3
