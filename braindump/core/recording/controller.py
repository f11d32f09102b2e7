"""Recording controller that drives the microphone for one journaling session."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

import numpy as np

from ...config import Settings, get_settings
from ...data.models import AudioClip
from ...data.storage import SessionStore
from ...logging import get_logger
from ...services.transcription.base import MissingInput, TranscriptionError
from ...services.transcription.dispatcher import TranscriptionDispatcher
from ...utils.audio import concatenate_chunks, duration_seconds, normalized_level
from ..audio.base import (
    AudioCapture,
    CaptureConstraints,
    CaptureError,
    MicrophonePermissionError,
    RecorderInitError,
)
from ..audio.formats import RecorderFormat, select_recorder_format
from .navigator import QuestionNavigator
from .scheduler import Scheduler, ThreadingScheduler, TimerHandle
from .state import KeyAction, KeyEvent, RecordingEvent, RecordingMachine, RecordingSnapshot, RecordingState, resolve_key

LOGGER = get_logger(__name__)

SAVE_FAILED_MESSAGE = "Failed to save recording. Please try again."
RECORDED_MESSAGE = "Response recorded successfully!"
ADVANCING_MESSAGE = "Moving to next question..."
METER_INTERVAL_SECONDS = 0.05


@dataclass
class Notification:
    level: str
    message: str


CaptureFactory = Callable[[CaptureConstraints], AudioCapture]


def _release(action: Callable[[], None], what: str) -> None:
    try:
        action()
    except Exception as exc:
        LOGGER.debug("Ignoring error while releasing %s: %s", what, exc)


class RecordingController:
    """Owns microphone resources and feeds events into a :class:`RecordingMachine`.

    Stopping tears down the level meter immediately but defers the capture
    stop by ``stop_flush_delay_seconds`` so the final buffered chunk is kept.
    With auto-advance on, the navigator moves to the next question before the
    clip is sent for transcription; the response is still stored against the
    question that was on screen when recording started.
    """

    def __init__(
        self,
        store: SessionStore,
        dispatcher: TranscriptionDispatcher,
        navigator: QuestionNavigator,
        user_id: str,
        session_id: str,
        capture_factory: CaptureFactory,
        api_key: Callable[[], Optional[str]],
        auto_advance: Callable[[], bool] = lambda: True,
        scheduler: Optional[Scheduler] = None,
        notify: Optional[Callable[[Notification], None]] = None,
        on_update: Optional[Callable[[RecordingSnapshot], None]] = None,
        format_selector: Optional[Callable[[], RecorderFormat]] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.store = store
        self.dispatcher = dispatcher
        self.navigator = navigator
        self.user_id = user_id
        self.session_id = session_id
        self.constraints = CaptureConstraints()
        self.machine = RecordingMachine(
            max_seconds=self.settings.max_recording_seconds,
            countdown_threshold=self.settings.countdown_threshold_seconds,
        )
        self._capture_factory = capture_factory
        self._api_key = api_key
        self._auto_advance = auto_advance
        self._scheduler = scheduler or ThreadingScheduler()
        self._notify_cb = notify
        self._on_update = on_update
        self._format_selector = format_selector or (
            lambda: select_recorder_format(self.settings.user_agent)
        )

        self._lock = threading.RLock()
        self._alive = True
        self._capture: Optional[AudioCapture] = None
        self._format: Optional[RecorderFormat] = None
        self._chunks: List[np.ndarray] = []
        self._question_id: Optional[str] = None
        self._meter: Optional[TimerHandle] = None
        self._countdown: Optional[TimerHandle] = None
        self._timers: List[TimerHandle] = []

    @property
    def state(self) -> RecordingState:
        return self.machine.state

    # ------------------------------------------------------------------
    # Start / stop
    # ------------------------------------------------------------------
    def start(self) -> bool:
        with self._lock:
            if not self._alive or self.machine.state != RecordingState.IDLE:
                return False
            question = self.navigator.current
            if question is None:
                self._notify("error", "No question selected")
                return False

            capture: Optional[AudioCapture] = None
            try:
                capture = self._capture_factory(self.constraints)
                recorder = self._format_selector()
            except MicrophonePermissionError as exc:
                LOGGER.warning("Microphone unavailable: %s", exc)
                self._notify("error", str(exc))
                return False
            except RecorderInitError as exc:
                LOGGER.error("Recorder initialisation failed: %s", exc)
                if capture is not None:
                    self._release_capture(capture)
                self._notify("error", str(exc))
                return False

            self._capture = capture
            self._format = recorder
            self._chunks = []
            self._question_id = question.id
            self.machine.start()
            self._meter = self._scheduler.call_every(METER_INTERVAL_SECONDS, self._pump)
            self._countdown = self._scheduler.call_every(1.0, self._tick)
            for handle in self._timers:
                _release(handle.cancel, "timer")
            self._timers = [self._scheduler.call_later(self.settings.warmup_seconds, self._end_warmup)]
            LOGGER.info("Recording answer to question %s (%s)", question.id, recorder.mime_type)
        self._emit()
        return True

    def stop(self, event: RecordingEvent = RecordingEvent.STOP) -> bool:
        """Request a stop; only the first request while recording has effect."""

        with self._lock:
            if not self._alive or not self.machine.request_stop(event):
                return False
            self._cancel_meter()
            self._timers.append(
                self._scheduler.call_later(self.settings.stop_flush_delay_seconds, self._flush)
            )
            LOGGER.info("Recording stopped (%s)", event.value)
        self._emit()
        return True

    def handle_key(self, event: KeyEvent) -> Optional[KeyAction]:
        action = resolve_key(event, self.machine.state, self.navigator.has_previous, self.navigator.has_next)
        if action == KeyAction.START:
            self.start()
        elif action == KeyAction.STOP:
            self.stop()
        elif action == KeyAction.PREVIOUS:
            self.navigator.previous()
        elif action == KeyAction.NEXT:
            self.navigator.next()
        return action

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------
    def _pump(self) -> None:
        with self._lock:
            if self._capture is None or self.machine.state != RecordingState.RECORDING:
                return
            try:
                last = self._drain(self._capture)
            except CaptureError as exc:
                LOGGER.error("Microphone stream failed: %s", exc)
                self._abort_take()
                return
            if last is not None:
                self.machine.level = normalized_level(last)
        self._emit()

    def _tick(self) -> None:
        with self._lock:
            reached_zero = self.machine.tick()
        if reached_zero:
            self.stop(RecordingEvent.TIMEOUT)
        else:
            self._emit()

    def _end_warmup(self) -> None:
        with self._lock:
            self.machine.clear_warmup()
        self._emit()

    def _drain(self, capture: AudioCapture) -> Optional[np.ndarray]:
        last: Optional[np.ndarray] = None
        while True:
            chunk = capture.read(timeout=0)
            if chunk is None:
                return last
            chunk = np.asarray(chunk, dtype=np.float32)
            self._chunks.append(chunk)
            last = chunk

    def _abort_take(self) -> None:
        capture, self._capture = self._capture, None
        self._cancel_meter()
        self._chunks = []
        if capture is not None:
            self._release_capture(capture)
        if self.machine.state == RecordingState.RECORDING and not self.machine.is_stopping:
            self.machine.abort()
        self._notify("error", SAVE_FAILED_MESSAGE)
        self._emit()

    def _cancel_meter(self) -> None:
        for handle in (self._meter, self._countdown):
            if handle is not None:
                _release(handle.cancel, "timer")
        self._meter = None
        self._countdown = None
        self.machine.level = 0.0

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------
    def _flush(self) -> None:
        with self._lock:
            if not self._alive:
                return
            capture, self._capture = self._capture, None
            sample_rate = self.settings.sample_rate
            channels = self.settings.channels
            if capture is not None:
                sample_rate = capture.info.sample_rate
                channels = capture.info.channels
                _release(capture.stop, "microphone")
                self._drain(capture)
                _release(capture.close, "microphone")
            chunks, self._chunks = self._chunks, []
            question_id = self._question_id
            recorder = self._format

        self._process(chunks, sample_rate, channels, question_id, recorder)

    def _build_clip(
        self, chunks: List[np.ndarray], sample_rate: int, channels: int, recorder: Optional[RecorderFormat]
    ) -> Optional[AudioClip]:
        frames = concatenate_chunks(chunks, channels)
        if frames.shape[0] == 0 or recorder is None:
            return None
        data = recorder.encoder.encode([frames], sample_rate, channels)
        return AudioClip(
            data=data,
            mime_type=recorder.mime_type,
            duration=duration_seconds(frames.shape[0], sample_rate),
        )

    def _process(
        self,
        chunks: List[np.ndarray],
        sample_rate: int,
        channels: int,
        question_id: Optional[str],
        recorder: Optional[RecorderFormat],
    ) -> None:
        try:
            clip = self._build_clip(chunks, sample_rate, channels, recorder)
        except Exception as exc:
            LOGGER.error("Failed to encode recording: %s", exc)
            self._fail(SAVE_FAILED_MESSAGE)
            return

        try:
            if clip is not None and self._auto_advance() and not self.navigator.is_last:
                self.navigator.next()
                self._notify("info", ADVANCING_MESSAGE)
            transcript = self.dispatcher.dispatch(clip, self._api_key())
        except (MissingInput, TranscriptionError) as exc:
            LOGGER.warning("Transcription failed: %s", exc)
            self._fail(str(exc))
            return
        except Exception as exc:
            LOGGER.error("Failed to process recording: %s", exc)
            self._fail(SAVE_FAILED_MESSAGE)
            return

        if not self._alive:
            LOGGER.debug("Dropping transcript for question %s; controller closed", question_id)
            return

        try:
            self.store.add_response(self.user_id, self.session_id, question_id or "", transcript)
        except Exception as exc:
            LOGGER.error("Failed to store response: %s", exc)
            self._fail(SAVE_FAILED_MESSAGE)
            return

        with self._lock:
            self.machine.finish(success=True)
        self._notify("info", RECORDED_MESSAGE)
        self._emit()

    def _fail(self, message: str) -> None:
        if not self._alive:
            return
        with self._lock:
            if self.machine.state == RecordingState.PROCESSING:
                self.machine.finish(success=False)
        self._notify("error", message)
        self._emit()

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------
    def close(self) -> None:
        """Release every resource; errors here are logged and ignored."""

        with self._lock:
            if not self._alive:
                return
            self._alive = False
            self._cancel_meter()
            for handle in self._timers:
                _release(handle.cancel, "timer")
            self._timers = []
            capture, self._capture = self._capture, None
        if capture is not None:
            self._release_capture(capture)
        LOGGER.debug("Recording controller for session %s closed", self.session_id)

    def _release_capture(self, capture: AudioCapture) -> None:
        _release(capture.stop, "microphone")
        _release(capture.close, "microphone")

    def __enter__(self) -> "RecordingController":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------
    def _notify(self, level: str, message: str) -> None:
        if self._notify_cb is not None:
            self._notify_cb(Notification(level=level, message=message))

    def _emit(self) -> None:
        if self._on_update is not None and self._alive:
            self._on_update(self.machine.snapshot())


__all__ = ["CaptureFactory", "Notification", "RecordingController"]
