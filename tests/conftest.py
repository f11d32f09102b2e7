"""Shared fixtures for braindump tests."""

from __future__ import annotations

import os
import queue
from typing import Callable, List, Optional

import numpy as np
import pytest

from braindump import config
from braindump.core.audio.base import AudioCapture, CaptureInfo
from braindump.core.recording.scheduler import Scheduler, TimerHandle


@pytest.fixture(autouse=True)
def settings(monkeypatch, tmp_path) -> config.Settings:
    """Point every test at its own data directory and ``.env`` file."""

    for key in list(os.environ):
        if key.startswith("BRAINDUMP_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(config, "_ENV_PATH", tmp_path / ".env")
    current = config.Settings(data_dir=tmp_path / "data")
    monkeypatch.setattr(config, "_settings", current)
    return current


class ManualTimer(TimerHandle):
    def __init__(self, interval: float, callback: Callable[[], None], repeating: bool) -> None:
        self.interval = interval
        self.callback = callback
        self.repeating = repeating
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(Scheduler):
    """Scheduler whose timers only fire when a test asks them to."""

    def __init__(self) -> None:
        self.timers: List[ManualTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = ManualTimer(delay, callback, repeating=False)
        self.timers.append(timer)
        return timer

    def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        timer = ManualTimer(interval, callback, repeating=True)
        self.timers.append(timer)
        return timer

    def active(self, repeating: Optional[bool] = None) -> List[ManualTimer]:
        return [
            timer
            for timer in self.timers
            if not timer.cancelled
            and not timer.fired
            and (repeating is None or timer.repeating == repeating)
        ]

    def run_pending(self) -> None:
        """Fire every outstanding one-shot timer, including ones they schedule."""

        pending = self.active(repeating=False)
        while pending:
            for timer in pending:
                timer.fired = True
                timer.callback()
            pending = self.active(repeating=False)

    def fire_every(self, interval: float) -> None:
        for timer in self.active(repeating=True):
            if timer.interval == interval:
                timer.callback()


class FakeCapture(AudioCapture):
    def __init__(self, chunks: Optional[List[np.ndarray]] = None, sample_rate: int = 16_000) -> None:
        self.info = CaptureInfo(name="fake", sample_rate=sample_rate, channels=1)
        self._queue: "queue.Queue[np.ndarray]" = queue.Queue()
        for chunk in chunks or []:
            self._queue.put(chunk)
        self.error: Optional[Exception] = None
        self.start_calls = 0
        self.stop_calls = 0
        self.close_calls = 0

    def push(self, chunk: np.ndarray) -> None:
        self._queue.put(chunk)

    def start(self) -> None:
        self.start_calls += 1

    def stop(self) -> None:
        self.stop_calls += 1

    def close(self) -> None:
        self.close_calls += 1

    def read(self, timeout: Optional[float] = None) -> Optional[np.ndarray]:
        if self.error is not None:
            raise self.error
        try:
            return self._queue.get_nowait()
        except queue.Empty:
            return None


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def make_capture() -> Callable[..., FakeCapture]:
    return FakeCapture
