"""Timer primitives used by the recording controller."""

from __future__ import annotations

import abc
import threading
from typing import Callable

from ...logging import get_logger

LOGGER = get_logger(__name__)


class TimerHandle(abc.ABC):
    @abc.abstractmethod
    def cancel(self) -> None:
        raise NotImplementedError


class Scheduler(abc.ABC):
    """Schedules one-shot and repeating callbacks."""

    @abc.abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        raise NotImplementedError

    @abc.abstractmethod
    def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        raise NotImplementedError


class _OneShot(TimerHandle):
    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self._timer = threading.Timer(delay, callback)
        self._timer.daemon = True
        self._timer.start()

    def cancel(self) -> None:
        self._timer.cancel()


class _Repeating(TimerHandle):
    def __init__(self, interval: float, callback: Callable[[], None]) -> None:
        self._interval = interval
        self._callback = callback
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self._callback()
            except Exception:  # pragma: no cover - logged for visibility
                LOGGER.exception("Repeating timer callback failed")

    def cancel(self) -> None:
        self._stop.set()


class ThreadingScheduler(Scheduler):
    """Scheduler backed by daemon threads."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return _OneShot(delay, callback)

    def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        return _Repeating(interval, callback)


__all__ = ["Scheduler", "ThreadingScheduler", "TimerHandle"]
