"""Microphone capture powered by sounddevice/PortAudio."""

from __future__ import annotations

import contextlib
import queue
from typing import List, Optional

import numpy as np

from ...logging import get_logger
from .base import AudioCapture, CaptureConstraints, CaptureInfo, MicrophonePermissionError

LOGGER = get_logger(__name__)

FALLBACK_SAMPLE_RATES = (48_000, 44_100, 32_000, 24_000, 16_000, 8_000)


class SoundDeviceCapture(AudioCapture):
    """Capture stream using the sounddevice library.

    PortAudio has no echo cancellation, noise suppression or gain control of
    its own, so the requested :class:`CaptureConstraints` are recorded on the
    instance and left to the operating system's input processing.
    """

    def __init__(
        self,
        info: CaptureInfo,
        device: Optional[int | str] = None,
        block_size: int = 1024,
        constraints: Optional[CaptureConstraints] = None,
        dtype: str = "float32",
    ) -> None:
        try:
            import sounddevice as sd
        except ImportError as exc:  # pragma: no cover - handled in tests
            raise MicrophonePermissionError(
                "sounddevice dependency is required for microphone capture"
            ) from exc

        self._sd = sd
        self.info = info
        self.constraints = constraints or CaptureConstraints()
        self._device = device
        self._block_size = block_size
        self._dtype = dtype
        self._queue: queue.Queue[np.ndarray] = queue.Queue()
        self._stream = None

    def _callback(self, indata, frames, time_info, status) -> None:  # pragma: no cover - executed in runtime
        if status:
            LOGGER.warning("sounddevice status: %s", status)
        self._queue.put(indata.copy())

    def start(self) -> None:
        if self._stream is not None:
            return
        LOGGER.info("Opening microphone %s (%s)", self._device or "default", self.constraints)

        last_error: Optional[Exception] = None
        requested_sample_rate = int(self.info.sample_rate)

        for sample_rate in self._sample_rate_candidates():
            try:
                stream = self._sd.InputStream(
                    samplerate=sample_rate,
                    channels=self.info.channels,
                    dtype=self._dtype,
                    blocksize=self._block_size,
                    device=self._device,
                    callback=self._callback,
                )
                stream.start()
            except self._sd.PortAudioError as exc:  # pragma: no cover - depends on runtime device
                last_error = exc
                if "sample rate" in str(exc).lower():
                    LOGGER.warning("Microphone rejected %s Hz: %s", sample_rate, exc)
                    continue
                raise MicrophonePermissionError() from exc

            self._stream = stream
            if sample_rate != requested_sample_rate:
                LOGGER.warning(
                    "Adjusted sample rate from %s Hz to %s Hz", requested_sample_rate, sample_rate
                )
            self.info.sample_rate = sample_rate
            return

        raise MicrophonePermissionError() from last_error

    def stop(self) -> None:
        if self._stream is not None:
            LOGGER.info("Stopping microphone capture")
            self._stream.stop()

    def close(self) -> None:
        if self._stream is not None:
            LOGGER.debug("Closing microphone stream")
            with contextlib.suppress(Exception):
                self._stream.close()
            self._stream = None

    def read(self, timeout: Optional[float] = None) -> Optional[np.ndarray]:
        try:
            if timeout is None or timeout <= 0:
                return self._queue.get_nowait()
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def _sample_rate_candidates(self) -> List[int]:
        candidates: List[int] = []
        if self.info.sample_rate:
            candidates.append(int(self.info.sample_rate))
        for rate in FALLBACK_SAMPLE_RATES:
            if rate not in candidates:
                candidates.append(rate)
        return candidates


def open_microphone(
    constraints: CaptureConstraints,
    sample_rate: int,
    channels: int,
    device: Optional[str] = None,
    block_size: int = 1024,
) -> SoundDeviceCapture:
    """Build and start a capture for the configured microphone."""

    parsed: Optional[int | str] = None
    if device and device.strip():
        parsed = int(device) if device.strip().isdigit() else device.strip()
    info = CaptureInfo(
        name="microphone",
        sample_rate=sample_rate,
        channels=channels,
        device="default" if parsed is None else str(parsed),
    )
    capture = SoundDeviceCapture(info=info, device=parsed, block_size=block_size, constraints=constraints)
    capture.start()
    return capture


__all__ = ["SoundDeviceCapture", "open_microphone"]
