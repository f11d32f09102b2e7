"""Audio capture abstractions."""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Optional

import numpy as np


@dataclass
class CaptureInfo:
    """Metadata about the microphone stream."""

    name: str
    sample_rate: int
    channels: int
    device: Optional[str] = None


@dataclass(frozen=True)
class CaptureConstraints:
    """Processing requested from the platform when the microphone is opened."""

    echo_cancellation: bool = True
    noise_suppression: bool = True
    auto_gain_control: bool = True


class AudioCapture(abc.ABC):
    """Abstract capture stream that yields numpy chunks."""

    info: CaptureInfo

    @abc.abstractmethod
    def start(self) -> None:
        """Start the underlying capture stream."""

    @abc.abstractmethod
    def stop(self) -> None:
        """Stop the underlying capture stream."""

    @abc.abstractmethod
    def close(self) -> None:
        """Release all resources associated with the stream."""

    @abc.abstractmethod
    def read(self, timeout: Optional[float] = None) -> Optional[np.ndarray]:
        """Return the next available chunk or ``None`` if none ready."""


class CaptureError(RuntimeError):
    """Raised when audio capture cannot be initialised."""


class MicrophonePermissionError(PermissionError):
    """Raised when the microphone is denied or unavailable."""

    def __init__(self, message: str = "Failed to start recording. Please check your microphone permissions.") -> None:
        super().__init__(message)


class RecorderInitError(RuntimeError):
    """Raised when no recording format can be initialised."""

    def __init__(
        self, message: str = "Failed to initialize recording. Please try using a supported audio platform."
    ) -> None:
        super().__init__(message)


__all__ = [
    "AudioCapture",
    "CaptureConstraints",
    "CaptureError",
    "CaptureInfo",
    "MicrophonePermissionError",
    "RecorderInitError",
]
