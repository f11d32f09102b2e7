"""Audio capture package."""

from .base import (
    AudioCapture,
    CaptureConstraints,
    CaptureError,
    CaptureInfo,
    MicrophonePermissionError,
    RecorderInitError,
)

__all__ = [
    "AudioCapture",
    "CaptureConstraints",
    "CaptureError",
    "CaptureInfo",
    "MicrophonePermissionError",
    "RecorderInitError",
]
