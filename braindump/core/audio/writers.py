"""Utilities for writing PCM wave data."""

from __future__ import annotations

import io
import wave
from typing import BinaryIO, Iterable

import numpy as np


class WaveWriter:
    """Wave writer that accepts floating point numpy arrays into a binary stream."""

    def __init__(self, stream: BinaryIO, sample_rate: int, channels: int) -> None:
        self.channels = channels
        self._wave = wave.open(stream, "wb")
        self._wave.setnchannels(channels)
        self._wave.setsampwidth(2)  # 16-bit PCM
        self._wave.setframerate(sample_rate)

    def write(self, data: np.ndarray) -> None:
        if data.ndim == 1:
            data = data[:, np.newaxis]
        if data.shape[1] != self.channels:
            if data.shape[1] == 1 and self.channels == 2:
                data = np.repeat(data, 2, axis=1)
            elif self.channels == 1:
                data = data.mean(axis=1, keepdims=True)
            else:
                raise ValueError("Channel mismatch when writing audio")
        clipped = np.clip(data, -1.0, 1.0)
        as_int16 = (clipped * 32767.0).astype(np.int16)
        self._wave.writeframes(as_int16.tobytes())

    def close(self) -> None:
        self._wave.close()

    def __enter__(self) -> "WaveWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def wave_bytes(chunks: Iterable[np.ndarray], sample_rate: int, channels: int) -> bytes:
    """Return the chunks as an in-memory 16-bit PCM WAV file."""

    buffer = io.BytesIO()
    with WaveWriter(buffer, sample_rate, channels) as writer:
        for chunk in chunks:
            writer.write(chunk)
    return buffer.getvalue()


__all__ = ["WaveWriter", "wave_bytes"]
