"""Audio processing utilities."""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

LEVEL_GAIN = 1.5


def normalized_level(chunk: Optional[np.ndarray]) -> float:
    """Return the meter level of a chunk: average amplitude scaled into ``0..1``."""

    if chunk is None or chunk.size == 0:
        return 0.0
    average = float(np.mean(np.abs(chunk)))
    return min(average * LEVEL_GAIN, 1.0)


def concatenate_chunks(chunks: Sequence[np.ndarray], channels: int = 1) -> np.ndarray:
    """Join captured chunks into one ``(frames, channels)`` array."""

    shaped = [chunk if chunk.ndim == 2 else chunk.reshape(-1, 1) for chunk in chunks if chunk.size]
    if not shaped:
        return np.zeros((0, channels), dtype=np.float32)
    return np.concatenate(shaped, axis=0)


def duration_seconds(frames: int, sample_rate: int) -> float:
    if sample_rate <= 0:
        return 0.0
    return frames / float(sample_rate)


__all__ = ["concatenate_chunks", "duration_seconds", "normalized_level"]
