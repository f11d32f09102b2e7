"""Recording format negotiation and clip encoding.

The policy mirrors a browser recorder: try a short list of compressed
containers, let a Safari engine use its default recorder untouched, and
otherwise fall back to WAV through an encoder registered once per process.
"""

from __future__ import annotations

import abc
import io
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

import numpy as np

from ...logging import get_logger
from ...utils.audio import concatenate_chunks
from .base import RecorderInitError
from .writers import wave_bytes

LOGGER = get_logger(__name__)

COMPRESSED_FORMATS: Tuple[str, ...] = (
    "audio/webm",
    "audio/webm;codecs=opus",
    "audio/ogg;codecs=opus",
)
WAV_MIME_TYPE = "audio/wav"

# libsndfile containers and subtypes for the compressed formats it can write.
_SOUNDFILE_FORMATS = {
    "audio/ogg;codecs=opus": ("OGG", "OPUS"),
}


class ClipEncoder(abc.ABC):
    mime_type: str

    @abc.abstractmethod
    def encode(self, chunks: Sequence[np.ndarray], sample_rate: int, channels: int) -> bytes:
        raise NotImplementedError


class WavEncoder(ClipEncoder):
    mime_type = WAV_MIME_TYPE

    def encode(self, chunks: Sequence[np.ndarray], sample_rate: int, channels: int) -> bytes:
        return wave_bytes(chunks, sample_rate, channels)


class SoundFileEncoder(ClipEncoder):
    """Compressed encoding through libsndfile."""

    def __init__(self, mime_type: str) -> None:
        if mime_type not in _SOUNDFILE_FORMATS:
            raise RecorderInitError(f"No encoder available for {mime_type}")
        self.mime_type = mime_type
        self.container, self.subtype = _SOUNDFILE_FORMATS[mime_type]

    def encode(self, chunks: Sequence[np.ndarray], sample_rate: int, channels: int) -> bytes:
        try:
            import soundfile as sf  # type: ignore
        except ImportError as exc:  # pragma: no cover - runtime dependency guard
            raise RuntimeError("soundfile package is required for compressed recordings") from exc

        buffer = io.BytesIO()
        data = concatenate_chunks(chunks, channels)
        sf.write(buffer, data, sample_rate, format=self.container, subtype=self.subtype)
        return buffer.getvalue()


def soundfile_supports(mime_type: str) -> bool:
    """Return ``True`` when the installed libsndfile can write ``mime_type``."""

    entry = _SOUNDFILE_FORMATS.get(mime_type)
    if entry is None:
        return False
    try:
        import soundfile as sf  # type: ignore
    except ImportError:
        LOGGER.debug("soundfile not installed; %s unavailable", mime_type)
        return False
    container, subtype = entry
    return subtype in sf.available_subtypes(container)


def is_safari(user_agent: Optional[str]) -> bool:
    ua = (user_agent or "").lower()
    return "safari" in ua and "chrome" not in ua


_wav_encoder: Optional[WavEncoder] = None
_wav_encoder_lock = threading.Lock()


def register_wav_encoder() -> WavEncoder:
    """Return the process-wide WAV encoder, registering it on first use."""

    global _wav_encoder
    with _wav_encoder_lock:
        if _wav_encoder is None:
            LOGGER.debug("Registering WAV encoder")
            _wav_encoder = WavEncoder()
        return _wav_encoder


def reset_wav_encoder() -> None:
    global _wav_encoder
    with _wav_encoder_lock:
        _wav_encoder = None


@dataclass
class RecorderFormat:
    mime_type: str
    encoder: ClipEncoder
    strategy: str


def select_recorder_format(
    user_agent: Optional[str] = None,
    is_type_supported: Optional[Callable[[str], bool]] = None,
) -> RecorderFormat:
    """Pick how the next recording is encoded; the first applicable rule wins."""

    supported = is_type_supported or soundfile_supports
    try:
        for mime_type in COMPRESSED_FORMATS:
            if mime_type in _SOUNDFILE_FORMATS and supported(mime_type):
                return RecorderFormat(mime_type, SoundFileEncoder(mime_type), "compressed")

        if is_safari(user_agent):
            return RecorderFormat(WAV_MIME_TYPE, WavEncoder(), "engine-default")

        return RecorderFormat(WAV_MIME_TYPE, register_wav_encoder(), "wav")
    except RecorderInitError:
        raise
    except Exception as exc:
        LOGGER.error("Failed to initialise recorder: %s", exc)
        raise RecorderInitError() from exc


__all__ = [
    "COMPRESSED_FORMATS",
    "ClipEncoder",
    "RecorderFormat",
    "SoundFileEncoder",
    "WAV_MIME_TYPE",
    "WavEncoder",
    "is_safari",
    "register_wav_encoder",
    "reset_wav_encoder",
    "select_recorder_format",
    "soundfile_supports",
]
