"""Tests for microphone enumeration and capture."""

from __future__ import annotations

import sys

import numpy as np
import pytest

from braindump.core.audio import devices
from braindump.core.audio.base import CaptureConstraints, MicrophonePermissionError


class _FakeStream:
    def __init__(self, module, samplerate, **kwargs) -> None:
        self.samplerate = samplerate
        self.kwargs = kwargs
        self.module = module
        self.started = False
        self.closed = False

    def start(self) -> None:
        if self.samplerate in self.module.rejected_rates:
            raise self.module.PortAudioError("Invalid sample rate")
        if self.module.denied:
            raise self.module.PortAudioError("Error opening InputStream: Device unavailable")
        self.started = True

    def stop(self) -> None:
        self.started = False

    def close(self) -> None:
        self.closed = True


class _FakeSoundDeviceModule:
    def __init__(self) -> None:
        self.PortAudioError = type("PortAudioError", (Exception,), {})
        self.rejected_rates = set()
        self.denied = False
        self.streams = []
        self._hostapis = [{"name": "Core Audio"}]
        self._devices = [
            {"name": "Built-in Microphone", "max_input_channels": 1, "default_samplerate": 48_000.0, "hostapi": 0},
            {"name": "Speakers", "max_input_channels": 0, "default_samplerate": 48_000.0, "hostapi": 0},
        ]

    def InputStream(self, samplerate, **kwargs):  # noqa: N802 - mirrors sounddevice
        stream = _FakeStream(self, samplerate, **kwargs)
        self.streams.append(stream)
        return stream

    def query_hostapis(self):
        return self._hostapis

    def query_devices(self):
        return list(self._devices)


@pytest.fixture
def fake_sd(monkeypatch):
    module = _FakeSoundDeviceModule()
    monkeypatch.setitem(sys.modules, "sounddevice", module)
    return module


def test_list_input_devices_skips_outputs(fake_sd):
    results = devices.list_input_devices()

    assert [device.name for device in results] == ["Built-in Microphone"]
    assert results[0].hostapi == "Core Audio"


def test_format_device_table_fallback_contains_install_hint(monkeypatch):
    monkeypatch.setattr(devices, "list_input_devices", lambda: [])

    message = devices.format_device_table()

    assert message.startswith("No microphones detected.")
    assert "pip install braindump[audio]" in message


def test_format_device_table_accepts_custom_device_list():
    custom = [
        devices.DeviceInfo(id=7, name="USB Microphone", max_input_channels=2, default_samplerate=44_100.0, hostapi="ALSA")
    ]

    table = devices.format_device_table(custom)

    assert "USB Microphone" in table
    assert "  7 |" in table
    assert "44100" in table


def test_open_microphone_falls_back_to_supported_rate(fake_sd):
    from braindump.core.audio.sounddevice_backend import open_microphone

    fake_sd.rejected_rates = {16_000}
    constraints = CaptureConstraints(noise_suppression=False)

    capture = open_microphone(constraints, sample_rate=16_000, channels=1, device="3")

    assert capture.info.sample_rate == 48_000
    assert capture.constraints is constraints
    assert fake_sd.streams[-1].kwargs["device"] == 3

    capture._callback(np.ones((4, 1), dtype=np.float32), 4, None, None)
    assert capture.read(timeout=0).shape == (4, 1)
    assert capture.read(timeout=0) is None

    capture.stop()
    capture.close()
    assert fake_sd.streams[-1].closed


def test_open_microphone_denied(fake_sd):
    from braindump.core.audio.sounddevice_backend import open_microphone

    fake_sd.denied = True

    with pytest.raises(MicrophonePermissionError) as excinfo:
        open_microphone(CaptureConstraints(), sample_rate=16_000, channels=1)

    assert "microphone permissions" in str(excinfo.value)
