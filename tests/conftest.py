"""Shared test fixtures for NoiseSense tests."""

import threading
import time

import numpy as np
import pytest

from noisesense.core.config import MeterConfig


class FakeStream:
    """Blocking-read stand-in for a PyAudio input stream.

    Serves ``blocks`` in order, then raises ``OSError`` like a device that
    went away. With ``repeat=True`` the last block is served forever.
    """

    def __init__(self, blocks, repeat=False, delay=0.005):
        self._blocks = list(blocks)
        self._repeat = repeat
        self._delay = delay
        self._index = 0
        self.read_sizes = []
        self.stop_calls = 0
        self.close_calls = 0

    def read(self, num_frames, exception_on_overflow=True):
        time.sleep(self._delay)
        self.read_sizes.append(num_frames)
        if self._index < len(self._blocks):
            block = self._blocks[self._index]
            self._index += 1
        elif self._repeat and self._blocks:
            block = self._blocks[-1]
        else:
            raise OSError("Stream closed")
        return np.asarray(block, dtype=np.int16).tobytes()

    def stop_stream(self):
        self.stop_calls += 1

    def close(self):
        self.close_calls += 1


class FakeAudio:
    """Stand-in for ``pyaudio.PyAudio``."""

    def __init__(self, stream=None, device_info=None, fail_open=False, devices=None):
        self.stream = stream if stream is not None else FakeStream([], repeat=False)
        self.device_info = device_info
        self.fail_open = fail_open
        self.devices = devices or []
        self.open_kwargs = None
        self.terminate_calls = 0
        self._lock = threading.Lock()

    def __call__(self):
        return self

    def get_default_input_device_info(self):
        if self.device_info is None:
            raise OSError("No default input device")
        return self.device_info

    def get_device_info_by_index(self, index):
        if self.devices:
            return self.devices[index]
        if self.device_info is None:
            raise OSError(f"Invalid device index {index}")
        return self.device_info

    def get_device_count(self):
        return len(self.devices)

    def open(self, **kwargs):
        if self.fail_open:
            raise OSError("[Errno -9996] Invalid input device (no default output device)")
        self.open_kwargs = kwargs
        return self.stream

    def terminate(self):
        with self._lock:
            self.terminate_calls += 1


@pytest.fixture
def meter_config():
    """Meter settings matching the built-in defaults."""
    return MeterConfig(
        sample_rate=44100,
        calibration_offset_db=0.0,
        nuisance_threshold_db=65.0,
        motion_ignore_threshold=3.5,
    )


@pytest.fixture
def half_scale_block():
    """1000 samples at half of full scale (RMS 0.5)."""
    return np.full(1000, 16384, dtype=np.int16)


@pytest.fixture
def silent_block():
    return np.zeros(1024, dtype=np.int16)


def wait_for(predicate, timeout=2.0):
    """Poll ``predicate`` until it is true or ``timeout`` expires."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def fakes():
    """Expose the fake audio classes and polling helper to tests."""

    class Fakes:
        Audio = FakeAudio
        Stream = FakeStream

    Fakes.wait_for = staticmethod(wait_for)
    return Fakes
