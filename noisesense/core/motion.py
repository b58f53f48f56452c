"""Device motion tracking for NoiseSense.

Accelerometer samples arrive on their own schedule, independently of audio
blocks. Only the newest sample matters, so the magnitude is kept in a
single latest-value cell: one writer (the sensor delivery path), any number
of readers. A reader may see a value that is a few sensor periods old;
readings are never held back waiting for a fresh motion sample.

Main public classes
-------------------
:class:`MotionCell`
    Latest acceleration magnitude, safe to read from any thread.

:class:`AccelerometerPoller`
    Background thread feeding a :class:`MotionCell` from a callable that
    returns raw ``(x, y, z)`` axes, e.g. :func:`read_iio_axes` for the Linux
    Industrial I/O accelerometers found in many laptops and tablets.
"""

import math
import threading
from pathlib import Path
from threading import Thread
from typing import Callable, Optional, Tuple

from loguru import logger

from .config import STANDARD_GRAVITY

Axes = Tuple[float, float, float]


def accel_magnitude(x: float, y: float, z: float, gravity_compensation: bool = False) -> float:
    """Return the norm of a 3-axis acceleration sample in m/s².

    The raw norm includes gravity, so a device at rest reads about 9.8.
    With ``gravity_compensation`` standard gravity is subtracted and the
    result clamped at zero.
    """
    magnitude = math.sqrt(x * x + y * y + z * z)
    if gravity_compensation:
        magnitude = max(0.0, magnitude - STANDARD_GRAVITY)
    return magnitude


class MotionCell:
    """Latest observed motion magnitude; the last write wins."""

    def __init__(self, initial: float = 0.0, gravity_compensation: bool = False) -> None:
        if initial < 0:
            raise ValueError(f"Motion magnitude must not be negative, got {initial}")
        self._magnitude = float(initial)
        self._gravity_compensation = gravity_compensation
        self._lock = threading.Lock()

    def update(self, magnitude: float) -> None:
        """Store a pre-computed magnitude."""
        if magnitude < 0 or math.isnan(magnitude):
            logger.debug(f"Ignoring invalid motion magnitude: {magnitude}")
            return
        with self._lock:
            self._magnitude = float(magnitude)

    def update_axes(self, x: float, y: float, z: float) -> float:
        """Store the magnitude of a raw accelerometer sample and return it."""
        magnitude = accel_magnitude(x, y, z, self._gravity_compensation)
        self.update(magnitude)
        return magnitude

    def latest(self) -> float:
        with self._lock:
            return self._magnitude


def _read_number(path: Path) -> float:
    return float(path.read_text(encoding='utf-8').strip())


def read_iio_axes(device_dir: Path) -> Axes:
    """Read one accelerometer sample from a Linux IIO sysfs device.

    Args:
        device_dir: Directory such as ``/sys/bus/iio/devices/iio:device0``

    Returns:
        ``(x, y, z)`` in m/s²

    Raises:
        OSError: If the device attributes cannot be read
        ValueError: If an attribute does not hold a number
    """
    device_dir = Path(device_dir)
    shared_scale = device_dir / 'in_accel_scale'
    axes = []
    for axis in ('x', 'y', 'z'):
        raw = _read_number(device_dir / f'in_accel_{axis}_raw')
        axis_scale = device_dir / f'in_accel_{axis}_scale'
        if axis_scale.exists():
            scale = _read_number(axis_scale)
        elif shared_scale.exists():
            scale = _read_number(shared_scale)
        else:
            scale = 1.0
        axes.append(raw * scale)
    return axes[0], axes[1], axes[2]


class AccelerometerPoller:
    """Polls an accelerometer on a daemon thread and feeds a :class:`MotionCell`."""

    def __init__(
        self,
        cell: MotionCell,
        read_axes: Callable[[], Axes],
        interval: float = 0.06,
    ) -> None:
        """Initialize the poller.

        Args:
            cell: Cell receiving each new magnitude
            read_axes: Callable returning one ``(x, y, z)`` sample
            interval: Seconds between samples (default ~ Android SENSOR_DELAY_UI)
        """
        self._cell = cell
        self._read_axes = read_axes
        self._interval = interval
        self._stop_event = threading.Event()
        self._thread: Optional[Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            logger.warning("Accelerometer poller already running")
            return
        self._stop_event.clear()
        self._thread = Thread(target=self._run, name="AccelerometerPoller", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Accelerometer poller did not stop cleanly")
        self._thread = None

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                x, y, z = self._read_axes()
            except (OSError, ValueError) as e:
                logger.warning(f"Accelerometer read failed, stopping poller: {e}")
                return
            self._cell.update_axes(x, y, z)
            self._stop_event.wait(self._interval)
