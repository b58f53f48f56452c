"""Audio capture engine for NoiseSense.

This module owns the microphone and turns its stream into loudness
readings.

Main public classes
-------------------
:class:`RecordingEngine`
    Static helpers for enumerating available input devices.

:class:`NoiseSession`
    Opens a PyAudio input stream and runs a **blocking** read loop on a
    background thread. Each block becomes one
    :class:`~noisesense.core.classifier.LoudnessReading` which is put on a
    FIFO queue; the loop never touches presentation state itself. Stopping
    sets a flag that the loop checks once per block, so it exits within one
    block's worth of audio and then releases the device. A stopped session
    can be started again, which acquires a fresh device handle.

:class:`ReadingDispatcher`
    Runs on the foreground (presentation) thread. Drains the queue in
    arrival order, classifies each reading against the latest motion
    magnitude and location, and hands the result to a callback.

Block size
----------
The block length is the device's low-latency buffer size in frames. When the
device cannot report one, the fallback is ``sample_rate * 2`` samples
(two seconds of mono audio).
"""

import queue
import threading
import time
from threading import Thread
from typing import Any, Callable, Dict, List, Optional

import pyaudio
from loguru import logger

from .classifier import ClassifiedReading, LoudnessReading, classify_reading
from .config import CHANNEL, MeterConfig
from .location import LocationCell
from .motion import MotionCell
from .processing import detect_driver_type, estimate_loudness


def resolve_block_size(sample_rate: int, reported_frames: Optional[int] = None) -> int:
    """Return the number of samples to read per block.

    Args:
        sample_rate: Capture rate in Hz
        reported_frames: Buffer size reported by the device, if any

    Returns:
        ``reported_frames`` when usable, otherwise ``sample_rate * 2``
    """
    if reported_frames is not None and reported_frames > 0:
        return int(reported_frames)
    return sample_rate * 2


class RecordingEngine:
    """Helpers around the host audio system."""

    @staticmethod
    def list_devices(
        driver_filter: Optional[str] = None,
        audio: Optional[Any] = None,
    ) -> List[Dict[str, Any]]:
        """List all available input audio devices.

        Args:
            driver_filter: Optional driver type to filter by ('pulse', 'alsa', 'jack', 'usb', 'default')
            audio: Existing PyAudio instance to reuse. A temporary one is
                created (and terminated) when omitted.

        Returns:
            List of dicts with keys: id, name, driver, channels, rate, is_default
        """
        owns_audio = audio is None
        if owns_audio:
            audio = pyaudio.PyAudio()

        try:
            try:
                default_device = audio.get_default_input_device_info()
                default_device_id = int(default_device['index'])
            except (IOError, OSError):
                default_device_id = -1

            input_devices = []
            for i in range(audio.get_device_count()):
                device_info = audio.get_device_info_by_index(i)
                if device_info.get('maxInputChannels', 0) <= 0:
                    continue
                device_name = device_info.get('name', 'Unknown')
                driver_type = detect_driver_type(device_name)

                # Skip if driver filter is specified and doesn't match
                if driver_filter and driver_type != driver_filter.lower():
                    continue

                input_devices.append({
                    'id': i,
                    'name': device_name,
                    'driver': driver_type,
                    'channels': device_info.get('maxInputChannels', 0),
                    'rate': int(device_info.get('defaultSampleRate', 0)),
                    'is_default': i == default_device_id,
                })
            return input_devices
        finally:
            if owns_audio:
                audio.terminate()


class NoiseSession:
    """A single microphone measuring session."""

    def __init__(
        self,
        config: MeterConfig,
        device_id: Optional[int] = None,
        audio_factory: Callable[[], Any] = pyaudio.PyAudio,
        readings: Optional["queue.Queue[LoudnessReading]"] = None,
    ) -> None:
        """Initialize the session.

        Args:
            config: Immutable meter settings
            device_id: Audio device ID to use (``None`` = system default)
            audio_factory: Callable returning a PyAudio-compatible interface
            readings: Queue receiving each reading (a new one by default)
        """
        self._config = config
        self._device_id = device_id
        self._audio_factory = audio_factory
        self.readings: "queue.Queue[LoudnessReading]" = readings if readings is not None else queue.Queue()

        self._audio_interface = None
        self._audio_stream = None
        self._block_size = 0
        self._sequence = 0
        self._device_name = 'Unknown'

        self._stop_event = threading.Event()
        self._release_lock = threading.Lock()
        self._recording_thread: Optional[Thread] = None

    @property
    def config(self) -> MeterConfig:
        return self._config

    @property
    def block_size(self) -> int:
        return self._block_size

    @property
    def device_name(self) -> str:
        return self._device_name

    @property
    def is_recording(self) -> bool:
        thread = self._recording_thread
        return thread is not None and thread.is_alive() and not self._stop_event.is_set()

    def start(self, timeout: float = 5.0) -> bool:
        """Acquire the input device and start the read loop.

        Args:
            timeout: Seconds to wait for a previous read loop that is still
                releasing its device

        Returns:
            ``True`` if recording is running, ``False`` if the device could
            not be opened. A failed start leaves the session stopped and it
            may be retried.
        """
        if self.is_recording:
            logger.warning("Recording already in progress")
            return True

        previous = self._recording_thread
        if previous is not None and previous.is_alive():
            previous.join(timeout=timeout)
            if previous.is_alive():
                logger.warning("Previous recording thread still holds the device")
                return False

        rate = self._config.sample_rate
        audio = None
        try:
            audio = self._audio_factory()
            device_info = self._device_info(audio)
            self._device_name = device_info.get('name', 'Unknown') if device_info else 'Unknown'
            self._block_size = resolve_block_size(rate, self._reported_frames(device_info, rate))
            stream = audio.open(
                format=pyaudio.paInt16,
                channels=CHANNEL,
                rate=rate,
                input=True,
                input_device_index=self._device_id,
                frames_per_buffer=self._block_size,
            )
        except Exception as e:
            logger.error(f"Audio input init failed: {e}")
            if audio is not None:
                audio.terminate()
            return False

        self._audio_interface = audio
        self._audio_stream = stream
        self._sequence = 0
        self._stop_event = threading.Event()

        self._recording_thread = Thread(
            target=self._read_loop,
            args=(self._stop_event, stream, audio),
            name="AudioRecorder Thread",
            daemon=True,
        )
        self._recording_thread.start()
        logger.info(
            f"Recording started: {self._device_name} (ID: {self._device_id}), "
            f"{rate} Hz, {self._block_size} samples/block"
        )
        return True

    def stop(self, timeout: float = 5.0) -> None:
        """Ask the read loop to exit and wait for it to release the device."""
        thread = self._recording_thread
        if thread is None:
            return

        self._stop_event.set()
        if thread is not threading.current_thread():
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning("Recording thread did not stop cleanly")
                return
        self._recording_thread = None
        logger.info(f"Recording stopped after {self._sequence} blocks")

    def _device_info(self, audio: Any) -> Optional[Dict[str, Any]]:
        try:
            if self._device_id is None:
                return audio.get_default_input_device_info()
            return audio.get_device_info_by_index(self._device_id)
        except (IOError, OSError) as e:
            logger.debug(f"Device info unavailable: {e}")
            return None

    @staticmethod
    def _reported_frames(device_info: Optional[Dict[str, Any]], rate: int) -> Optional[int]:
        if not device_info:
            return None
        latency = device_info.get('defaultLowInputLatency')
        if not latency or latency <= 0:
            return None
        return int(latency * rate)

    def _read_loop(self, stop_event: threading.Event, stream: Any, audio: Any) -> None:
        """Blocking read loop run on the recording thread.

        The loop owns ``stream`` and ``audio`` and releases them on exit.
        """
        try:
            while not stop_event.is_set():
                try:
                    data = stream.read(self._block_size, exception_on_overflow=False)
                except (IOError, OSError) as e:
                    logger.error(f"Audio read failed: {e}")
                    break

                db = estimate_loudness(data, self._config.calibration_offset_db)
                if db is None:
                    continue

                self._sequence += 1
                reading = LoudnessReading(db=db, sequence=self._sequence, captured_at=time.time())
                logger.debug(f"Block {reading.sequence}: {db:.1f} dB")
                self.readings.put(reading)
        finally:
            stop_event.set()
            self._release(stream, audio)

    def _release(self, stream: Any, audio: Any) -> None:
        """Close the stream and terminate the audio interface of one loop."""
        with self._release_lock:
            if self._audio_stream is stream:
                self._audio_stream = None
            if self._audio_interface is audio:
                self._audio_interface = None

        if stream is not None:
            try:
                stream.stop_stream()
            except (IOError, OSError) as e:
                logger.debug(f"Error stopping stream: {e}")
            stream.close()
        if audio is not None:
            audio.terminate()
            logger.info("Microphone has been closed")


class ReadingDispatcher:
    """Classifies queued readings on the thread that presents them."""

    def __init__(
        self,
        readings: "queue.Queue[LoudnessReading]",
        config: MeterConfig,
        motion: MotionCell,
        location: Optional[LocationCell] = None,
        on_reading: Optional[Callable[[ClassifiedReading], None]] = None,
    ) -> None:
        self._readings = readings
        self._config = config
        self._motion = motion
        self._location = location
        self._on_reading = on_reading
        self._last: Optional[ClassifiedReading] = None

    @property
    def last(self) -> Optional[ClassifiedReading]:
        """Most recently dispatched result, if any."""
        return self._last

    def dispatch_pending(self, timeout: float = 0.0) -> List[ClassifiedReading]:
        """Classify and deliver every queued reading, oldest first.

        Args:
            timeout: Seconds to wait for the first reading when the queue is empty

        Returns:
            The results delivered during this call
        """
        delivered = []
        block = timeout > 0
        while True:
            try:
                reading = self._readings.get(block=block, timeout=timeout if block else None)
            except queue.Empty:
                break
            block = False

            location = self._location.latest() if self._location is not None else None
            result = classify_reading(reading, self._motion.latest(), self._config, location)
            self._last = result
            if self._on_reading is not None:
                self._on_reading(result)
            delivered.append(result)
        return delivered
