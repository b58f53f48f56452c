"""Core business logic for NoiseSense."""

from .classifier import Classification, ClassifiedReading, LoudnessReading, classify, classify_reading
from .config import AppConfig, MeterConfig
from .location import LocationCell, LocationFix, describe_location
from .motion import AccelerometerPoller, MotionCell, accel_magnitude, read_iio_axes
from .processing import block_rms, detect_driver_type, draw_db_bar, estimate_loudness, rms_to_dbfs
from .recording import NoiseSession, ReadingDispatcher, RecordingEngine, resolve_block_size

__all__ = [
    "AppConfig",
    "MeterConfig",
    "Classification",
    "LoudnessReading",
    "ClassifiedReading",
    "classify",
    "classify_reading",
    "LocationFix",
    "LocationCell",
    "describe_location",
    "MotionCell",
    "AccelerometerPoller",
    "accel_magnitude",
    "read_iio_axes",
    "estimate_loudness",
    "block_rms",
    "rms_to_dbfs",
    "draw_db_bar",
    "detect_driver_type",
    "NoiseSession",
    "ReadingDispatcher",
    "RecordingEngine",
    "resolve_block_size",
]
