"""Audio processing utilities for NoiseSense.

This module turns blocks of signed 16-bit samples into loudness estimates.
Every function here is pure: the same block and offset always give the
same result, and nothing is carried over between blocks.

The estimate is relative dBFS shifted by an empirical constant, so it is
monotonic with true loudness but only approximates SPL until the
calibration offset has been tuned against a reference meter.
"""

import math
from typing import Optional, Union

import numpy as np
from loguru import logger

from .config import DB_EPSILON, INT16_FULL_SCALE, REFERENCE_OFFSET_DB

AudioInput = Union[bytes, bytearray, np.ndarray]


def samples_from_bytes(audio_data: bytes) -> np.ndarray:
    """Interpret raw little-endian int16 audio bytes as a sample array.

    A trailing odd byte (half a sample) is dropped.
    """
    usable = len(audio_data) - (len(audio_data) % 2)
    return np.frombuffer(audio_data[:usable], dtype='<i2')


def _as_samples(block: AudioInput) -> np.ndarray:
    if isinstance(block, (bytes, bytearray, memoryview)):
        return samples_from_bytes(bytes(block))
    return np.asarray(block).reshape(-1)


def block_rms(block: AudioInput) -> float:
    """Return the RMS of ``block`` after normalizing samples to [-1.0, 1.0].

    Args:
        block: int16 samples, as an array or raw bytes

    Returns:
        RMS value, ``0.0`` for an empty block
    """
    samples = _as_samples(block)
    if samples.size == 0:
        return 0.0
    normalized = samples.astype(np.float64) / INT16_FULL_SCALE
    mean_sq = float(np.sum(normalized * normalized)) / samples.size
    return math.sqrt(mean_sq)


def rms_to_dbfs(rms: float) -> float:
    """Convert a normalized RMS value to dBFS.

    ``DB_EPSILON`` keeps silent input away from ``log10(0)``.
    """
    return 20.0 * math.log10(rms + DB_EPSILON)


def silence_db(calibration_offset_db: float = 0.0) -> float:
    """Loudness reported for a block of digital silence."""
    return rms_to_dbfs(0.0) + calibration_offset_db + REFERENCE_OFFSET_DB


def estimate_loudness(
    block: AudioInput,
    calibration_offset_db: float = 0.0,
) -> Optional[float]:
    """Estimate the ambient level of one audio block.

    Args:
        block: int16 samples, as an array or raw bytes
        calibration_offset_db: Device-specific correction added to the result

    Returns:
        Approximate level in dB, or ``None`` when the block holds no samples
    """
    samples = _as_samples(block)
    if samples.size == 0:
        return None

    rms = block_rms(samples)
    if not math.isfinite(rms):
        logger.debug("Non-finite RMS, reporting silence")
        return silence_db(calibration_offset_db)

    db = rms_to_dbfs(rms) + calibration_offset_db + REFERENCE_OFFSET_DB
    if not math.isfinite(db):
        return silence_db(calibration_offset_db)
    return db


def draw_db_bar(db_level: float, width: int = 50, scale: float = 120.0) -> str:
    """Create a visual bar representation of dB level.

    Args:
        db_level: dB level, clipped to 0..scale
        width: Width of the bar in characters
        scale: dB value drawn as a full bar

    Returns:
        A string representation of the dB bar
    """
    clipped = max(0.0, min(scale, db_level))
    filled = int((clipped / scale) * width)
    bar = '█' * filled + '░' * (width - filled)
    return f"[{bar}] {db_level:.1f} dB"


def detect_driver_type(device_name: str) -> str:
    """Detect the audio driver type from device name.

    Args:
        device_name: The name of the audio device

    Returns:
        Driver type: 'pulse', 'alsa', 'jack', 'usb' or 'default'
    """
    name_lower = device_name.lower()

    if 'pulse' in name_lower or 'pipewire' in name_lower:
        return 'pulse'
    elif 'alsa' in name_lower or 'hw:' in name_lower or 'plughw' in name_lower:
        return 'alsa'
    elif 'jack' in name_lower:
        return 'jack'
    elif 'usb' in name_lower:
        return 'usb'
    else:
        return 'default'
