"""Configuration management for NoiseSense.

This module provides configuration constants, the immutable
:class:`MeterConfig` used by a measuring session, and the :class:`AppConfig`
class which merges defaults with values from an optional YAML file
(``.noisesense.yml`` in the working directory).

Meter constants
---------------
- ``RATE``                    – sample rate in Hz (default 44 100)
- ``CALIBRATION_OFFSET_DB``   – device-specific additive correction (dB)
- ``NUISANCE_THRESHOLD_DB``   – level at or above which a reading is a nuisance
- ``MOTION_IGNORE_THRESHOLD`` – acceleration magnitude (m/s²) above which
  readings are suppressed as handling noise
- ``REFERENCE_OFFSET_DB``     – empirical shift from dBFS to approximate SPL
- ``DB_EPSILON``              – added to the RMS before taking the logarithm

Configuration file (``meter:`` section)
---------------------------------------
All meter constants can be overridden at runtime via ``.noisesense.yml``
placed in the working directory:

.. code-block:: yaml

    meter:
      rate: 44100
      calibration_offset_db: -3.5
      nuisance_threshold_db: 55.0
      motion_ignore_threshold: 3.5
      gravity_compensation: false
    device_id: 2
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import yaml

# Audio parameters
RATE = 44100
CHANNEL = 1
SAMPLE_WIDTH_INT16 = 2
INT16_FULL_SCALE = 32768.0

# Level estimation. Adjust the calibration offset after comparing with a
# reference meter.
CALIBRATION_OFFSET_DB = 0.0
REFERENCE_OFFSET_DB = 90.0
DB_EPSILON = 1e-9

# Classification
NUISANCE_THRESHOLD_DB = 65.0  # e.g. day-time community threshold
MOTION_IGNORE_THRESHOLD = 3.5  # m/s^2

STANDARD_GRAVITY = 9.80665

CONFIG_FILE = '.noisesense.yml'

_METER_KEYS = (
    'rate',
    'calibration_offset_db',
    'nuisance_threshold_db',
    'motion_ignore_threshold',
    'gravity_compensation',
)


@dataclass(frozen=True)
class MeterConfig:
    """Settings fixed for the lifetime of a measuring session."""

    sample_rate: int = RATE
    calibration_offset_db: float = CALIBRATION_OFFSET_DB
    nuisance_threshold_db: float = NUISANCE_THRESHOLD_DB
    motion_ignore_threshold: float = MOTION_IGNORE_THRESHOLD

    def __post_init__(self) -> None:
        if int(self.sample_rate) <= 0:
            raise ValueError(f"Sample rate must be positive, got {self.sample_rate}")
        if self.motion_ignore_threshold < 0:
            raise ValueError(
                f"Motion threshold must not be negative, got {self.motion_ignore_threshold}"
            )


class AppConfig:
    """Application configuration management."""

    def __init__(self) -> None:
        """Initialize configuration with defaults."""
        self._config: Dict[str, Any] = {
            'rate': RATE,
            'calibration_offset_db': CALIBRATION_OFFSET_DB,
            'nuisance_threshold_db': NUISANCE_THRESHOLD_DB,
            'motion_ignore_threshold': MOTION_IGNORE_THRESHOLD,
            'gravity_compensation': False,
            'device_id': None,
        }
        self._load_yaml_config()

    def _load_yaml_config(self) -> None:
        """Load optional YAML configuration from the working directory."""
        config_path = Path.cwd() / CONFIG_FILE
        if not config_path.exists():
            return

        content = yaml.safe_load(config_path.read_text(encoding='utf-8'))
        if not content:
            return

        if not isinstance(content, dict):
            raise ValueError(f"Configuration in {CONFIG_FILE} must be a mapping")

        meter_config = content.get('meter')
        if isinstance(meter_config, dict):
            for key in _METER_KEYS:
                if key in meter_config:
                    self._config[key] = meter_config[key]

        for key, value in content.items():
            if key == 'meter':
                continue
            self._config[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value.

        Args:
            key: Configuration key
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        return self._config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set configuration value.

        Args:
            key: Configuration key
            value: Configuration value
        """
        self._config[key] = value

    def to_meter_config(self) -> MeterConfig:
        """Freeze the current meter settings for a session.

        Raises:
            ValueError: If a value cannot be converted or is out of range.
        """
        return MeterConfig(
            sample_rate=int(self._config['rate']),
            calibration_offset_db=float(self._config['calibration_offset_db']),
            nuisance_threshold_db=float(self._config['nuisance_threshold_db']),
            motion_ignore_threshold=float(self._config['motion_ignore_threshold']),
        )
