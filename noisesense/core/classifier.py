"""Motion gating and nuisance classification.

A reading is judged on its own: the latest loudness estimate and the
latest motion magnitude go in, exactly one :class:`Classification` comes
out. Nothing is remembered between evaluations.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .config import MeterConfig
from .location import LocationFix


class Classification(Enum):
    """Possible outcomes for a single reading."""

    SUPPRESSED = "SUPPRESSED"
    BELOW_THRESHOLD = "BELOW_THRESHOLD"
    NUISANCE = "NUISANCE"


@dataclass(frozen=True)
class LoudnessReading:
    """Loudness estimated from exactly one audio block."""

    db: float
    sequence: int = 0
    captured_at: float = 0.0


@dataclass(frozen=True)
class ClassifiedReading:
    """A reading together with the inputs and outcome of its classification."""

    reading: LoudnessReading
    motion: float
    classification: Classification
    location: Optional[LocationFix] = None

    @property
    def db(self) -> float:
        return self.reading.db


def classify(loudness_db: float, motion: float, config: MeterConfig) -> Classification:
    """Classify a loudness estimate given the current device motion.

    Decision logic, first match wins:

    1. Motion above ``motion_ignore_threshold`` -> SUPPRESSED (handling noise)
    2. Loudness at or above ``nuisance_threshold_db`` -> NUISANCE
    3. Otherwise -> BELOW_THRESHOLD

    Args:
        loudness_db: Estimated level in dB
        motion: Latest acceleration magnitude in m/s²
        config: Session thresholds

    Returns:
        The classification for this reading
    """
    if motion > config.motion_ignore_threshold:
        return Classification.SUPPRESSED
    if loudness_db >= config.nuisance_threshold_db:
        return Classification.NUISANCE
    return Classification.BELOW_THRESHOLD


def classify_reading(
    reading: LoudnessReading,
    motion: float,
    config: MeterConfig,
    location: Optional[LocationFix] = None,
) -> ClassifiedReading:
    """Classify ``reading`` and bundle it with the motion and location used."""
    return ClassifiedReading(
        reading=reading,
        motion=motion,
        classification=classify(reading.db, motion, config),
        location=location,
    )
