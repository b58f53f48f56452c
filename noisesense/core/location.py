"""Latest known device location.

Readings are tagged with whatever fix was delivered last. How fixes are
obtained (GPS, network, a static position given on the command line) is
up to the caller; this module only keeps and formats them.
"""

import threading
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class LocationFix:
    """A single position report."""

    latitude: float
    longitude: float
    altitude: Optional[float] = None
    provider: str = "static"

    def describe(self) -> str:
        """Multi-line, human-readable form of the fix."""
        altitude = self.altitude if self.altitude is not None else 0.0
        return (
            f"Lat: {self.latitude:.5f}\n"
            f"Lng: {self.longitude:.5f}\n"
            f"Alt: {altitude:.1f} m\n"
            f"Provider: {self.provider}"
        )


def describe_location(fix: Optional[LocationFix]) -> str:
    if fix is None:
        return "Location: unknown"
    return fix.describe()


class LocationCell:
    """Holds the most recent :class:`LocationFix`; the last write wins."""

    def __init__(self, initial: Optional[LocationFix] = None) -> None:
        self._fix = initial
        self._lock = threading.Lock()

    def update(self, fix: LocationFix) -> None:
        with self._lock:
            self._fix = fix

    def latest(self) -> Optional[LocationFix]:
        with self._lock:
            return self._fix
