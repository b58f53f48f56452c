"""NoiseSense - ambient noise meter with motion gating.

This package estimates the ambient sound level from a microphone, ignores
readings taken while the device is being handled, and flags levels above a
nuisance threshold.
"""

from .cli.commands import app

__version__ = "1.0.0"

__all__ = ["app", "__version__"]
