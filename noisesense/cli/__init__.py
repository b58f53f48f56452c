"""Command-line interface for NoiseSense."""

from .commands import app

__all__ = ["app"]
