"""CLI utilities for NoiseSense.

This module provides common CLI utilities like Rich console output, the
live level meter and status formatting.
"""

import os
from contextlib import contextmanager
from typing import List, Optional

from rich.console import Console, Group
from rich.progress import BarColumn, Progress, TextColumn
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

from noisesense.core.classifier import Classification, ClassifiedReading
from noisesense.core.config import MeterConfig
from noisesense.core.location import LocationFix, describe_location

# Create themed console for consistent output
_theme = Theme(
    {
        "info": "cyan",
        "success": "green",
        "warning": "yellow",
        "error": "bold red",
        "debug": "dim white",
    }
)

console = Console(theme=_theme)

_STATUS_TEXT = {
    Classification.SUPPRESSED: ("Phone moving — reading ignored", "bold black on dark_orange"),
    Classification.NUISANCE: ("NUISANCE — Exceeds threshold", "bold white on red"),
    Classification.BELOW_THRESHOLD: ("OK — Below threshold", "bold black on green"),
}


def format_status(classification: Classification) -> str:
    """Return Rich markup for a classification, color-coded like a traffic light."""
    text, style = _STATUS_TEXT[classification]
    return f"[{style}] {text} [/{style}]"


def format_motion(magnitude: float) -> str:
    return f"Motion: {magnitude:.2f} m/s²"


def describe_result(result: ClassifiedReading) -> str:
    """One-line plain summary of a classified reading."""
    return f"{result.db:.1f} dB | {format_motion(result.motion)} | {result.classification.value}"


def make_device_table(devices: List[dict]) -> Table:
    """Build a Rich Table from the device list returned by RecordingEngine.list_devices().

    Args:
        devices: List of dicts with keys: id, name, driver, channels, rate, is_default

    Returns:
        Configured Rich Table ready to print.
    """
    table = Table(show_header=True, header_style="bold", show_lines=False, expand=False)
    table.add_column("ID", style="cyan", width=4, justify="right")
    table.add_column("Name", min_width=30)
    table.add_column("Driver", style="dim", width=8)
    table.add_column("Ch", justify="right", style="dim", width=4)
    table.add_column("Rate", justify="right", style="dim", width=12)
    table.add_column("", width=9)

    for d in devices:
        default_mark = "[bold green]DEFAULT[/bold green]" if d.get("is_default") else ""
        table.add_row(
            str(d["id"]),
            d["name"],
            d.get("driver", "").upper(),
            str(d.get("channels", "")),
            f"{d.get('rate', '')} Hz",
            default_mark,
        )
    return table


def make_config_table(config: MeterConfig) -> Table:
    """Two-column grid describing the effective meter settings."""
    grid = Table.grid(padding=(0, 1))
    grid.add_column(style="dim", justify="right")
    grid.add_column()
    grid.add_row("Sample Rate:", f"{config.sample_rate} Hz")
    grid.add_row("Calibration:", f"{config.calibration_offset_db:+.1f} dB")
    grid.add_row("Nuisance threshold:", f"{config.nuisance_threshold_db:.1f} dB")
    grid.add_row("Motion threshold:", f"{config.motion_ignore_threshold:.2f} m/s²")
    return grid


def make_level_progress() -> Progress:
    """Create a Rich Progress instance repurposed as a real-time dB level meter.

    Usage::

        with make_level_progress() as progress:
            task = progress.add_task("level", total=120, db_text="-- dB", motion="", status="")
            for result in dispatcher.dispatch_pending(timeout=0.1):
                progress.update(task, completed=result.db, db_text=f"{result.db:.1f} dB", ...)

    Returns:
        Configured Rich Progress instance (0–120 dB scale).
    """
    return Progress(
        TextColumn("📈 Level"),
        BarColumn(
            bar_width=40,
            complete_style="green",
            finished_style="green",
            pulse_style="yellow",
        ),
        TextColumn("[bold]{task.fields[db_text]}[/bold]"),
        TextColumn("{task.fields[motion]}"),
        TextColumn("{task.fields[status]}"),
        console=console,
        transient=False,
        expand=False,
    )


def make_live_view(progress: Progress, location: Optional[LocationFix]) -> Group:
    """Live measurement view: the level meter with the latest location below it."""
    return Group(progress, Text(describe_location(location), style="dim"))


@contextmanager
def suppress_stderr():
    """Context manager to suppress stderr output from libraries like ALSA, JACK.

    Used to hide debug/warning messages from audio subsystems that pollute
    terminal output.
    """
    # Save original stderr file descriptor
    original_stderr_fd = os.dup(2)
    try:
        # Open /dev/null and redirect stderr to it
        null_fd = os.open(os.devnull, os.O_WRONLY)
        os.dup2(null_fd, 2)
        os.close(null_fd)
        yield
    finally:
        # Restore original stderr
        os.dup2(original_stderr_fd, 2)
        os.close(original_stderr_fd)


__all__ = [
    "console",
    "suppress_stderr",
    "format_status",
    "format_motion",
    "describe_result",
    "make_device_table",
    "make_config_table",
    "make_level_progress",
    "make_live_view",
]
