"""CLI commands for NoiseSense.

This module provides all command-line interface commands using Typer.
"""

import sys
import time
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from noisesense.core import (
    AccelerometerPoller,
    LocationCell,
    LocationFix,
    MeterConfig,
    MotionCell,
    NoiseSession,
    ReadingDispatcher,
    RecordingEngine,
    describe_location,
    draw_db_bar,
    read_iio_axes,
)
from noisesense.core.config import (
    AppConfig, RATE, CALIBRATION_OFFSET_DB, NUISANCE_THRESHOLD_DB, MOTION_IGNORE_THRESHOLD,
)
from noisesense.cli.utils import (
    console,
    describe_result,
    format_motion,
    format_status,
    make_config_table,
    make_device_table,
    make_level_progress,
    make_live_view,
    suppress_stderr,
)

app = typer.Typer(help="Ambient noise meter with motion gating and nuisance detection")

app_config = AppConfig()
default_rate = int(app_config.get("rate", RATE))
default_calibration = float(app_config.get("calibration_offset_db", CALIBRATION_OFFSET_DB))
default_threshold = float(app_config.get("nuisance_threshold_db", NUISANCE_THRESHOLD_DB))
default_motion_threshold = float(app_config.get("motion_ignore_threshold", MOTION_IGNORE_THRESHOLD))


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    if verbose:
        logger.add(sys.stderr, level="DEBUG")
    else:
        logger.add(sys.stderr, level="WARNING")


@app.command()
def list_devices(
    driver: Optional[str] = typer.Option(
        None, help="Filter by driver type: pulse, alsa, jack, usb, default"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show debug output from audio libraries"
    ),
):
    """List all available input audio devices."""
    _configure_logging(verbose)
    try:
        if verbose:
            devices = RecordingEngine.list_devices(driver_filter=driver)
        else:
            with suppress_stderr():
                devices = RecordingEngine.list_devices(driver_filter=driver)
    except Exception as e:
        console.print(f"[error]✗ Error listing devices: {e}[/error]")
        sys.exit(1)

    title = "Available Input Devices"
    if driver:
        title += f" (filtered by: {driver})"
    console.print(Panel(make_device_table(devices), title=f"[bold]{title}[/bold]"))


@app.command()
def measure(
    duration: Optional[int] = typer.Option(
        None, help="Measurement duration in seconds. Leave empty to run until Ctrl+C."
    ),
    device_id: Optional[int] = typer.Option(
        None, help="Audio device ID to use. Leave empty for the system default."
    ),
    rate: int = typer.Option(default_rate, help="Sample rate in Hz"),
    calibration_offset: float = typer.Option(
        default_calibration, help="Calibration offset in dB, found with a reference meter"
    ),
    threshold: float = typer.Option(default_threshold, help="Nuisance threshold in dB"),
    motion_threshold: float = typer.Option(
        default_motion_threshold, help="Motion magnitude (m/s²) above which readings are ignored"
    ),
    motion: float = typer.Option(
        0.0, help="Static motion magnitude (m/s²) used when no accelerometer is polled"
    ),
    accelerometer: Optional[Path] = typer.Option(
        None, help="IIO accelerometer directory, e.g. /sys/bus/iio/devices/iio:device0"
    ),
    gravity_compensation: bool = typer.Option(
        bool(app_config.get("gravity_compensation", False)),
        "--gravity-compensation/--no-gravity-compensation",
        help="Subtract standard gravity from accelerometer samples",
    ),
    latitude: Optional[float] = typer.Option(None, help="Latitude to tag readings with"),
    longitude: Optional[float] = typer.Option(None, help="Longitude to tag readings with"),
    altitude: Optional[float] = typer.Option(None, help="Altitude in meters"),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show debug output from audio libraries"
    ),
):
    """Measure ambient noise and flag nuisance levels."""
    _configure_logging(verbose)

    try:
        meter_config = MeterConfig(
            sample_rate=rate,
            calibration_offset_db=calibration_offset,
            nuisance_threshold_db=threshold,
            motion_ignore_threshold=motion_threshold,
        )
        motion_cell = MotionCell(initial=motion, gravity_compensation=gravity_compensation)
    except ValueError as e:
        console.print(f"[error]✗ Invalid configuration: {e}[/error]")
        sys.exit(1)

    if device_id is None and app_config.get("device_id") is not None:
        device_id = int(app_config.get("device_id"))

    location_cell = LocationCell()
    if latitude is not None and longitude is not None:
        location_cell.update(LocationFix(latitude, longitude, altitude, provider="cli"))

    poller = None
    if accelerometer is not None:
        poller = AccelerometerPoller(motion_cell, lambda: read_iio_axes(accelerometer))
        poller.start()

    session = NoiseSession(meter_config, device_id=device_id)
    if verbose:
        started = session.start()
    else:
        with suppress_stderr():
            started = session.start()
    if not started:
        if poller is not None:
            poller.stop()
        console.print("[error]✗ Could not open the audio input device[/error]")
        sys.exit(1)

    info_grid = make_config_table(meter_config)
    info_grid.add_row("Device:", f"{session.device_name} (ID: {device_id if device_id is not None else 'default'})")
    info_grid.add_row("Block:", f"{session.block_size} samples")
    info_grid.add_row("Motion:", str(accelerometer) if accelerometer else f"static {motion:.2f} m/s²")
    info_grid.add_row("Duration:", f"{duration}s" if duration else "continuous (Ctrl+C to stop)")
    console.print(Panel(info_grid, title="[bold]🎙 Noise Measurement[/bold]", border_style="green"))

    progress = make_level_progress()
    task = progress.add_task("level", total=120, db_text="-- dB", motion="", status="")
    live = Live(
        make_live_view(progress, location_cell.latest()),
        console=console,
        refresh_per_second=10,
        screen=False,
    )

    def show(result):
        progress.update(
            task,
            completed=max(0.0, min(120.0, result.db)),
            db_text=f"{result.db:.1f} dB",
            motion=format_motion(result.motion),
            status=format_status(result.classification),
        )
        live.update(make_live_view(progress, result.location))

    dispatcher = ReadingDispatcher(
        session.readings, meter_config, motion_cell, location_cell, on_reading=show
    )

    device_lost = False
    start_time = time.time()
    try:
        with live:
            while session.is_recording:
                if duration and time.time() - start_time >= duration:
                    break
                dispatcher.dispatch_pending(timeout=0.1)
            device_lost = not session.is_recording
            dispatcher.dispatch_pending()
    except KeyboardInterrupt:
        console.print("[warning]⏹ Measurement interrupted by user[/warning]")
    finally:
        session.stop()
        if poller is not None:
            poller.stop()

    if device_lost:
        console.print("[warning]Audio input stopped unexpectedly[/warning]")

    summary = Table.grid(padding=(0, 1))
    summary.add_column()
    last = dispatcher.last
    if last:
        summary.add_row(Text(draw_db_bar(last.db, width=30)))
        summary.add_row(describe_result(last))
    else:
        summary.add_row("No readings")
    summary.add_row(describe_location(location_cell.latest()))
    console.print(Panel(summary, title="[bold]Last reading[/bold]"))
    console.print("[success]✓ Measurement completed[/success]")


@app.command()
def status(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show debug output from audio libraries"
    ),
):
    """Show input devices and the effective meter configuration.

    Values come from ``.noisesense.yml`` in the working directory when
    present, otherwise from the built-in defaults.
    """
    _configure_logging(verbose)

    console.rule("[bold]📋 NoiseSense Status[/bold]")
    console.print()
    try:
        if verbose:
            devices = RecordingEngine.list_devices()
        else:
            with suppress_stderr():
                devices = RecordingEngine.list_devices()
        console.print(Panel(make_device_table(devices), title="[bold]Available Input Devices[/bold]"))
    except Exception as e:
        console.print(f"[error]✗ Error listing devices: {e}[/error]")

    try:
        meter_config = app_config.to_meter_config()
    except (TypeError, ValueError) as e:
        console.print(f"[error]✗ Invalid configuration: {e}[/error]")
        sys.exit(1)
    console.print(Panel(make_config_table(meter_config), title="[bold]Meter Configuration[/bold]"))
