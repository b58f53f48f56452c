"""Utility tests for NoiseSense."""

from noisesense.cli.utils import console, describe_result, format_motion, format_status
from noisesense.core import Classification, LoudnessReading, classify_reading, MeterConfig


def test_console_available():
    """Test that console is available."""
    assert console is not None
    assert hasattr(console, 'print')


def test_format_status_text():
    assert "Phone moving — reading ignored" in format_status(Classification.SUPPRESSED)
    assert "NUISANCE — Exceeds threshold" in format_status(Classification.NUISANCE)
    assert "OK — Below threshold" in format_status(Classification.BELOW_THRESHOLD)


def test_describe_result():
    result = classify_reading(LoudnessReading(db=42.04), 0.5, MeterConfig())
    assert format_motion(0.5) == "Motion: 0.50 m/s²"
    assert describe_result(result) == "42.0 dB | Motion: 0.50 m/s² | BELOW_THRESHOLD"


def test_live_view_shows_latest_location():
    from rich.console import Console

    from noisesense.cli.utils import make_level_progress, make_live_view
    from noisesense.core import LocationFix

    progress = make_level_progress()
    progress.add_task("level", total=120, db_text="42.0 dB", motion="", status="")
    recorder = Console(record=True, width=160)

    recorder.print(make_live_view(progress, None))
    assert "Location: unknown" in recorder.export_text()

    recorder.print(make_live_view(progress, LocationFix(51.5, -0.12, 20.0, provider="gps")))
    text = recorder.export_text()
    assert "Lat: 51.50000" in text
    assert "Lng: -0.12000" in text
    assert "Provider: gps" in text
