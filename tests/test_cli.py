"""CLI integration tests for NoiseSense."""

import numpy as np
from typer.testing import CliRunner

from noisesense.cli import app
from noisesense.cli import commands
from noisesense.core import NoiseSession, RecordingEngine

runner = CliRunner()

DEVICES = [
    {"id": 0, "name": "USB PnP Audio Device", "driver": "usb", "channels": 1, "rate": 44100, "is_default": True},
]


def _patch_devices(monkeypatch, devices=DEVICES):
    monkeypatch.setattr(RecordingEngine, "list_devices", staticmethod(lambda driver_filter=None, audio=None: devices))


def test_help_command():
    """Test help command."""
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "measure" in result.stdout
    assert "list-devices" in result.stdout


def test_measure_help_shows_threshold_options():
    result = runner.invoke(app, ["measure", "--help"])
    assert result.exit_code == 0
    assert "--threshold" in result.stdout
    assert "--motion-threshold" in result.stdout
    assert "--calibration-offset" in result.stdout


def test_list_devices_command(monkeypatch):
    """Test list-devices command."""
    _patch_devices(monkeypatch)
    result = runner.invoke(app, ["list-devices", "--verbose"])
    assert result.exit_code == 0
    assert "USB PnP Audio Device" in result.stdout


def test_status_command(tmp_path, monkeypatch):
    """Status shows the default meter configuration without a config file."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(commands, "app_config", commands.AppConfig())
    _patch_devices(monkeypatch)
    result = runner.invoke(app, ["status", "--verbose"])
    assert result.exit_code == 0
    assert "65.0 dB" in result.stdout
    assert "44100 Hz" in result.stdout


def test_status_reads_yaml(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / ".noisesense.yml").write_text(
        """
        meter:
          nuisance_threshold_db: 55.5
          motion_ignore_threshold: 2.0
        """,
        encoding="utf-8",
    )
    monkeypatch.setattr(commands, "app_config", commands.AppConfig())
    _patch_devices(monkeypatch)
    result = runner.invoke(app, ["status", "--verbose"])
    assert result.exit_code == 0
    assert "55.5 dB" in result.stdout
    assert "2.00 m/s²" in result.stdout


def test_status_reports_device_errors(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(commands, "app_config", commands.AppConfig())

    def broken(driver_filter=None, audio=None):
        raise OSError("PortAudio not initialized")

    monkeypatch.setattr(RecordingEngine, "list_devices", staticmethod(broken))
    result = runner.invoke(app, ["status", "--verbose"])
    assert result.exit_code == 0
    assert "Error listing devices" in result.stdout


def test_measure_reports_suppressed_reading(monkeypatch, fakes):
    block = np.full(1000, 16384, dtype=np.int16)
    audio = fakes.Audio(stream=fakes.Stream([block] * 5), device_info={"name": "Fake Mic"})
    monkeypatch.setattr(
        commands,
        "NoiseSession",
        lambda config, device_id=None: NoiseSession(config, device_id, audio_factory=audio),
    )
    result = runner.invoke(
        app,
        ["measure", "--duration", "5", "--motion", "5.0", "--latitude", "51.5", "--longitude", "-0.12", "-v"],
    )
    assert result.exit_code == 0
    assert "SUPPRESSED" in result.stdout
    assert "Lat: 51.50000" in result.stdout
    assert audio.terminate_calls == 1


def test_measure_reports_nuisance_reading(monkeypatch, fakes):
    block = np.full(1000, 16384, dtype=np.int16)
    audio = fakes.Audio(stream=fakes.Stream([block] * 3), device_info={"name": "Fake Mic"})
    monkeypatch.setattr(
        commands,
        "NoiseSession",
        lambda config, device_id=None: NoiseSession(config, device_id, audio_factory=audio),
    )
    result = runner.invoke(app, ["measure", "--duration", "5", "--motion", "1.0", "-v"])
    assert result.exit_code == 0
    assert "NUISANCE" in result.stdout
    assert "84.0 dB" in result.stdout
    assert "█" in result.stdout
    assert "Location: unknown" in result.stdout


def test_measure_fails_cleanly_without_device(monkeypatch, fakes):
    audio = fakes.Audio(fail_open=True)
    monkeypatch.setattr(
        commands,
        "NoiseSession",
        lambda config, device_id=None: NoiseSession(config, device_id, audio_factory=audio),
    )
    result = runner.invoke(app, ["measure", "--duration", "1", "-v"])
    assert result.exit_code == 1
    assert "Could not open the audio input device" in result.stdout


def test_measure_rejects_invalid_rate():
    result = runner.invoke(app, ["measure", "--rate", "0", "-v"])
    assert result.exit_code == 1
    assert "Invalid configuration" in result.stdout


def test_measure_without_duration_runs_until_input_stops(monkeypatch, fakes):
    block = np.full(1000, 1000, dtype=np.int16)
    audio = fakes.Audio(stream=fakes.Stream([block] * 3), device_info={"name": "Fake Mic"})
    monkeypatch.setattr(
        commands,
        "NoiseSession",
        lambda config, device_id=None: NoiseSession(config, device_id, audio_factory=audio),
    )
    result = runner.invoke(app, ["measure", "-v"])
    assert result.exit_code == 0
    assert "continuous (Ctrl+C to stop)" in result.stdout
    assert "Audio input stopped unexpectedly" in result.stdout
    assert "BELOW_THRESHOLD" in result.stdout
