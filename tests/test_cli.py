"""Tests for the command-line interface."""

from pathlib import Path

from typer.testing import CliRunner

from hrv_snapshot.cli.main import app

runner = CliRunner()

EXPORT_XML = """<?xml version="1.0" encoding="UTF-8"?>
<HealthData locale="en_US">
 <Record type="HKQuantityTypeIdentifierHeartRateVariabilitySDNN" sourceName="Watch" unit="ms"
   startDate="2024-01-15 09:00:00 +0000" endDate="2024-01-15 09:01:00 +0000" value="62"/>
 <Record type="HKQuantityTypeIdentifierRestingHeartRate" sourceName="Watch" unit="count/min"
   startDate="2024-01-15 06:00:00 +0000" endDate="2024-01-15 06:00:00 +0000" value="57"/>
</HealthData>
"""


def _write_config(tmp_path: Path, show_hrv: bool = True) -> Path:
    export_path = tmp_path / "export.xml"
    export_path.write_text(EXPORT_XML, encoding="utf-8")

    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        f"""
processing:
  timezone: "UTC"
sources:
  apple_health:
    export_path: "{export_path.as_posix()}"
storage:
  path: "{(tmp_path / 'store').as_posix()}"
display:
  show_hrv: {str(show_hrv).lower()}
output:
  dir: "{(tmp_path / 'output').as_posix()}"
logging:
  level: "WARNING"
  file: null
  console: false
""",
        encoding="utf-8",
    )
    return config_path


def test_refresh_then_latest(tmp_path: Path) -> None:
    """Test that a refresh prints the snapshot and persists HRV for latest."""
    config_path = _write_config(tmp_path)

    result = runner.invoke(app, ["refresh", "--config-path", str(config_path)])
    if result.exit_code != 0:
        raise AssertionError(f"refresh failed: {result.output}")

    if "HRV: 62 ms" not in result.output:
        raise AssertionError(f"Expected HRV in output, got {result.output}")

    if "Steps: --" not in result.output:
        raise AssertionError(f"Expected sentinel for steps, got {result.output}")

    result = runner.invoke(app, ["latest", "--config-path", str(config_path)])
    if "HRV: 62 ms" not in result.output:
        raise AssertionError(f"Expected persisted HRV, got {result.output}")


def test_refresh_respects_display_toggles(tmp_path: Path) -> None:
    """Test that hidden metrics are not printed."""
    config_path = _write_config(tmp_path, show_hrv=False)

    result = runner.invoke(app, ["refresh", "--config-path", str(config_path)])

    if "HRV:" in result.output:
        raise AssertionError(f"HRV should be hidden, got {result.output}")

    if "Resting HR: 57 bpm" not in result.output:
        raise AssertionError(f"Expected resting HR in output, got {result.output}")


def test_missing_config_exits_with_error(tmp_path: Path) -> None:
    """Test that configuration errors exit with code 1."""
    result = runner.invoke(app, ["latest", "--config-path", str(tmp_path / "missing.yaml")])

    if result.exit_code != 1:
        raise AssertionError(f"Expected exit code 1, got {result.exit_code}")
