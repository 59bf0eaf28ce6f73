"""Unit tests for the Apple Health export source."""

import zipfile
from datetime import datetime
from pathlib import Path

import pytest
import pytz

from hrv_snapshot.domain.metrics import QueryPolicy
from hrv_snapshot.infrastructure.sources.apple_health_export import (
    AppleHealthExportSource,
    convert_unit,
)
from hrv_snapshot.infrastructure.sources.base import HealthIdentifier
from hrv_snapshot.utils.exceptions import ParsingError, SourceError

EXPORT_XML = """<?xml version="1.0" encoding="UTF-8"?>
<HealthData locale="en_US">
 <ExportDate value="2024-01-15 21:00:00 +0000"/>
 <Record type="HKQuantityTypeIdentifierHeartRateVariabilitySDNN" sourceName="Watch" unit="ms"
   startDate="2024-01-15 07:00:00 +0000" endDate="2024-01-15 07:01:00 +0000" value="48.5"/>
 <Record type="HKQuantityTypeIdentifierHeartRateVariabilitySDNN" sourceName="Watch" unit="ms"
   startDate="2024-01-15 09:00:00 +0000" endDate="2024-01-15 09:01:00 +0000" value="62"/>
 <Record type="HKQuantityTypeIdentifierHeartRateVariabilitySDNN" sourceName="Watch" unit="ms"
   startDate="2024-01-15 10:00:00 +0000" endDate="2024-01-15 10:01:00 +0000" value="abc"/>
 <Record type="HKQuantityTypeIdentifierRestingHeartRate" sourceName="Watch" unit="count/min"
   startDate="2024-01-15 06:00:00 +0000" endDate="2024-01-15 06:00:00 +0000" value="57"/>
 <Record type="HKQuantityTypeIdentifierStepCount" sourceName="Phone" unit="count"
   startDate="2024-01-14 23:00:00 +0000" endDate="2024-01-14 23:10:00 +0000" value="500"/>
 <Record type="HKQuantityTypeIdentifierStepCount" sourceName="Phone" unit="count"
   startDate="2024-01-15 08:00:00 +0000" endDate="2024-01-15 08:30:00 +0000" value="1200"/>
 <Record type="HKQuantityTypeIdentifierStepCount" sourceName="Phone" unit="count"
   startDate="2024-01-15 12:00:00 +0000" endDate="2024-01-15 13:00:00 +0000" value="3121"/>
 <Record type="HKQuantityTypeIdentifierActiveEnergyBurned" sourceName="Watch" unit="Cal"
   startDate="2024-01-15 12:00:00 +0000" endDate="2024-01-15 13:00:00 +0000" value="210.5"/>
 <Record type="HKCategoryTypeIdentifierSleepAnalysis" sourceName="Watch"
   startDate="2024-01-14 23:30:00 +0000" endDate="2024-01-15 00:30:00 +0000"
   value="HKCategoryValueSleepAnalysisInBed"/>
 <Record type="HKCategoryTypeIdentifierSleepAnalysis" sourceName="Watch"
   startDate="2024-01-15 00:30:00 +0000" endDate="2024-01-15 03:00:00 +0000"
   value="HKCategoryValueSleepAnalysisAsleepCore"/>
 <Record type="HKCategoryTypeIdentifierMindfulSession" sourceName="Phone"
   startDate="2024-01-15 12:00:00 +0000" endDate="2024-01-15 12:10:00 +0000"/>
 <Workout workoutActivityType="HKWorkoutActivityTypeRunning" duration="30"
   startDate="2024-01-15 17:00:00 +0000" endDate="2024-01-15 17:30:00 +0000"/>
</HealthData>
"""

DAY_START = datetime(2024, 1, 15, 0, 0, 0, tzinfo=pytz.UTC)
NOW = datetime(2024, 1, 15, 20, 0, 0, tzinfo=pytz.UTC)


def _write_export(tmp_path: Path) -> Path:
    export_path = tmp_path / "export.xml"
    export_path.write_text(EXPORT_XML, encoding="utf-8")
    return export_path


def test_most_recent_hrv_in_seconds(tmp_path: Path) -> None:
    """Test that the latest HRV sample is returned converted from ms to s."""
    source = AppleHealthExportSource(str(_write_export(tmp_path)))

    value = source.query_quantity(HealthIdentifier.HRV_SDNN, QueryPolicy.MOST_RECENT, "s")

    if value is None or abs(value - 0.062) > 1e-9:
        raise AssertionError(f"Expected 0.062 s, got {value}")


def test_sum_steps_within_window(tmp_path: Path) -> None:
    """Test that sums only include samples starting inside the window."""
    source = AppleHealthExportSource(str(_write_export(tmp_path)))

    steps = source.query_quantity(
        HealthIdentifier.STEP_COUNT, QueryPolicy.SUM, "count", DAY_START, NOW
    )
    if steps != 4321.0:
        raise AssertionError(f"Expected 4321.0 steps, got {steps}")

    energy = source.query_quantity(
        HealthIdentifier.ACTIVE_ENERGY_BURNED, QueryPolicy.SUM, "kcal", DAY_START, NOW
    )
    if energy != 210.5:
        raise AssertionError(f"Expected 210.5 kcal, got {energy}")


def test_sum_without_samples_is_no_data(tmp_path: Path) -> None:
    """Test that an empty window yields no data rather than zero."""
    source = AppleHealthExportSource(str(_write_export(tmp_path)))
    later = datetime(2024, 2, 1, 0, 0, 0, tzinfo=pytz.UTC)

    steps = source.query_quantity(
        HealthIdentifier.STEP_COUNT, QueryPolicy.SUM, "count", later, later.replace(hour=12)
    )
    if steps is not None:
        raise AssertionError(f"Expected None, got {steps}")


def test_intervals_overlapping_window(tmp_path: Path) -> None:
    """Test sleep states mapping and overlap selection."""
    source = AppleHealthExportSource(str(_write_export(tmp_path)))

    sleep = source.query_intervals(HealthIdentifier.SLEEP_ANALYSIS, DAY_START, NOW)
    if [s.state for s in sleep] != ["in_bed", "core"]:
        raise AssertionError(f"Unexpected sleep states: {[s.state for s in sleep]}")

    mindful = source.query_intervals(HealthIdentifier.MINDFUL_SESSION, DAY_START, NOW)
    if len(mindful) != 1 or mindful[0].duration_seconds != 600:
        raise AssertionError(f"Expected one 10 minute session, got {mindful}")


def test_zip_export(tmp_path: Path) -> None:
    """Test reading export.xml from inside an export.zip."""
    zip_path = tmp_path / "export.zip"
    with zipfile.ZipFile(zip_path, "w") as zf:
        zf.writestr("apple_health_export/export.xml", EXPORT_XML)

    source = AppleHealthExportSource(str(zip_path))
    value = source.query_quantity(
        HealthIdentifier.RESTING_HEART_RATE, QueryPolicy.MOST_RECENT, "count/min"
    )

    if value != 57.0:
        raise AssertionError(f"Expected 57.0 bpm, got {value}")


def test_missing_export_raises(tmp_path: Path) -> None:
    """Test that a missing export raises ParsingError."""
    source = AppleHealthExportSource(str(tmp_path / "missing.xml"))

    with pytest.raises(ParsingError):
        source.query_quantity(HealthIdentifier.HRV_SDNN, QueryPolicy.MOST_RECENT, "s")


def test_wrong_kind_of_identifier_raises(tmp_path: Path) -> None:
    """Test that category identifiers are rejected by quantity queries."""
    source = AppleHealthExportSource(str(_write_export(tmp_path)))

    with pytest.raises(SourceError):
        source.query_quantity(HealthIdentifier.SLEEP_ANALYSIS, QueryPolicy.MOST_RECENT, "s")


def test_convert_unit() -> None:
    """Test supported and unsupported unit conversions."""
    if abs(convert_unit(65.0, "ms", "s") - 0.065) > 1e-12:
        raise AssertionError("Expected 0.065 s")

    if convert_unit(100.0, "count", "count") != 100.0:
        raise AssertionError("Identity conversion should keep the value")

    with pytest.raises(SourceError):
        convert_unit(1.0, "km", "kcal")
