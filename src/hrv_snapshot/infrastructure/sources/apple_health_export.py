"""
Apple Health export source.

Implements the quantity and category source protocols on top of an Apple
Health export (export.xml, or the export.zip produced by the Health app),
streamed with a SAX parser.
"""

import logging
import xml.sax
import xml.sax.handler
import zipfile
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel

from hrv_snapshot.domain.metrics import IntervalSample, QueryPolicy
from hrv_snapshot.infrastructure.sources.base import HealthIdentifier
from hrv_snapshot.utils.exceptions import ParsingError, SourceError
from hrv_snapshot.utils.timezone_utils import parse_datetime

logger = logging.getLogger(__name__)

QUANTITY_TYPES = {
    "HKQuantityTypeIdentifierHeartRateVariabilitySDNN": HealthIdentifier.HRV_SDNN,
    "HKQuantityTypeIdentifierRestingHeartRate": HealthIdentifier.RESTING_HEART_RATE,
    "HKQuantityTypeIdentifierStepCount": HealthIdentifier.STEP_COUNT,
    "HKQuantityTypeIdentifierActiveEnergyBurned": HealthIdentifier.ACTIVE_ENERGY_BURNED,
}

CATEGORY_TYPES = {
    "HKCategoryTypeIdentifierSleepAnalysis": HealthIdentifier.SLEEP_ANALYSIS,
    "HKCategoryTypeIdentifierMindfulSession": HealthIdentifier.MINDFUL_SESSION,
}

SLEEP_VALUES = {
    "HKCategoryValueSleepAnalysisInBed": "in_bed",
    "HKCategoryValueSleepAnalysisAsleep": "asleep",
    "HKCategoryValueSleepAnalysisAsleepUnspecified": "asleep",
    "HKCategoryValueSleepAnalysisAwake": "awake",
    "HKCategoryValueSleepAnalysisAsleepCore": "core",
    "HKCategoryValueSleepAnalysisAsleepDeep": "deep",
    "HKCategoryValueSleepAnalysisAsleepREM": "rem",
}

# (from_unit, to_unit) -> multiplier
UNIT_FACTORS = {
    ("ms", "s"): 0.001,
    ("s", "ms"): 1000.0,
    ("Cal", "kcal"): 1.0,
    ("kcal", "Cal"): 1.0,
    ("kJ", "kcal"): 1 / 4.184,
    ("count/min", "bpm"): 1.0,
    ("bpm", "count/min"): 1.0,
}


class QuantityRecord(BaseModel):
    """Single quantity sample read from the export."""

    start: datetime
    end: datetime
    value: float
    unit: str


def convert_unit(value: float, from_unit: str, to_unit: str) -> float:
    """
    Convert a value between the units used by the export and by queries.

    Raises:
        SourceError: If the conversion is not supported.
    """
    if from_unit == to_unit:
        return value

    factor = UNIT_FACTORS.get((from_unit, to_unit))
    if factor is None:
        raise SourceError(f"Unsupported unit conversion: {from_unit} -> {to_unit}")

    return value * factor


class _ExportHandler(xml.sax.handler.ContentHandler):
    """Streaming handler collecting the record types the dashboard reads."""

    def __init__(self, timezone_str: str) -> None:
        super().__init__()
        self.timezone_str = timezone_str
        self.quantities: dict[HealthIdentifier, list[QuantityRecord]] = {
            identifier: [] for identifier in QUANTITY_TYPES.values()
        }
        self.intervals: dict[HealthIdentifier, list[IntervalSample]] = {
            identifier: [] for identifier in CATEGORY_TYPES.values()
        }
        self.skipped = 0

    def startElement(self, name, attrs):  # noqa: N802
        if name != "Record":
            return

        record_type = attrs.get("type", "")
        try:
            if record_type in QUANTITY_TYPES:
                self._handle_quantity(QUANTITY_TYPES[record_type], attrs)
            elif record_type in CATEGORY_TYPES:
                self._handle_category(CATEGORY_TYPES[record_type], attrs)
        except (ValueError, OverflowError) as e:
            self.skipped += 1
            logger.debug(f"Skipping malformed {record_type} record: {e}")

    def _handle_quantity(self, identifier: HealthIdentifier, attrs) -> None:
        self.quantities[identifier].append(
            QuantityRecord(
                start=parse_datetime(attrs.get("startDate", ""), self.timezone_str),
                end=parse_datetime(attrs.get("endDate", ""), self.timezone_str),
                value=float(attrs.get("value", "")),
                unit=attrs.get("unit", ""),
            )
        )

    def _handle_category(self, identifier: HealthIdentifier, attrs) -> None:
        raw_value = attrs.get("value", "")
        if identifier == HealthIdentifier.SLEEP_ANALYSIS:
            state = SLEEP_VALUES.get(
                raw_value, raw_value.replace("HKCategoryValueSleepAnalysis", "").lower()
            )
        else:
            state = raw_value or None

        self.intervals[identifier].append(
            IntervalSample(
                start=parse_datetime(attrs.get("startDate", ""), self.timezone_str),
                end=parse_datetime(attrs.get("endDate", ""), self.timezone_str),
                state=state,
            )
        )


class AppleHealthExportSource:
    """
    Quantity and category source backed by an Apple Health export.

    The export is parsed once, on first query, and kept in memory.
    """

    def __init__(self, export_path: str, timezone_str: str = "UTC") -> None:
        """
        Initialize the export source.

        Args:
            export_path: Path to export.xml or export.zip.
            timezone_str: Timezone assumed for dates without an offset.
        """
        self.export_path = Path(export_path)
        self.timezone_str = timezone_str
        self._handler: _ExportHandler | None = None

    def _load(self) -> _ExportHandler:
        """
        Parse the export on first use.

        Raises:
            ParsingError: If the export is missing or is not valid XML.
        """
        if self._handler is not None:
            return self._handler

        if not self.export_path.exists():
            raise ParsingError(f"Apple Health export not found: {self.export_path}")

        handler = _ExportHandler(self.timezone_str)

        try:
            if self.export_path.suffix.lower() == ".zip":
                with zipfile.ZipFile(self.export_path, "r") as zf:
                    candidates = [n for n in zf.namelist() if n.endswith("export.xml")]
                    if not candidates:
                        raise ParsingError(f"No export.xml found in {self.export_path}")
                    with zf.open(candidates[0]) as xml_file:
                        xml.sax.parse(xml_file, handler)
            else:
                with open(self.export_path, "rb") as xml_file:
                    xml.sax.parse(xml_file, handler)

        except (xml.sax.SAXException, zipfile.BadZipFile, OSError) as e:
            raise ParsingError(f"Failed to parse Apple Health export {self.export_path}: {e}") from e

        for records in handler.quantities.values():
            records.sort(key=lambda r: r.start)
        for intervals in handler.intervals.values():
            intervals.sort(key=lambda s: s.start)

        total = sum(len(r) for r in handler.quantities.values()) + sum(
            len(i) for i in handler.intervals.values()
        )
        logger.info(
            f"Loaded {total} records from {self.export_path.name} ({handler.skipped} skipped)"
        )

        self._handler = handler
        return handler

    def query_quantity(
        self,
        identifier: HealthIdentifier,
        policy: QueryPolicy,
        unit: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> float | None:
        """Query a quantity type; see QuantitySource.query_quantity."""
        handler = self._load()

        if identifier not in handler.quantities:
            raise SourceError(f"Not a quantity type: {identifier}")

        records = handler.quantities[identifier]

        if policy == QueryPolicy.MOST_RECENT:
            candidates = [r for r in records if end is None or r.start < end]
            if not candidates:
                return None
            latest = max(candidates, key=lambda r: r.end)
            return convert_unit(latest.value, latest.unit, unit)

        if start is None or end is None:
            raise SourceError("Sum queries require a start and end")

        in_window = [r for r in records if start <= r.start < end]
        if not in_window:
            return None

        return sum(convert_unit(r.value, r.unit, unit) for r in in_window)

    def query_intervals(
        self, identifier: HealthIdentifier, start: datetime, end: datetime
    ) -> list[IntervalSample]:
        """Return category samples overlapping [start, end)."""
        handler = self._load()

        if identifier not in handler.intervals:
            raise SourceError(f"Not a category type: {identifier}")

        return [s for s in handler.intervals[identifier] if s.start < end and s.end > start]
