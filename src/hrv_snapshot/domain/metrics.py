"""
Metric domain models.

This module defines the snapshot samples, derived history records and the
source-level value types exchanged with metric sources.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

SENTINEL = "--"

WEATHER_TITLE = "Weather"
NEXT_EVENT_TITLE = "Next Event"


class MetricKind(str, Enum):
    """Enumeration of the health metrics collected every refresh cycle."""

    HRV = "HRV"
    RESTING_HR = "Resting HR"
    SLEEP = "Sleep"
    MINDFUL = "Mindful Minutes"
    STEPS = "Steps"
    ACTIVE_ENERGY = "Active Energy"


class QueryPolicy(str, Enum):
    """Selection policy for quantity source queries."""

    MOST_RECENT = "most_recent"
    SUM = "sum"


class SleepState(str, Enum):
    """Sleep analysis interval states."""

    IN_BED = "in_bed"
    ASLEEP = "asleep"
    AWAKE = "awake"
    CORE = "core"
    DEEP = "deep"
    REM = "rem"


ASLEEP_STATES = frozenset(
    {SleepState.ASLEEP.value, SleepState.CORE.value, SleepState.DEEP.value, SleepState.REM.value}
)


class MetricSample(BaseModel):
    """
    One entry of the dashboard snapshot.

    display_value is either a formatted value with its unit ("65 bpm")
    or the SENTINEL when the source had no data.
    """

    title: str = Field(description="Metric name")
    display_value: str = Field(description="Formatted value or sentinel")
    timestamp: datetime = Field(description="Time the sample was taken (timezone-aware)")

    model_config = ConfigDict(frozen=True)

    @property
    def has_data(self) -> bool:
        return self.display_value != SENTINEL


class HistoryRecord(BaseModel):
    """Numeric value derived from a sample's display value."""

    timestamp: datetime
    value: float

    model_config = ConfigDict(frozen=True)


class HRVRecord(BaseModel):
    """Persisted HRV history entry (integer milliseconds)."""

    date: datetime
    value: int


class IntervalSample(BaseModel):
    """Category sample covering [start, end) with an optional state tag."""

    start: datetime
    end: datetime
    state: str | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def duration_seconds(self) -> float:
        return (self.end - self.start).total_seconds()


class WeatherReading(BaseModel):
    """Current weather conditions."""

    temperature: float = Field(description="Temperature in degrees")
    condition: str = Field(description="Human readable condition, e.g. 'Cloudy'")


class CalendarEvent(BaseModel):
    """Upcoming calendar event."""

    title: str
    start: datetime


MetricHistory = dict[MetricKind, list[HistoryRecord]]
