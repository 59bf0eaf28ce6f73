"""
Metric source interfaces.

Concrete bindings (an Apple Health export, a platform health store, test
fakes) implement these protocols; the aggregator depends only on them.
"""

from datetime import datetime
from enum import Enum
from typing import Protocol

from hrv_snapshot.domain.metrics import (
    CalendarEvent,
    IntervalSample,
    QueryPolicy,
    WeatherReading,
)


class HealthIdentifier(str, Enum):
    """Source-level identifiers of the queried health data types."""

    HRV_SDNN = "heart_rate_variability_sdnn"
    RESTING_HEART_RATE = "resting_heart_rate"
    SLEEP_ANALYSIS = "sleep_analysis"
    MINDFUL_SESSION = "mindful_session"
    STEP_COUNT = "step_count"
    ACTIVE_ENERGY_BURNED = "active_energy_burned"


class QuantitySource(Protocol):
    def query_quantity(
        self,
        identifier: HealthIdentifier,
        policy: QueryPolicy,
        unit: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> float | None:
        """
        Query a quantity type.

        Args:
            identifier: Quantity type to query.
            policy: MOST_RECENT returns the latest single sample, SUM the
                total of samples starting inside [start, end).
            unit: Unit the returned value is expressed in.
            start: Interval start (SUM only).
            end: Interval end (SUM only).

        Returns:
            The value in the requested unit, or None when there is no data.

        Raises:
            SourceError: If the query fails.
        """
        ...


class CategorySource(Protocol):
    def query_intervals(
        self, identifier: HealthIdentifier, start: datetime, end: datetime
    ) -> list[IntervalSample]:
        """Return category samples overlapping [start, end), oldest first."""
        ...


class WeatherSource(Protocol):
    def current(self) -> WeatherReading | None: ...


class CalendarSource(Protocol):
    def events(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        """Return events starting inside [start, end), soonest first."""
        ...


class Clock(Protocol):
    def now(self) -> datetime: ...

    def start_of_day(self, instant: datetime) -> datetime: ...
