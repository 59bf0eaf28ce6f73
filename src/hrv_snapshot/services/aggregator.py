"""
Metric aggregation service.

Runs the refresh cycle: queries every metric source, formats the results
into a snapshot and appends the derived values to the rolling history.
"""

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta

from hrv_snapshot.domain.metrics import (
    ASLEEP_STATES,
    NEXT_EVENT_TITLE,
    SENTINEL,
    WEATHER_TITLE,
    HistoryRecord,
    MetricKind,
    MetricSample,
    QueryPolicy,
)
from hrv_snapshot.infrastructure.sources.base import (
    CalendarSource,
    CategorySource,
    Clock,
    HealthIdentifier,
    QuantitySource,
    WeatherSource,
)
from hrv_snapshot.services.formatting import (
    format_active_energy,
    format_hrv,
    format_mindful,
    format_resting_hr,
    format_sleep,
    format_steps,
    parse_display_value,
    sum_interval_seconds,
)
from hrv_snapshot.services.state import DashboardState

logger = logging.getLogger(__name__)

NEXT_EVENT_HORIZON = timedelta(days=1)


class MetricAggregator:
    """
    Refresh cycle over the six health metrics plus optional context.

    Source failures never escape a refresh: the affected metric shows the
    sentinel and the rest of the snapshot is still produced.
    """

    def __init__(
        self,
        quantity_source: QuantitySource,
        category_source: CategorySource,
        clock: Clock,
        state: DashboardState,
        weather_source: WeatherSource | None = None,
        calendar_source: CalendarSource | None = None,
    ) -> None:
        """
        Initialize the aggregator.

        Args:
            quantity_source: Source for HRV, resting HR, steps and energy.
            category_source: Source for sleep and mindfulness intervals.
            clock: Supplies now and local start of day.
            state: Published state receiving snapshots and history.
            weather_source: Optional current weather for refresh_all().
            calendar_source: Optional calendar for refresh_all().
        """
        self.quantity_source = quantity_source
        self.category_source = category_source
        self.clock = clock
        self.state = state
        self.weather_source = weather_source
        self.calendar_source = calendar_source

        self._readers: dict[MetricKind, Callable[[datetime, datetime], str]] = {
            MetricKind.HRV: self._read_hrv,
            MetricKind.RESTING_HR: self._read_resting_hr,
            MetricKind.SLEEP: self._read_sleep,
            MetricKind.MINDFUL: self._read_mindful,
            MetricKind.STEPS: self._read_steps,
            MetricKind.ACTIVE_ENERGY: self._read_active_energy,
        }

        self._guard = threading.Lock()
        self._in_flight = False
        self._pending = False

    def _read_hrv(self, day_start: datetime, now: datetime) -> str:
        seconds = self.quantity_source.query_quantity(
            HealthIdentifier.HRV_SDNN, QueryPolicy.MOST_RECENT, "s"
        )
        return format_hrv(seconds)

    def _read_resting_hr(self, day_start: datetime, now: datetime) -> str:
        bpm = self.quantity_source.query_quantity(
            HealthIdentifier.RESTING_HEART_RATE, QueryPolicy.MOST_RECENT, "count/min"
        )
        return format_resting_hr(bpm)

    def _read_sleep(self, day_start: datetime, now: datetime) -> str:
        intervals = self.category_source.query_intervals(
            HealthIdentifier.SLEEP_ANALYSIS, day_start, now
        )
        return format_sleep(sum_interval_seconds(intervals, day_start, now, ASLEEP_STATES))

    def _read_mindful(self, day_start: datetime, now: datetime) -> str:
        intervals = self.category_source.query_intervals(
            HealthIdentifier.MINDFUL_SESSION, day_start, now
        )
        return format_mindful(sum_interval_seconds(intervals, day_start, now))

    def _read_steps(self, day_start: datetime, now: datetime) -> str:
        steps = self.quantity_source.query_quantity(
            HealthIdentifier.STEP_COUNT, QueryPolicy.SUM, "count", day_start, now
        )
        return format_steps(steps)

    def _read_active_energy(self, day_start: datetime, now: datetime) -> str:
        kcal = self.quantity_source.query_quantity(
            HealthIdentifier.ACTIVE_ENERGY_BURNED, QueryPolicy.SUM, "kcal", day_start, now
        )
        return format_active_energy(kcal)

    def collect_health(self, now: datetime) -> list[MetricSample]:
        """
        Query every health metric once.

        Returns:
            One sample per MetricKind, in definition order.
        """
        day_start = self.clock.start_of_day(now)
        samples: list[MetricSample] = []

        for kind, reader in self._readers.items():
            try:
                display_value = reader(day_start, now)
            except Exception as e:
                logger.warning(f"Failed to read {kind.value}: {e}")
                display_value = SENTINEL

            samples.append(MetricSample(title=kind.value, display_value=display_value, timestamp=now))

        return samples

    def collect_context(self, now: datetime) -> list[MetricSample]:
        """Weather and next calendar event samples, when available."""
        samples: list[MetricSample] = []

        if self.weather_source is not None:
            try:
                reading = self.weather_source.current()
                if reading is not None:
                    samples.append(
                        MetricSample(
                            title=WEATHER_TITLE,
                            display_value=f"{reading.temperature:.0f}° / {reading.condition}",
                            timestamp=now,
                        )
                    )
            except Exception as e:
                logger.warning(f"Failed to read weather: {e}")

        if self.calendar_source is not None:
            try:
                events = self.calendar_source.events(now, now + NEXT_EVENT_HORIZON)
                if events:
                    samples.append(
                        MetricSample(
                            title=NEXT_EVENT_TITLE,
                            display_value=events[0].title,
                            timestamp=events[0].start,
                        )
                    )
            except Exception as e:
                logger.warning(f"Failed to read calendar: {e}")

        return samples

    def _record_history(self, samples: list[MetricSample], now: datetime) -> None:
        """Append a history record for every sample with a parseable value."""
        appended = 0
        for sample in samples:
            value = parse_display_value(sample.display_value)
            if value is None:
                continue

            self.state.history.append(
                MetricKind(sample.title),
                HistoryRecord(timestamp=sample.timestamp, value=value),
                now,
            )
            appended += 1

        logger.debug(f"Appended {appended} history records")

    def refresh(self) -> None:
        """Run one refresh cycle over the health metrics and publish the result."""
        now = self.clock.now()
        samples = self.collect_health(now)

        self.state.replace_snapshot(samples)
        self._record_history(samples, now)
        self.state.publish()

        missing = [s.title for s in samples if not s.has_data]
        logger.info(f"Refreshed {len(samples)} metrics ({len(missing)} without data)")

    def refresh_all(self) -> None:
        """Refresh health metrics and append weather and calendar context."""
        now = self.clock.now()
        health = self.collect_health(now)
        context = self.collect_context(now)

        self.state.replace_snapshot(health + context)
        self._record_history(health, now)
        self.state.publish()

        logger.info(f"Refreshed {len(health)} metrics and {len(context)} context entries")

    def request_refresh(self) -> bool:
        """
        Run refresh_all() unless one is already in flight.

        Requests arriving while a refresh runs are coalesced into a single
        rerun performed by the caller that owns the running refresh.

        Returns:
            True if this call ran the refresh, False if it was coalesced.
        """
        with self._guard:
            if self._in_flight:
                self._pending = True
                logger.debug("Refresh in flight, coalescing request")
                return False
            self._in_flight = True

        try:
            while True:
                self.refresh_all()
                with self._guard:
                    if not self._pending:
                        self._in_flight = False
                        return True
                    self._pending = False
        except BaseException:
            with self._guard:
                self._in_flight = False
                self._pending = False
            raise

    def on_authorization_granted(self) -> bool:
        """Handle a data-access authorization grant by requesting one refresh."""
        logger.info("Authorization granted, requesting refresh")
        return self.request_refresh()
