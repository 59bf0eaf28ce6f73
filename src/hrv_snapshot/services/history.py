"""
Rolling metric history.

Keeps a timestamp-ordered history per metric, prunes records older than the
retention window on every append and persists the HRV history to a durable
key-value store.
"""

import json
import logging
from datetime import datetime, timedelta

from pydantic import TypeAdapter, ValidationError

from hrv_snapshot.domain.metrics import HistoryRecord, HRVRecord, MetricHistory, MetricKind
from hrv_snapshot.infrastructure.storage.kv_store import KeyValueStore
from hrv_snapshot.utils.exceptions import StorageError
from hrv_snapshot.utils.timezone_utils import make_timezone_aware

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 30
HRV_HISTORY_KEY = "hrvHistory"

_HRV_RECORDS = TypeAdapter(list[HRVRecord])


def encode_hrv_history(records: list[HistoryRecord]) -> bytes:
    """Serialize history records as a JSON list of {date, value} integers."""
    payload = [
        HRVRecord(date=r.timestamp, value=int(round(r.value))).model_dump(mode="json")
        for r in records
    ]
    return json.dumps(payload).encode("utf-8")


def decode_hrv_history(raw: bytes) -> list[HistoryRecord]:
    """
    Deserialize persisted HRV records.

    Dates stored without an offset are read as UTC.

    Raises:
        ValidationError: If the payload is not a list of {date, value} records.
    """
    return [
        HistoryRecord(timestamp=make_timezone_aware(r.date, "UTC"), value=float(r.value))
        for r in _HRV_RECORDS.validate_json(raw)
    ]


def latest_persisted_hrv(store: KeyValueStore, key: str = HRV_HISTORY_KEY) -> int:
    """Most recent persisted HRV value in ms, 0 if none can be read."""
    try:
        raw = store.get(key)
        if raw is None:
            return 0
        records = _HRV_RECORDS.validate_json(raw)
    except (StorageError, ValidationError) as e:
        logger.warning(f"Failed to read persisted HRV history: {e}")
        return 0

    return records[-1].value if records else 0


class HistoryStore:
    """
    Per-metric history with eager retention.

    Only the persisted metric (HRV by default) survives process restarts;
    the other histories start empty.
    """

    def __init__(
        self,
        store: KeyValueStore,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        persisted_metric: MetricKind = MetricKind.HRV,
        persist_key: str = HRV_HISTORY_KEY,
    ) -> None:
        """
        Initialize history store.

        Args:
            store: Durable store used for the persisted metric.
            retention_days: Records older than this, relative to the append
                time, are dropped on every append.
            persisted_metric: Metric whose history is written to the store.
            persist_key: Store key for the persisted history.
        """
        self.store = store
        self.retention = timedelta(days=retention_days)
        self.persisted_metric = persisted_metric
        self.persist_key = persist_key
        self._history: MetricHistory = {kind: [] for kind in MetricKind}

    def load(self) -> None:
        """Seed the persisted metric's history from the store."""
        try:
            raw = self.store.get(self.persist_key)
            records = decode_hrv_history(raw) if raw is not None else []
        except (StorageError, ValidationError) as e:
            logger.warning(f"Failed to load {self.persisted_metric.value} history, starting empty: {e}")
            records = []

        self._history[self.persisted_metric] = records
        logger.info(f"Loaded {len(records)} {self.persisted_metric.value} history records")

    def append(self, metric: MetricKind, record: HistoryRecord, now: datetime) -> None:
        """
        Append a record and prune the metric's history.

        Args:
            metric: Metric the record belongs to.
            record: Record to append.
            now: Reference instant of the retention window.
        """
        cutoff = now - self.retention
        retained = [r for r in [*self._history[metric], record] if r.timestamp > cutoff]

        dropped = len(self._history[metric]) + 1 - len(retained)
        if dropped:
            logger.debug(f"Pruned {dropped} {metric.value} records older than {cutoff.isoformat()}")

        self._history[metric] = retained

        if metric == self.persisted_metric:
            self._persist(retained)

    def _persist(self, records: list[HistoryRecord]) -> None:
        """Overwrite the persisted history; failures are retried on the next append."""
        try:
            self.store.set(self.persist_key, encode_hrv_history(records))
        except StorageError as e:
            logger.error(f"Failed to persist {self.persisted_metric.value} history: {e}")

    def records(self, metric: MetricKind) -> list[HistoryRecord]:
        return list(self._history[metric])

    def snapshot(self) -> MetricHistory:
        """Copy of all histories."""
        return {kind: list(records) for kind, records in self._history.items()}
