"""
Trend service for metric histories.

Turns histories into DataFrames, computes the daily aggregates behind trend
charts and writes history exports to CSV and/or Parquet.
"""

import logging
from pathlib import Path

import pandas as pd

from hrv_snapshot.domain.metrics import MetricHistory, MetricKind
from hrv_snapshot.utils.parameters import OutputConfig

logger = logging.getLogger(__name__)

HISTORY_COLUMNS = ["metric", "timestamp", "value"]
DAILY_COLUMNS = ["date", "mean", "min", "max", "count"]


def history_frame(history: MetricHistory, timezone_str: str = "UTC") -> pd.DataFrame:
    """
    Flatten histories into a long DataFrame.

    Args:
        history: Metric histories.
        timezone_str: Timezone the timestamps are converted to.

    Returns:
        DataFrame with metric, timestamp and value columns, sorted by metric
        then timestamp.
    """
    rows = [
        {"metric": kind.value, "timestamp": record.timestamp, "value": record.value}
        for kind, records in history.items()
        for record in records
    ]

    if not rows:
        return pd.DataFrame(columns=HISTORY_COLUMNS)

    df = pd.DataFrame(rows, columns=HISTORY_COLUMNS)
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True).dt.tz_convert(timezone_str)

    return df.sort_values(["metric", "timestamp"], kind="stable").reset_index(drop=True)


def daily_averages(
    history: MetricHistory, metric: MetricKind, timezone_str: str = "UTC"
) -> pd.DataFrame:
    """
    Aggregate one metric's history per local calendar day.

    Returns:
        DataFrame with date, mean, min, max and count columns, sorted by date.
    """
    df = history_frame({metric: history.get(metric, [])}, timezone_str)

    if df.empty:
        return pd.DataFrame(columns=DAILY_COLUMNS)

    df["date"] = df["timestamp"].dt.date

    daily = (
        df.groupby("date")["value"]
        .agg(["mean", "min", "max", "count"])
        .reset_index()
        .sort_values("date")
    )

    for col in ["mean", "min", "max"]:
        daily[col] = daily[col].round(2)

    return daily[DAILY_COLUMNS].reset_index(drop=True)


class TrendService:
    """
    Service for writing history exports.

    Handles multiple output formats as configured.
    """

    def __init__(self, config: OutputConfig, timezone_str: str = "UTC") -> None:
        """
        Initialize trend service.

        Args:
            config: Output configuration.
            timezone_str: Timezone used for timestamps and day boundaries.
        """
        self.config = config
        self.timezone_str = timezone_str
        self.output_dir = Path(config.dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def write_history(self, history: MetricHistory) -> list[Path]:
        """
        Write all histories in the configured formats.

        Returns:
            Paths of the written files.
        """
        df = history_frame(history, self.timezone_str)
        written: list[Path] = []

        if df.empty:
            logger.warning("No history records to write")
            return written

        if "csv" in self.config.formats:
            csv_path = self.output_dir / self.config.files.history_csv
            df.to_csv(csv_path, index=False, encoding="utf-8")
            written.append(csv_path)
            logger.info(f"Wrote CSV to {csv_path}")

        if "parquet" in self.config.formats:
            parquet_path = self.output_dir / self.config.files.history_parquet
            df.to_parquet(  # type: ignore[call-overload]
                parquet_path,
                engine=self.config.parquet.engine,
                compression=self.config.parquet.compression,
                index=False,
            )
            written.append(parquet_path)
            logger.info(f"Wrote Parquet to {parquet_path}")

        logger.info(f"Wrote {len(df)} history records to output")
        return written

    def write_daily(self, history: MetricHistory, metric: MetricKind) -> Path | None:
        """
        Write daily aggregates of one metric to CSV.

        Returns:
            Path of the written file, or None if the metric has no history.
        """
        daily = daily_averages(history, metric, self.timezone_str)

        if daily.empty:
            logger.warning(f"No {metric.value} history to aggregate")
            return None

        daily_path = self.output_dir / self.config.files.daily_csv
        daily.to_csv(daily_path, index=False, encoding="utf-8")

        logger.info(f"Wrote {len(daily)} daily {metric.value} aggregates to {daily_path}")
        return daily_path
