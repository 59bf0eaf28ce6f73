"""
Command-line interface for HRV Snapshot.

Provides commands for refreshing metrics, inspecting the persisted HRV
history and exporting trends.
"""

import logging

import typer

from hrv_snapshot.domain.metrics import MetricKind, MetricSample
from hrv_snapshot.infrastructure.sources.apple_health_export import AppleHealthExportSource
from hrv_snapshot.infrastructure.storage.kv_store import FileKeyValueStore
from hrv_snapshot.services.aggregator import MetricAggregator
from hrv_snapshot.services.history import HistoryStore, latest_persisted_hrv
from hrv_snapshot.services.state import DashboardState
from hrv_snapshot.services.trends import TrendService, daily_averages
from hrv_snapshot.utils.exceptions import ConfigurationError, HRVSnapshotError
from hrv_snapshot.utils.logging_config import setup_logging
from hrv_snapshot.utils.parameters import DisplayConfig, ParameterLoader
from hrv_snapshot.utils.timezone_utils import SystemClock

app = typer.Typer(help="HRV Snapshot - Health metric aggregation and rolling history")

logger = logging.getLogger(__name__)


def init_config(config_path: str = "config/config.yaml") -> ParameterLoader:
    """
    Initialize configuration and logging.

    Args:
        config_path: Path to configuration file.

    Returns:
        Parameter loader instance.
    """
    param_loader = ParameterLoader(config_path)
    setup_logging(param_loader.get_logging_config())
    return param_loader


def build_history(param_loader: ParameterLoader) -> HistoryStore:
    """Create the history store and seed it from durable storage."""
    storage_config = param_loader.get_storage_config()
    history = HistoryStore(
        FileKeyValueStore(storage_config.path),
        retention_days=param_loader.get_processing_config().retention_days,
        persist_key=storage_config.hrv_history_key,
    )
    history.load()
    return history


def build_aggregator(
    param_loader: ParameterLoader, state: DashboardState, export_path: str | None
) -> MetricAggregator:
    """Wire the Apple Health export source into an aggregator."""
    timezone = param_loader.get_processing_config().timezone
    export_path = export_path or param_loader.get_sources_config().apple_health.export_path
    if not export_path:
        raise ConfigurationError("No Apple Health export configured (sources.apple_health.export_path)")

    source = AppleHealthExportSource(export_path, timezone)
    return MetricAggregator(source, source, SystemClock(timezone), state)


def is_visible(sample: MetricSample, display: DisplayConfig) -> bool:
    """Apply the per-metric display toggles; context entries are always shown."""
    toggles = {
        MetricKind.HRV.value: display.show_hrv,
        MetricKind.RESTING_HR.value: display.show_resting_hr,
        MetricKind.SLEEP.value: display.show_sleep,
        MetricKind.MINDFUL.value: display.show_mindful,
        MetricKind.STEPS.value: display.show_steps,
        MetricKind.ACTIVE_ENERGY.value: display.show_energy,
    }
    return toggles.get(sample.title, True)


@app.command()
def refresh(
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
    export_path: str | None = typer.Option(None, help="Override Apple Health export path"),
    timezone: str | None = typer.Option(None, help="Override timezone from config"),
) -> None:
    """
    Run one refresh cycle and print the snapshot.

    Reads every metric from the configured source, appends derived values to
    the history and persists the HRV history.
    """
    try:
        param_loader = init_config(config_path)
        if timezone:
            param_loader.get_processing_config().timezone = timezone

        logger.info("Starting refresh")

        state = DashboardState(build_history(param_loader))
        aggregator = build_aggregator(param_loader, state, export_path)
        aggregator.request_refresh()

        display = param_loader.get_display_config()
        for sample in state.snapshot:
            if is_visible(sample, display):
                typer.echo(f"{sample.title}: {sample.display_value}")

    except HRVSnapshotError as e:
        logger.error(f"Refresh failed: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


@app.command()
def history(
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
) -> None:
    """Print the persisted HRV history."""
    try:
        param_loader = init_config(config_path)
        records = build_history(param_loader).records(MetricKind.HRV)

        if not records:
            typer.echo("No HRV history recorded")
            return

        for record in records:
            typer.echo(f"{record.timestamp.isoformat()}  {record.value:.0f} ms")

    except HRVSnapshotError as e:
        logger.error(f"History failed: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


@app.command()
def latest(
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
) -> None:
    """Print the most recent persisted HRV value."""
    try:
        param_loader = init_config(config_path)
        storage_config = param_loader.get_storage_config()
        value = latest_persisted_hrv(
            FileKeyValueStore(storage_config.path), storage_config.hrv_history_key
        )
        typer.echo(f"HRV: {value} ms")

    except HRVSnapshotError as e:
        logger.error(f"Latest failed: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


@app.command()
def daily(
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
    write: bool = typer.Option(False, help="Also write the aggregates to CSV"),
) -> None:
    """
    Show daily HRV aggregates.

    For each day, computes mean, min and max of the retained HRV history.
    """
    try:
        param_loader = init_config(config_path)
        timezone = param_loader.get_processing_config().timezone
        metric_history = build_history(param_loader).snapshot()

        table = daily_averages(metric_history, MetricKind.HRV, timezone)
        if table.empty:
            typer.echo("No HRV history recorded")
            return

        typer.echo(table.to_string(index=False))

        if write:
            service = TrendService(param_loader.get_output_config(), timezone)
            path = service.write_daily(metric_history, MetricKind.HRV)
            typer.echo(f"\nDaily aggregates written to {path}")

    except HRVSnapshotError as e:
        logger.error(f"Daily aggregation failed: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


@app.command()
def export(
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
    refresh_first: bool = typer.Option(False, "--refresh", help="Run a refresh before exporting"),
    export_path: str | None = typer.Option(None, help="Override Apple Health export path"),
    output_format: str | None = typer.Option(None, help="Output format: csv, parquet, or both"),
) -> None:
    """
    Export metric histories to CSV and/or Parquet.

    Without --refresh only the persisted HRV history is available.
    """
    try:
        param_loader = init_config(config_path)
        output_config = param_loader.get_output_config()
        timezone = param_loader.get_processing_config().timezone

        if output_format:
            if output_format == "both":
                output_config.formats = ["csv", "parquet"]
            else:
                output_config.formats = [output_format]

        state = DashboardState(build_history(param_loader))
        if refresh_first:
            build_aggregator(param_loader, state, export_path).request_refresh()

        written = TrendService(output_config, timezone).write_history(state.history.snapshot())

        if not written:
            typer.echo("No history records to export")
            return

        for path in written:
            typer.echo(f"  - {path.name}")
        typer.echo(f"Output written to {output_config.dir}/")

    except HRVSnapshotError as e:
        logger.error(f"Export failed: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


if __name__ == "__main__":
    app()
