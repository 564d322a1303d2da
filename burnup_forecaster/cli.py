from __future__ import annotations

import json
import logging
from contextlib import nullcontext
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Optional

import typer

from burnup_forecaster.adapters.jira.issue_parser import load_issues
from burnup_forecaster.common.logging_config import configure_logging
from burnup_forecaster.common.progress_ui import progress_ui
from burnup_forecaster.common.seeding import make_rng
from burnup_forecaster.common.time_utils import parse_date
from burnup_forecaster.config import AppConfig
from burnup_forecaster.domain.models import Item, SnapshotPoint, StatusDefinition
from burnup_forecaster.forecasting.projection import ForecastProjector
from burnup_forecaster.forecasting.summary import summarize_samples
from burnup_forecaster.history.statuses import (
    extract_all_statuses,
    merge_status_definitions,
    tracked_status_names,
)


app = typer.Typer(add_completion=False, help="Reconstruct burnup history and forecast completion.")


def _setup(verbose: bool) -> None:
    configure_logging(logging.DEBUG if verbose else logging.WARNING)


def _load_config(config: Optional[str]) -> AppConfig:
    if not config:
        return AppConfig()
    path = Path(config).expanduser()
    if not path.exists():
        raise typer.BadParameter(f"Config file not found: {path}")
    return AppConfig.load(path)


def _load_items(issues: str) -> list[Item]:
    path = Path(issues).expanduser()
    if not path.exists():
        raise typer.BadParameter(f"Issues file not found: {path}")
    try:
        return load_issues(path)
    except ValueError as exc:
        raise typer.BadParameter(f"Could not parse {path}: {exc}") from exc


def _day(value: Optional[str], name: str) -> date | None:
    if value is None:
        return None
    try:
        return parse_date(value)
    except ValueError as exc:
        raise typer.BadParameter(f"{name} must be YYYY-MM-DD, got {value!r}") from exc


def _window(cfg: AppConfig, start: Optional[str], end: Optional[str]) -> tuple[date, date]:
    end_day = _day(end, "--end") or date.today()
    start_day = _day(start, "--start") or end_day - timedelta(days=cfg.snapshots.lookback_days)
    if start_day > end_day:
        raise typer.BadParameter("--start must not be after --end")
    return start_day, end_day


def _build(
    cfg: AppConfig,
    items: list[Item],
    start: date,
    end: date,
    metric: str,
) -> tuple[list[SnapshotPoint], list[StatusDefinition]]:
    discovered = extract_all_statuses(items)
    definitions = merge_status_definitions(cfg.status_definitions(), discovered)
    tracked = tracked_status_names(cfg.status_definitions(), discovered)
    series = cfg.snapshots.builder().build(items, start, end, metric, tracked)
    return series, definitions


@app.command()
def statuses(
    issues: str = typer.Argument(..., help="Jira issues JSON (list or search response)"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """List every status found in the issues and their change logs."""
    _setup(verbose)
    for name in extract_all_statuses(_load_items(issues)):
        typer.echo(name)


@app.command()
def snapshots(
    issues: str = typer.Argument(..., help="Jira issues JSON (list or search response)"),
    start: Optional[str] = typer.Option(None, help="First day (YYYY-MM-DD)"),
    end: Optional[str] = typer.Option(None, help="Last day (YYYY-MM-DD), default today"),
    metric: Optional[str] = typer.Option(None, help="Field key or 'count'"),
    config: Optional[str] = typer.Option(None, help="Path to burnup_config.toml"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Print the daily per-status series as JSON records."""
    _setup(verbose)
    cfg = _load_config(config)
    start_day, end_day = _window(cfg, start, end)
    series, _ = _build(cfg, _load_items(issues), start_day, end_day, metric or cfg.snapshots.metric)
    typer.echo(json.dumps([p.to_record() for p in series], indent=2))


@app.command()
def forecast(
    issues: str = typer.Argument(..., help="Jira issues JSON (list or search response)"),
    start: Optional[str] = typer.Option(None, help="First day (YYYY-MM-DD)"),
    end: Optional[str] = typer.Option(None, help="Last day (YYYY-MM-DD), default today"),
    horizon_end: Optional[str] = typer.Option(None, help="Project up to this day"),
    metric: Optional[str] = typer.Option(None, help="Field key or 'count'"),
    config: Optional[str] = typer.Option(None, help="Path to burnup_config.toml"),
    seed: Optional[int] = typer.Option(None, help="Random seed for the simulation"),
    progress: bool = typer.Option(True, "--progress/--no-progress", help="Show simulation progress"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Project completion from the reconstructed series."""
    _setup(verbose)
    cfg = _load_config(config)
    start_day, end_day = _window(cfg, start, end)
    metric_field = metric or cfg.snapshots.metric
    series, definitions = _build(cfg, _load_items(issues), start_day, end_day, metric_field)

    projector = ForecastProjector(calendar=cfg.snapshots.calendar())
    rng = make_rng(seed if seed is not None else cfg.forecast.rng_seed)
    with progress_ui() if progress else nullcontext() as ui:
        on_progress = ui.day_tracker("Simulating") if ui is not None else None
        result = projector.project(
            series,
            cfg.forecast.to_domain(),
            definitions,
            _day(horizon_end, "--horizon-end"),
            rng=rng,
            on_progress=on_progress,
        )

    if result is None:
        typer.echo(json.dumps({"metric": cfg.metric_label(metric_field), "forecast": None}))
        return

    payload: dict[str, Any] = {"metric": cfg.metric_label(metric_field), **result.to_dict()}
    if result.simulation is not None:
        payload["simulation_summary"] = summarize_samples(result.simulation)
    typer.echo(json.dumps(payload, indent=2))


@app.command()
def init_config(
    path: str = typer.Argument(
        "burnup_config.toml",
        help="Where to write the configuration TOML",
    ),
) -> None:
    """Write an example burnup_config.toml."""
    project_root = Path(__file__).resolve().parents[1]
    template = project_root / "burnup_config.example.toml"
    if not template.exists():
        raise RuntimeError(f"Missing template file: {template}")

    out = Path(path).expanduser()
    if out.exists():
        raise typer.BadParameter(f"Refusing to overwrite existing file: {out}")

    out.write_text(template.read_text())
    typer.echo(f"Wrote {out} (edit it, then run: burnup-forecaster forecast ISSUES.json --config {out})")


if __name__ == "__main__":
    app()
