from __future__ import annotations

from datetime import date, datetime
from typing import Any

from fastapi import FastAPI
from pydantic import BaseModel, Field

from burnup_forecaster.adapters.jira.issue_parser import parse_issues
from burnup_forecaster.common.seeding import make_rng
from burnup_forecaster.config import ForecastSettings, SnapshotSettings, StatusSettings
from burnup_forecaster.domain.models import COUNT_METRIC, SnapshotPoint
from burnup_forecaster.forecasting.projection import ForecastProjector
from burnup_forecaster.forecasting.summary import summarize_samples
from burnup_forecaster.history.statuses import extract_all_statuses


class IssuesRequest(BaseModel):
    issues: list[dict[str, Any]] = Field(..., description="Jira issues expanded with changelog")


class SnapshotRequest(IssuesRequest):
    start: date
    end: date
    metric: str = Field(COUNT_METRIC, description="Field key or 'count'")
    statuses: list[str] = Field(default_factory=list, description="Statuses to track")
    now: datetime | None = Field(None, description="Evaluation time, default current time")


class ForecastRequest(BaseModel):
    series: list[dict[str, Any]] = Field(..., description="Snapshot records as returned by /snapshots")
    statuses: list[StatusSettings]
    forecast: ForecastSettings = Field(default_factory=ForecastSettings)
    horizon_end: date | None = None
    seed: int | None = None


def create_app(
    snapshot_settings: SnapshotSettings | None = None,
) -> FastAPI:
    settings = snapshot_settings or SnapshotSettings()
    builder = settings.builder()
    projector = ForecastProjector(calendar=settings.calendar())
    app = FastAPI(title="Burnup Forecaster")

    @app.post("/statuses")
    def statuses(req: IssuesRequest) -> list[str]:
        return extract_all_statuses(parse_issues(req.issues))

    @app.post("/snapshots")
    def snapshots(req: SnapshotRequest) -> list[dict[str, Any]]:
        items = parse_issues(req.issues)
        tracked = req.statuses or extract_all_statuses(items)
        series = builder.build(items, req.start, req.end, req.metric, tracked, now=req.now)
        return [p.to_record() for p in series]

    @app.post("/forecast")
    def forecast(req: ForecastRequest) -> dict[str, Any]:
        series = [SnapshotPoint.from_record(r) for r in req.series]
        definitions = [s.to_domain(i) for i, s in enumerate(req.statuses)]
        result = projector.project(
            series,
            req.forecast.to_domain(),
            definitions,
            req.horizon_end,
            rng=make_rng(req.seed if req.seed is not None else req.forecast.rng_seed),
        )
        if result is None:
            return {"available": False}

        out: dict[str, Any] = {"available": True, **result.to_dict()}
        if result.simulation is not None:
            out["simulation_summary"] = summarize_samples(result.simulation)
        return out

    return app
