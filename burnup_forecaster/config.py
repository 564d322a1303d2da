from __future__ import annotations

from datetime import time
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from burnup_forecaster.domain.models import (
    DEFAULT_MC_CYCLES,
    MAX_MC_CYCLES,
    MIN_MC_CYCLES,
    ForecastConfig,
    StatusCategory,
    StatusDefinition,
    WorkCalendar,
)
from burnup_forecaster.history.reconstruction import DEFAULT_FIELD_ALIASES
from burnup_forecaster.history.snapshots import DEFAULT_TIMEZONE, SnapshotSeriesBuilder


def _read_toml(path: Path) -> dict[str, Any]:
    """Read TOML into a dict, supporting Python 3.10+.

    Uses tomllib when available, falls back to tomli.
    """
    data = path.read_bytes()
    try:
        import tomllib  # type: ignore[attr-defined]

        return tomllib.loads(data.decode("utf-8"))
    except ModuleNotFoundError:
        import tomli  # type: ignore[import-not-found]

        return tomli.loads(data.decode("utf-8"))


def clamp_mc_cycles(value: int) -> int:
    return max(MIN_MC_CYCLES, min(MAX_MC_CYCLES, int(value)))


class ForecastSettings(BaseModel):
    enabled: bool = Field(default=True)
    avg_datapoints: int = Field(
        default=3,
        description="Number of past intervals averaged for velocity.",
    )
    show_confidence: bool = Field(default=True, description="Run Monte Carlo for 95% bands.")
    mc_cycles: int = Field(
        default=DEFAULT_MC_CYCLES,
        description=f"Monte Carlo trials, clamped to [{MIN_MC_CYCLES}, {MAX_MC_CYCLES}].",
    )
    rng_seed: int | None = Field(default=None, description="Fix for reproducible simulations.")

    @field_validator("avg_datapoints", mode="before")
    @classmethod
    def _clamp_window(cls, v: Any) -> int:
        return max(1, int(float(v)))

    @field_validator("mc_cycles", mode="before")
    @classmethod
    def _clamp_cycles(cls, v: Any) -> int:
        return clamp_mc_cycles(int(float(v)))

    def to_domain(self) -> ForecastConfig:
        return ForecastConfig(
            enabled=self.enabled,
            avg_datapoints=self.avg_datapoints,
            show_confidence=self.show_confidence,
            mc_cycles=self.mc_cycles,
        )


class SnapshotSettings(BaseModel):
    metric: str = Field(default="customfield_10006", description="Field key or 'count'.")
    timezone: str = Field(default=DEFAULT_TIMEZONE)
    sample_hour: int = Field(default=9, ge=0, le=23)
    working_days: tuple[int, ...] = Field(default=(0, 1, 2, 3, 4), description="0=Mon ... 6=Sun")
    field_aliases: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_FIELD_ALIASES))
    lookback_days: int = Field(default=14, ge=1)

    @field_validator("working_days")
    @classmethod
    def _check_days(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        if not v or any(d < 0 or d > 6 for d in v):
            raise ValueError("working_days must be a non-empty subset of 0..6")
        return tuple(sorted(set(v)))

    def calendar(self) -> WorkCalendar:
        return WorkCalendar(working_days=frozenset(self.working_days))

    def builder(self) -> SnapshotSeriesBuilder:
        return SnapshotSeriesBuilder(
            calendar=self.calendar(),
            tz_name=self.timezone,
            sample_time=time(hour=self.sample_hour),
            aliases=dict(self.field_aliases),
        )


class StatusSettings(BaseModel):
    name: str
    category: StatusCategory = Field(default=StatusCategory.NOT_STARTED)
    enabled: bool = Field(default=True)
    order: int | None = Field(default=None)

    def to_domain(self, position: int) -> StatusDefinition:
        return StatusDefinition(
            name=self.name,
            category=self.category,
            enabled=self.enabled,
            order=self.order if self.order is not None else position,
        )


def _default_metrics() -> dict[str, str]:
    return {
        "customfield_10006": "Story Points",
        "count": "Issue Count",
        "customfield_15505": "Run Time",
    }


class AppConfig(BaseModel):
    snapshots: SnapshotSettings = Field(default_factory=SnapshotSettings)
    forecast: ForecastSettings = Field(default_factory=ForecastSettings)
    statuses: list[StatusSettings] = Field(default_factory=list)
    metrics: dict[str, str] = Field(default_factory=_default_metrics)

    @classmethod
    def load(cls, path: Path) -> "AppConfig":
        raw = _read_toml(path)
        return cls.model_validate(raw)

    def status_definitions(self) -> list[StatusDefinition]:
        return [s.to_domain(i) for i, s in enumerate(self.statuses)]

    def metric_label(self, metric: str) -> str:
        return self.metrics.get(metric, metric)
