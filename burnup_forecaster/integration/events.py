from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Mapping

from burnup_forecaster.domain.models import ForecastConfig, Item, StatusDefinition


@dataclass(frozen=True)
class DomainEvent:
    """Base type for all domain events."""

    occurred_at: datetime


# --- Input events -------------------------------------------------------------


@dataclass(frozen=True)
class IssuesLoaded(DomainEvent):
    items: tuple[Item, ...]


@dataclass(frozen=True)
class StatusesConfigured(DomainEvent):
    statuses: tuple[StatusDefinition, ...]


@dataclass(frozen=True)
class ForecastConfigured(DomainEvent):
    config: ForecastConfig


@dataclass(frozen=True)
class SnapshotWindowChanged(DomainEvent):
    start: date
    end: date
    metric_field: str
    horizon_end: date | None = None


# --- Output events ------------------------------------------------------------


@dataclass(frozen=True)
class ForecastComputed(DomainEvent):
    result: Mapping[str, Any] | None
    generation: int = 0
