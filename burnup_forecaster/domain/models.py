from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Mapping, Protocol, Sequence

import numpy as np

STATUS_FIELD = "status"
COUNT_METRIC = "count"

MIN_MC_CYCLES = 100
MAX_MC_CYCLES = 100_000
DEFAULT_MC_CYCLES = 1000


class FieldKind(str, Enum):
    NUMBER = "number"
    TEXT = "text"
    ABSENT = "absent"


@dataclass(frozen=True)
class FieldValue:
    """A custom field value tagged with its kind."""

    kind: FieldKind
    number: float | None = None
    text: str | None = None

    @classmethod
    def of(cls, raw: Any) -> "FieldValue":
        if raw is None:
            return ABSENT
        if isinstance(raw, FieldValue):
            return raw
        if isinstance(raw, bool):
            return cls(kind=FieldKind.TEXT, text=str(raw).lower())
        if isinstance(raw, (int, float)):
            return cls(kind=FieldKind.NUMBER, number=float(raw))
        if isinstance(raw, str):
            return cls(kind=FieldKind.TEXT, text=raw)
        if isinstance(raw, Mapping):
            # Jira option/status objects, e.g. {"value": "High"} or {"name": "Done"}
            for key in ("value", "name"):
                if key in raw:
                    return cls.of(raw[key])
        return ABSENT

    @property
    def is_absent(self) -> bool:
        return self.kind is FieldKind.ABSENT

    def as_number(self) -> float | None:
        if self.kind is FieldKind.NUMBER and self.number is not None:
            value = self.number
        elif self.kind is FieldKind.TEXT and self.text is not None:
            try:
                value = float(self.text.strip())
            except ValueError:
                return None
        else:
            return None
        # NaN and infinities count as unparseable.
        return value if math.isfinite(value) else None

    def as_text(self) -> str | None:
        if self.kind is FieldKind.TEXT:
            return self.text
        if self.kind is FieldKind.NUMBER and self.number is not None:
            return f"{self.number:g}"
        return None


ABSENT = FieldValue(kind=FieldKind.ABSENT)


@dataclass(frozen=True)
class ChangeEntry:
    """One recorded field transition in an item's change log."""

    instant: datetime
    field: str
    from_value: FieldValue
    to_value: FieldValue
    sequence: int = 0  # ingestion order, breaks ties between equal instants


@dataclass(frozen=True)
class Item:
    """A tracked work item with its current values and full change log."""

    key: str
    created: datetime
    status: str | None
    fields: Mapping[str, FieldValue] = field(default_factory=dict)
    changelog: tuple[ChangeEntry, ...] = ()

    def current_value(self, field_key: str) -> FieldValue:
        if field_key == STATUS_FIELD:
            return FieldValue.of(self.status)
        return self.fields.get(field_key, ABSENT)


class StatusCategory(str, Enum):
    NOT_STARTED = "not-started"
    STARTED = "started"
    DONE = "done"


@dataclass(frozen=True)
class StatusDefinition:
    name: str
    category: StatusCategory = StatusCategory.NOT_STARTED
    enabled: bool = True  # display only, scope always counts every status
    order: int = 0  # stacking order only


def enabled_done_statuses(definitions: Sequence[StatusDefinition]) -> list[str]:
    return [d.name for d in definitions if d.category is StatusCategory.DONE and d.enabled]


@dataclass(frozen=True)
class WorkCalendar:
    working_days: frozenset[int] = frozenset({0, 1, 2, 3, 4})  # 0=Mon ... 6=Sun

    def is_workday(self, day: date) -> bool:
        return day.weekday() in self.working_days

    def count_workdays(self, start: date, days: int) -> int:
        """Count working days among the `days` calendar days after `start`."""
        return sum(1 for d in range(1, days + 1) if self.is_workday(start + timedelta(days=d)))


@dataclass(frozen=True)
class SnapshotPoint:
    """Aggregated per-status totals for one day; values=None marks a placeholder."""

    day: date
    values: Mapping[str, float] | None = None

    @property
    def is_placeholder(self) -> bool:
        return self.values is None

    def value(self, status: str) -> float | None:
        if self.values is None:
            return None
        return self.values.get(status)

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {"date": self.day.isoformat()}
        if self.values is not None:
            record.update(self.values)
        return record

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "SnapshotPoint":
        day = date.fromisoformat(str(record["date"])[:10])
        values = {
            str(k): float(v)
            for k, v in record.items()
            if k != "date" and isinstance(v, (int, float)) and not isinstance(v, bool)
        }
        return cls(day=day, values=values or None)


@dataclass(frozen=True)
class ForecastConfig:
    enabled: bool = True
    avg_datapoints: int = 3  # count of trailing intervals averaged
    show_confidence: bool = False
    mc_cycles: int = DEFAULT_MC_CYCLES

    def __post_init__(self) -> None:
        if int(self.avg_datapoints) < 1:
            raise ValueError(f"avg_datapoints must be >= 1, got {self.avg_datapoints}")
        if not MIN_MC_CYCLES <= int(self.mc_cycles) <= MAX_MC_CYCLES:
            raise ValueError(
                f"mc_cycles must be within [{MIN_MC_CYCLES}, {MAX_MC_CYCLES}], got {self.mc_cycles}"
            )


@dataclass(frozen=True)
class ForecastPoint:
    day: date
    forecast: float
    total_scope_projected: float | None = None
    confidence_high: float | None = None
    confidence_low: float | None = None

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {"date": self.day.isoformat(), "Forecast": self.forecast}
        if self.total_scope_projected is not None:
            record["TotalScopeProjected"] = self.total_scope_projected
        if self.confidence_high is not None:
            record["ConfidenceHigh"] = self.confidence_high
        if self.confidence_low is not None:
            record["ConfidenceLow"] = self.confidence_low
        return record


@dataclass(frozen=True)
class SimulationSamples:
    slopes: tuple[float, ...]
    completion_dates: tuple[str, ...]


@dataclass(frozen=True)
class SimulationResult:
    confidence_low: float
    confidence_high: float
    slopes: tuple[float, ...]
    completion_dates: tuple[str, ...]
    completion_days: tuple[int, ...] = ()

    def samples(self) -> SimulationSamples:
        return SimulationSamples(slopes=self.slopes, completion_dates=self.completion_dates)


@dataclass(frozen=True)
class ForecastResult:
    points: tuple[ForecastPoint, ...]
    avg_velocity: float
    days_to_complete: float  # math.inf when progress has stalled
    completion_date: date | None
    simulation: SimulationSamples | None = None

    def to_dict(self) -> dict[str, Any]:
        days = self.days_to_complete
        return {
            "forecast_points": [p.to_record() for p in self.points],
            "avg_velocity": self.avg_velocity,
            "days_to_complete": "Infinity" if math.isinf(days) else days,
            "completion_date": self.completion_date.isoformat() if self.completion_date else None,
            "simulation_results": (
                {
                    "slopes": list(self.simulation.slopes),
                    "completion_dates": list(self.simulation.completion_dates),
                }
                if self.simulation is not None
                else None
            ),
        }


class VelocitySampler(Protocol):
    def sample(self, rng: np.random.Generator, size: int) -> np.ndarray:
        """Draw `size` velocities uniformly with replacement."""
        ...
