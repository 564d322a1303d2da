from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from burnup_forecaster.domain.models import SnapshotPoint, WorkCalendar

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VelocityEstimate:
    deltas: tuple[float, ...]
    workday_deltas: tuple[float, ...]
    avg_velocity: float

    @property
    def simulation_population(self) -> tuple[float, ...]:
        """Workday deltas, or every delta when no interval ended on a workday."""
        return self.workday_deltas if self.workday_deltas else self.deltas


def done_total(point: SnapshotPoint, done_statuses: Sequence[str]) -> float:
    total = 0.0
    for status in done_statuses:
        value = point.value(status)
        if value is not None:
            total += value
    return total


def compute_velocities(
    points: Sequence[SnapshotPoint],
    done_statuses: Sequence[str],
    window_size: int,
    calendar: WorkCalendar | None = None,
) -> VelocityEstimate:
    """Day-over-day change of the done total over the trailing window.

    `window_size` counts intervals, so window_size + 1 points are used.
    """
    calendar = calendar or WorkCalendar()
    usable = [p for p in points if not p.is_placeholder]
    intervals = max(1, int(window_size))
    recent = usable[-(intervals + 1):]
    if len(recent) < 2:
        raise ValueError("at least two non-placeholder points are required")

    deltas: list[float] = []
    workday_deltas: list[float] = []
    for yesterday, today in zip(recent, recent[1:]):
        delta = done_total(today, done_statuses) - done_total(yesterday, done_statuses)
        deltas.append(delta)
        if calendar.is_workday(today.day):
            workday_deltas.append(delta)
        logger.debug("Velocity[%s]: %s", today.day, delta)

    avg = sum(deltas) / len(deltas)
    return VelocityEstimate(
        deltas=tuple(deltas),
        workday_deltas=tuple(workday_deltas),
        avg_velocity=avg,
    )
