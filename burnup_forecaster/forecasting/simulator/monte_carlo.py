from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable

import numpy as np

from burnup_forecaster.domain.models import (
    MAX_MC_CYCLES,
    MIN_MC_CYCLES,
    SimulationResult,
    VelocitySampler,
    WorkCalendar,
)

logger = logging.getLogger(__name__)

DEFAULT_DAY_CAP = 365 * 2

ProgressCallback = Callable[[int, int], None]


class SimulationCancelled(RuntimeError):
    pass


@dataclass
class MonteCarloSimulator:
    """Completion-date simulator resampling historical workday velocities.

    Trials run side by side as numpy lanes; they share no state, so the
    outcome does not depend on how they are ordered or split.
    """

    day_cap: int = DEFAULT_DAY_CAP
    min_trials: int = MIN_MC_CYCLES
    max_trials: int = MAX_MC_CYCLES
    calendar: WorkCalendar = field(default_factory=WorkCalendar)

    def __post_init__(self) -> None:
        if self.day_cap < 1:
            raise ValueError(f"day_cap must be positive, got {self.day_cap}")
        if not 1 <= self.min_trials <= self.max_trials:
            raise ValueError("trial bounds must satisfy 1 <= min_trials <= max_trials")

    def simulate(
        self,
        done_count: float,
        total_scope: float,
        sampler: VelocitySampler,
        trials: int,
        projection_days: int,
        last_date: date,
        rng: np.random.Generator,
        *,
        cancel_event: threading.Event | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> SimulationResult:
        trials = int(trials)
        if not self.min_trials <= trials <= self.max_trials:
            raise ValueError(
                f"trials must be within [{self.min_trials}, {self.max_trials}], got {trials}"
            )
        if projection_days < 0:
            raise ValueError(f"projection_days must be >= 0, got {projection_days}")

        last_weekday = last_date.weekday()
        running = np.full(trials, float(done_count), dtype=float)
        completion_day = np.full(trials, -1, dtype=int)
        at_horizon: np.ndarray | None = running.copy() if projection_days == 0 else None

        day = 0
        while day < self.day_cap:
            if at_horizon is not None and bool(np.all(completion_day >= 0)):
                break
            if cancel_event is not None and cancel_event.is_set():
                raise SimulationCancelled(f"simulation cancelled at day {day}")

            day += 1
            if (last_weekday + day) % 7 in self.calendar.working_days:
                running += sampler.sample(rng, trials)

            if day == projection_days:
                at_horizon = running.copy()

            newly_done = (completion_day < 0) & (running >= total_scope)
            completion_day[newly_done] = day

            if on_progress is not None:
                on_progress(day, self.day_cap)

        completion_day[completion_day < 0] = self.day_cap
        if at_horizon is None:
            # Horizon lies beyond the simulated span.
            at_horizon = running

        outcomes = np.sort(at_horizon)
        low = float(outcomes[int(np.floor(trials * 0.025))])
        high = float(outcomes[int(np.floor(trials * 0.975))])

        workdays = self.calendar.count_workdays(last_date, projection_days)
        if workdays > 0:
            slopes = (at_horizon - float(done_count)) / workdays
        else:
            slopes = np.zeros(trials, dtype=float)

        completion_dates = tuple(
            (last_date + timedelta(days=int(d))).isoformat() for d in completion_day
        )

        logger.debug(
            "Simulated %s trials over %s days: low=%s high=%s",
            trials,
            day,
            low,
            high,
        )
        return SimulationResult(
            confidence_low=low,
            confidence_high=high,
            slopes=tuple(float(s) for s in slopes),
            completion_dates=completion_dates,
            completion_days=tuple(int(d) for d in completion_day),
        )
