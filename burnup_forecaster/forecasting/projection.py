from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, Sequence

import numpy as np

from burnup_forecaster.common.seeding import make_rng
from burnup_forecaster.domain.models import (
    ForecastConfig,
    ForecastPoint,
    ForecastResult,
    SnapshotPoint,
    StatusDefinition,
    VelocitySampler,
    WorkCalendar,
    enabled_done_statuses,
)
from burnup_forecaster.forecasting.priors.velocity import sampler_from_samples
from burnup_forecaster.forecasting.simulator.monte_carlo import (
    DEFAULT_DAY_CAP,
    MonteCarloSimulator,
    ProgressCallback,
)
from burnup_forecaster.forecasting.velocity import compute_velocities, done_total

logger = logging.getLogger(__name__)

DEFAULT_HORIZON_DAYS = 14
MAX_PROJECTION_DAYS = DEFAULT_DAY_CAP


@dataclass
class ForecastProjector:
    """Projects the done line forward from the latest snapshot.

    The forward line advances by the average velocity on working days only;
    non-working days are left out of the output so that a renderer draws a
    straight connector across them.
    """

    calendar: WorkCalendar = field(default_factory=WorkCalendar)
    simulator: MonteCarloSimulator | None = None
    sampler_factory: Callable[[Sequence[float]], VelocitySampler] = sampler_from_samples

    def __post_init__(self) -> None:
        if self.simulator is None:
            self.simulator = MonteCarloSimulator(calendar=self.calendar)

    def project(
        self,
        series: Sequence[SnapshotPoint],
        config: ForecastConfig,
        status_defs: Sequence[StatusDefinition],
        horizon_end: date | None = None,
        *,
        rng: np.random.Generator | None = None,
        cancel_event: threading.Event | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ForecastResult | None:
        if not config.enabled:
            logger.info("Forecasting disabled")
            return None

        done_statuses = enabled_done_statuses(status_defs)
        if not done_statuses:
            logger.warning("Forecasting: no enabled done-category status configured")
            return None

        names = [d.name for d in status_defs]
        usable = [
            p
            for p in series
            if not p.is_placeholder and any(p.value(n) is not None for n in names)
        ]
        if len(usable) < 2:
            logger.warning("Forecasting: not enough data points (%s < 2)", len(usable))
            return None

        estimate = compute_velocities(usable, done_statuses, config.avg_datapoints, self.calendar)
        avg = estimate.avg_velocity
        window = usable[-(max(1, int(config.avg_datapoints)) + 1):]

        last = usable[-1]
        last_date = last.day
        done = done_total(last, done_statuses)
        # Disabled statuses still hold work, so scope counts every configured status.
        total_scope = sum(last.value(n) or 0.0 for n in names)
        remaining = total_scope - done
        logger.debug(
            "Forecasting: velocities=%s avg=%s scope=%s done=%s remaining=%s",
            estimate.deltas,
            avg,
            total_scope,
            done,
            remaining,
        )

        points = self._backward_segment(window, done, avg)
        confidence = config.show_confidence

        if remaining <= 0:
            horizon = self._horizon_days(last_date, horizon_end)
            points.append(self._flat_point(last_date, done, confidence))
            points.extend(self._flat_line(last_date, horizon, done, confidence))
            return ForecastResult(
                points=tuple(points),
                avg_velocity=avg,
                days_to_complete=0.0,
                completion_date=last_date,
            )

        if avg <= 0:
            logger.info("Forecasting: velocity %s <= 0, projecting a stalled line", avg)
            horizon = self._horizon_days(last_date, horizon_end)
            points.append(self._flat_point(last_date, done, confidence))
            points.extend(self._flat_line(last_date, horizon, done, confidence))
            return ForecastResult(
                points=tuple(points),
                avg_velocity=avg,
                days_to_complete=math.inf,
                completion_date=None,
            )

        if horizon_end is not None:
            projection_days = self._horizon_days(last_date, horizon_end)
        else:
            projection_days = min(math.ceil(remaining / avg), MAX_PROJECTION_DAYS)

        workdays = self.calendar.count_workdays(last_date, projection_days)
        slope_low = slope_high = 0.0
        simulation = None
        if confidence:
            assert self.simulator is not None
            result = self.simulator.simulate(
                done_count=done,
                total_scope=total_scope,
                sampler=self.sampler_factory(estimate.simulation_population),
                trials=config.mc_cycles,
                projection_days=projection_days,
                last_date=last_date,
                rng=rng if rng is not None else make_rng(),
                cancel_event=cancel_event,
                on_progress=on_progress,
            )
            simulation = result.samples()
            if workdays > 0:
                slope_low = (result.confidence_low - done) / workdays
                slope_high = (result.confidence_high - done) / workdays

        anchor = ForecastPoint(
            day=last_date,
            forecast=done,
            total_scope_projected=total_scope,
            confidence_high=done if confidence else None,
            confidence_low=done if confidence else None,
        )
        points.append(anchor)

        current = done
        cum_low = cum_high = 0.0
        for d in range(1, projection_days + 1):
            day = last_date + timedelta(days=d)
            if not self.calendar.is_workday(day):
                continue
            current += avg
            cum_low += slope_low
            cum_high += slope_high
            points.append(
                ForecastPoint(
                    day=day,
                    forecast=current,
                    total_scope_projected=total_scope,
                    confidence_high=done + cum_high if confidence else None,
                    confidence_low=done + cum_low if confidence else None,
                )
            )

        completion_date = last_date + timedelta(days=projection_days)
        logger.info(
            "Forecast: %s points, avg velocity %.3f, completion ~%s",
            len(points),
            avg,
            completion_date,
        )
        return ForecastResult(
            points=tuple(points),
            avg_velocity=avg,
            days_to_complete=remaining / avg,
            completion_date=completion_date,
            simulation=simulation,
        )

    def _backward_segment(
        self,
        window: Sequence[SnapshotPoint],
        done: float,
        avg: float,
    ) -> list[ForecastPoint]:
        out: list[ForecastPoint] = []
        workdays_back = 0
        for i in range(len(window) - 2, -1, -1):
            gap = (window[i + 1].day - window[i].day).days
            workdays_back += self.calendar.count_workdays(window[i].day, gap)
            out.append(ForecastPoint(day=window[i].day, forecast=done - workdays_back * avg))
        out.reverse()
        return out

    @staticmethod
    def _horizon_days(last_date: date, horizon_end: date | None) -> int:
        if horizon_end is None:
            return DEFAULT_HORIZON_DAYS
        return min(max(0, (horizon_end - last_date).days), MAX_PROJECTION_DAYS)

    @staticmethod
    def _flat_point(day: date, done: float, confidence: bool) -> ForecastPoint:
        return ForecastPoint(
            day=day,
            forecast=done,
            confidence_high=done if confidence else None,
            confidence_low=done if confidence else None,
        )

    def _flat_line(
        self,
        last_date: date,
        horizon: int,
        done: float,
        confidence: bool,
    ) -> list[ForecastPoint]:
        return [
            self._flat_point(last_date + timedelta(days=d), done, confidence)
            for d in range(1, horizon + 1)
        ]


def project(
    series: Sequence[SnapshotPoint],
    config: ForecastConfig,
    status_defs: Sequence[StatusDefinition],
    horizon_end: date | None = None,
    *,
    rng: np.random.Generator | None = None,
    calendar: WorkCalendar | None = None,
    sampler_factory: Callable[[Sequence[float]], VelocitySampler] = sampler_from_samples,
    cancel_event: threading.Event | None = None,
    on_progress: ProgressCallback | None = None,
) -> ForecastResult | None:
    projector = ForecastProjector(
        calendar=calendar or WorkCalendar(),
        sampler_factory=sampler_factory,
    )
    return projector.project(
        series,
        config,
        status_defs,
        horizon_end,
        rng=rng,
        cancel_event=cancel_event,
        on_progress=on_progress,
    )
