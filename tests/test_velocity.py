from __future__ import annotations

from datetime import date

import numpy as np
import pytest

from burnup_forecaster.domain.models import SnapshotPoint
from burnup_forecaster.forecasting.priors.velocity import (
    ConstantVelocitySampler,
    EmpiricalVelocitySampler,
    sampler_from_estimate,
)
from burnup_forecaster.forecasting.velocity import compute_velocities, done_total


def _pt(day: date, done: float, review: float = 0.0) -> SnapshotPoint:
    return SnapshotPoint(day=day, values={"Done": done, "Closed": review, "To Do": 10.0})


def test_done_total_sums_every_done_status() -> None:
    assert done_total(_pt(date(2023, 1, 2), 3, 2), ["Done", "Closed", "Missing"]) == 5.0


def test_window_uses_trailing_intervals() -> None:
    points = [
        _pt(date(2023, 1, 2), 0),
        _pt(date(2023, 1, 3), 10),
        _pt(date(2023, 1, 4), 11),
        _pt(date(2023, 1, 5), 13),
    ]

    est = compute_velocities(points, ["Done"], window_size=2)

    assert est.deltas == (1.0, 2.0)
    assert est.avg_velocity == pytest.approx(1.5)


def test_placeholders_are_ignored() -> None:
    points = [_pt(date(2023, 1, 2), 1), _pt(date(2023, 1, 3), 3), SnapshotPoint(day=date(2023, 1, 4))]
    est = compute_velocities(points, ["Done"], window_size=5)
    assert est.deltas == (2.0,)


def test_weekend_deltas_are_excluded_from_simulation_population() -> None:
    points = [
        _pt(date(2023, 1, 6), 0),  # Friday
        _pt(date(2023, 1, 7), 4),  # Saturday
        _pt(date(2023, 1, 9), 5),  # Monday
    ]

    est = compute_velocities(points, ["Done"], window_size=2)

    assert est.deltas == (4.0, 1.0)
    assert est.workday_deltas == (1.0,)
    assert est.simulation_population == (1.0,)


def test_population_falls_back_to_all_deltas() -> None:
    points = [_pt(date(2023, 1, 6), 0), _pt(date(2023, 1, 7), 2)]
    est = compute_velocities(points, ["Done"], window_size=1)
    assert est.workday_deltas == ()
    assert est.simulation_population == (2.0,)


def test_fewer_than_two_points_is_an_error() -> None:
    with pytest.raises(ValueError):
        compute_velocities([_pt(date(2023, 1, 2), 1)], ["Done"], window_size=3)


def test_empirical_sampler_only_draws_observed_values() -> None:
    sampler = EmpiricalVelocitySampler(samples=(1.0, 3.0))
    draws = sampler.sample(np.random.default_rng(0), 500)

    assert draws.shape == (500,)
    assert set(np.unique(draws)) == {1.0, 3.0}


def test_empirical_sampler_rejects_empty_population() -> None:
    with pytest.raises(ValueError):
        EmpiricalVelocitySampler(samples=())


def test_constant_sampler_and_estimate_factory() -> None:
    rng = np.random.default_rng(1)
    assert np.all(ConstantVelocitySampler(2.5).sample(rng, 4) == 2.5)

    points = [_pt(date(2023, 1, 2), 0), _pt(date(2023, 1, 3), 2)]
    sampler = sampler_from_estimate(compute_velocities(points, ["Done"], window_size=1))
    assert np.all(sampler.sample(rng, 10) == 2.0)
