from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from burnup_forecaster.domain.models import VelocitySampler
from burnup_forecaster.forecasting.velocity import VelocityEstimate


@dataclass(frozen=True)
class EmpiricalVelocitySampler(VelocitySampler):
    """Empirical bootstrap over observed daily velocities."""

    samples: tuple[float, ...]

    def __post_init__(self) -> None:
        if not self.samples:
            raise ValueError("EmpiricalVelocitySampler needs at least one sample")

    def sample(self, rng: np.random.Generator, size: int) -> np.ndarray:
        idx = rng.integers(0, len(self.samples), size=size)
        return np.asarray(self.samples, dtype=float)[idx]


@dataclass(frozen=True)
class ConstantVelocitySampler(VelocitySampler):
    """Always yields the same velocity; useful for what-if runs and tests."""

    velocity: float

    def sample(self, rng: np.random.Generator, size: int) -> np.ndarray:
        return np.full(size, float(self.velocity), dtype=float)


def sampler_from_samples(samples: Sequence[float]) -> VelocitySampler:
    return EmpiricalVelocitySampler(samples=tuple(float(s) for s in samples))


def sampler_from_estimate(estimate: VelocityEstimate) -> VelocitySampler:
    return sampler_from_samples(estimate.simulation_population)
