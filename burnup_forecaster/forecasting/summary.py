from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from typing import Any, Literal, Sequence

import numpy as np

from burnup_forecaster.domain.models import SimulationSamples

MAX_BINS = 20


@dataclass(frozen=True)
class HistogramBin:
    range_start: float
    range_end: float
    count: int
    percent: float
    label: str


@dataclass(frozen=True)
class DistributionSummary:
    """Descriptive statistics of raw simulation samples.

    For kind == "date" every value is a proleptic Gregorian ordinal.
    """

    kind: Literal["rate", "date"]
    count: int
    minimum: float
    maximum: float
    mean: float
    median: float
    p05: float
    p95: float
    bins: tuple[HistogramBin, ...]

    def format_value(self, value: float) -> str:
        if self.kind == "date":
            return _format_ordinal(value)
        return format_rate(value)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "count": self.count,
            "min": self.format_value(self.minimum),
            "max": self.format_value(self.maximum),
            "mean": self.format_value(self.mean),
            "median": self.format_value(self.median),
            "p05": self.format_value(self.p05),
            "p95": self.format_value(self.p95),
            "bins": [
                {"label": b.label, "count": b.count, "percent": b.percent} for b in self.bins
            ],
        }


def format_rate(value: float) -> str:
    if value == 0:
        return "0"
    if abs(value) >= 10:
        return str(int(round(value)))
    return f"{float(f'{value:.2g}'):g}"


def _format_ordinal(value: float) -> str:
    return date.fromordinal(int(math.floor(value))).isoformat()


def _summarize(
    values: np.ndarray,
    kind: Literal["rate", "date"],
) -> DistributionSummary:
    ordered = np.sort(values)
    n = int(ordered.size)
    lo = float(ordered[0])
    hi = float(ordered[-1])
    span = hi - lo

    bin_count = min(MAX_BINS, math.ceil(math.sqrt(n)))
    bin_size = span / bin_count if span > 0 else 1.0
    if kind == "date":
        # Dates never get bins narrower than one day.
        bin_size = max(bin_size, 1.0)
        bin_count = max(1, math.ceil(span / bin_size))

    counts = [0] * bin_count
    for v in ordered:
        idx = int(math.floor((float(v) - lo) / bin_size))
        counts[min(max(idx, 0), bin_count - 1)] += 1

    bins: list[HistogramBin] = []
    for i, c in enumerate(counts):
        start = lo + i * bin_size
        end = lo + (i + 1) * bin_size
        if kind == "date":
            if bin_size <= 1.5:
                label = _format_ordinal(start)
            else:
                label = f"{_format_ordinal(start)} - {_format_ordinal(end)}"
        else:
            label = f"{format_rate(start)} - {format_rate(end)}"
        bins.append(
            HistogramBin(
                range_start=start,
                range_end=end,
                count=c,
                percent=round(c / n * 100, 1),
                label=label,
            )
        )

    mid = n // 2
    median = float(ordered[mid]) if n % 2 else float((ordered[mid - 1] + ordered[mid]) / 2)
    return DistributionSummary(
        kind=kind,
        count=n,
        minimum=lo,
        maximum=hi,
        mean=float(np.mean(ordered)),
        median=median,
        p05=float(ordered[int(math.floor(n * 0.05))]),
        p95=float(ordered[int(math.floor(n * 0.95))]),
        bins=tuple(bins),
    )


def summarize_rates(slopes: Sequence[float]) -> DistributionSummary | None:
    """Summarize per-workday completion rates of the simulated trials."""
    if len(slopes) == 0:
        return None
    return _summarize(np.asarray(slopes, dtype=float), "rate")


def summarize_completion_dates(dates: Sequence[str]) -> DistributionSummary | None:
    if len(dates) == 0:
        return None
    ordinals = np.asarray([date.fromisoformat(d[:10]).toordinal() for d in dates], dtype=float)
    return _summarize(ordinals, "date")


def summarize_samples(samples: SimulationSamples) -> dict[str, Any]:
    rates = summarize_rates(samples.slopes)
    dates = summarize_completion_dates(samples.completion_dates)
    return {
        "rate": rates.to_dict() if rates else None,
        "completion_date": dates.to_dict() if dates else None,
    }
