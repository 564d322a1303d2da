from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Iterable, Mapping, Sequence
from zoneinfo import ZoneInfo

from burnup_forecaster.common.time_utils import ensure_aware, iter_days
from burnup_forecaster.domain.models import (
    COUNT_METRIC,
    STATUS_FIELD,
    Item,
    SnapshotPoint,
    WorkCalendar,
)
from burnup_forecaster.history.reconstruction import (
    DEFAULT_FIELD_ALIASES,
    IssueHistoryReconstructor,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "America/Los_Angeles"
DEFAULT_SAMPLE_TIME = time(hour=9)


@dataclass(frozen=True)
class SnapshotSeriesBuilder:
    """Builds the daily per-status series from item histories.

    Each working day is sampled at a fixed local time rather than midnight so
    that changes made around the day boundary land on a predictable day.
    """

    calendar: WorkCalendar = field(default_factory=WorkCalendar)
    tz_name: str = DEFAULT_TIMEZONE
    sample_time: time = DEFAULT_SAMPLE_TIME
    aliases: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_FIELD_ALIASES))

    def sampling_instant(self, day: date) -> datetime:
        return datetime.combine(day, self.sample_time, tzinfo=ZoneInfo(self.tz_name))

    def build(
        self,
        items: Iterable[Item],
        start: date,
        end: date,
        metric_field: str,
        tracked_statuses: Sequence[str],
        now: datetime | None = None,
    ) -> list[SnapshotPoint]:
        items = list(items)
        now = ensure_aware(now) if now is not None else datetime.now(tz=ZoneInfo(self.tz_name))
        reconstructor = IssueHistoryReconstructor(aliases=self.aliases)

        series: list[SnapshotPoint] = []
        for day in iter_days(start, end):
            if not self.calendar.is_workday(day):
                continue
            instant = self.sampling_instant(day)
            if instant > now:
                series.append(SnapshotPoint(day=day))
                continue
            series.append(
                SnapshotPoint(
                    day=day,
                    values=self._tally(reconstructor, items, instant, metric_field, tracked_statuses),
                )
            )

        logger.debug(
            "Built %s snapshot points for %s items (%s..%s, metric=%s)",
            len(series),
            len(items),
            start,
            end,
            metric_field,
        )
        return series

    def _tally(
        self,
        reconstructor: IssueHistoryReconstructor,
        items: Sequence[Item],
        instant: datetime,
        metric_field: str,
        tracked_statuses: Sequence[str],
    ) -> dict[str, float]:
        buckets: dict[str, float] = {s: 0.0 for s in tracked_statuses}
        for item in items:
            try:
                status = reconstructor.value_at_time(item, STATUS_FIELD, instant).as_text()
                if not status:
                    continue
                if metric_field == COUNT_METRIC:
                    contribution = 1.0
                else:
                    metric = reconstructor.value_at_time(item, metric_field, instant)
                    contribution = metric.as_number() or 0.0
            except (TypeError, ValueError, AttributeError) as exc:
                logger.debug("Skipping item %s at %s: %s", getattr(item, "key", "?"), instant, exc)
                continue
            # Statuses outside the tracked set still get a bucket.
            buckets[status] = buckets.get(status, 0.0) + contribution

        return {name: round(total, 2) for name, total in buckets.items()}


def build_series(
    items: Iterable[Item],
    start: date,
    end: date,
    metric_field: str,
    tracked_statuses: Sequence[str],
    *,
    now: datetime | None = None,
    calendar: WorkCalendar | None = None,
    tz_name: str = DEFAULT_TIMEZONE,
    sample_time: time = DEFAULT_SAMPLE_TIME,
    aliases: Mapping[str, str] = DEFAULT_FIELD_ALIASES,
) -> list[SnapshotPoint]:
    builder = SnapshotSeriesBuilder(
        calendar=calendar or WorkCalendar(),
        tz_name=tz_name,
        sample_time=sample_time,
        aliases=dict(aliases),
    )
    return builder.build(items, start, end, metric_field, tracked_statuses, now=now)
