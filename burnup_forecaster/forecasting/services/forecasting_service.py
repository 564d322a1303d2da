from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta, timezone

from burnup_forecaster.common.seeding import make_rng
from burnup_forecaster.domain.models import (
    COUNT_METRIC,
    ForecastConfig,
    ForecastResult,
    Item,
    SnapshotPoint,
    StatusDefinition,
)
from burnup_forecaster.forecasting.projection import ForecastProjector
from burnup_forecaster.forecasting.simulator.monte_carlo import (
    ProgressCallback,
    SimulationCancelled,
)
from burnup_forecaster.history.snapshots import SnapshotSeriesBuilder
from burnup_forecaster.history.statuses import (
    extract_all_statuses,
    merge_status_definitions,
    tracked_status_names,
)
from burnup_forecaster.integration.event_bus import EventBus
from burnup_forecaster.integration.events import (
    ForecastComputed,
    ForecastConfigured,
    IssuesLoaded,
    SnapshotWindowChanged,
    StatusesConfigured,
)


logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK_DAYS = 14


@dataclass(frozen=True)
class BurnupState:
    """Immutable inputs of one forecast computation."""

    items: tuple[Item, ...] = ()
    statuses: tuple[StatusDefinition, ...] = ()
    forecast_config: ForecastConfig = field(default_factory=ForecastConfig)
    start: date | None = None
    end: date | None = None
    metric_field: str = COUNT_METRIC
    horizon_end: date | None = None

    def window(self) -> tuple[date, date]:
        end = self.end or date.today()
        start = self.start or end - timedelta(days=DEFAULT_LOOKBACK_DAYS)
        return start, end


@dataclass
class _InFlight:
    future: Future
    cancel_event: threading.Event
    generation: int


@dataclass
class ForecastingService:
    """Event-driven forecasting service.

    Keeps the latest items and configuration, rebuilds the snapshot series and
    the forecast on demand, and runs background forecasts one at a time: a new
    request cancels the run still in flight.
    """

    bus: EventBus
    builder: SnapshotSeriesBuilder = field(default_factory=SnapshotSeriesBuilder)
    projector: ForecastProjector = field(default_factory=ForecastProjector)
    executor: Executor | None = None
    rng_seed: int | None = None
    auto_recompute: bool = False

    _state: BurnupState = field(default_factory=BurnupState)
    _inflight: _InFlight | None = None
    _generation: int = 0

    def __post_init__(self) -> None:
        self._lock = threading.Lock()
        self._owns_executor = self.executor is None
        if self.executor is None:
            self.executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="forecast")

        self.bus.subscribe(IssuesLoaded, self._on_issues_loaded)
        self.bus.subscribe(StatusesConfigured, self._on_statuses_configured)
        self.bus.subscribe(ForecastConfigured, self._on_forecast_configured)
        self.bus.subscribe(SnapshotWindowChanged, self._on_window_changed)

    @property
    def state(self) -> BurnupState:
        with self._lock:
            return self._state

    def _update(self, **changes: object) -> None:
        with self._lock:
            self._state = replace(self._state, **changes)  # type: ignore[arg-type]
        self._maybe_recompute()

    def _maybe_recompute(self) -> None:
        if not self.auto_recompute:
            return
        try:
            self.submit_forecast()
        except Exception:
            logger.exception("Auto forecast recompute failed to start")

    # --- Event handlers -----------------------------------------------------

    def _on_issues_loaded(self, e: IssuesLoaded) -> None:
        statuses = merge_status_definitions(self.state.statuses, extract_all_statuses(e.items))
        self._update(items=tuple(e.items), statuses=tuple(statuses))

    def _on_statuses_configured(self, e: StatusesConfigured) -> None:
        discovered = extract_all_statuses(self.state.items)
        statuses = merge_status_definitions(list(e.statuses), discovered)
        self._update(statuses=tuple(statuses))

    def _on_forecast_configured(self, e: ForecastConfigured) -> None:
        self._update(forecast_config=e.config)

    def _on_window_changed(self, e: SnapshotWindowChanged) -> None:
        self._update(
            start=e.start,
            end=e.end,
            metric_field=e.metric_field,
            horizon_end=e.horizon_end,
        )

    # --- Forecast API -------------------------------------------------------

    def compute_series(self, state: BurnupState | None = None) -> list[SnapshotPoint]:
        st = state or self.state
        start, end = st.window()
        tracked = tracked_status_names(st.statuses, extract_all_statuses(st.items))
        return self.builder.build(st.items, start, end, st.metric_field, tracked)

    def compute_forecast(
        self,
        state: BurnupState | None = None,
        *,
        cancel_event: threading.Event | None = None,
        on_progress: ProgressCallback | None = None,
        generation: int = 0,
    ) -> ForecastResult | None:
        st = state or self.state
        series = self.compute_series(st)
        result = self.projector.project(
            series,
            st.forecast_config,
            st.statuses,
            st.horizon_end,
            rng=make_rng(self.rng_seed),
            cancel_event=cancel_event,
            on_progress=on_progress,
        )
        self.bus.publish(
            ForecastComputed(
                occurred_at=datetime.now(timezone.utc),
                result=result.to_dict() if result is not None else None,
                generation=generation,
            )
        )
        return result

    def submit_forecast(self) -> "Future[ForecastResult | None]":
        """Start a background forecast, cancelling any run still in flight."""
        assert self.executor is not None
        with self._lock:
            if self._inflight is not None:
                self._inflight.cancel_event.set()
                self._inflight.future.cancel()
            self._generation += 1
            generation = self._generation
            state = self._state
            cancel_event = threading.Event()
            future = self.executor.submit(self._run, state, cancel_event, generation)
            self._inflight = _InFlight(future=future, cancel_event=cancel_event, generation=generation)
        return future

    def _run(
        self,
        state: BurnupState,
        cancel_event: threading.Event,
        generation: int,
    ) -> ForecastResult | None:
        try:
            return self.compute_forecast(state, cancel_event=cancel_event, generation=generation)
        except SimulationCancelled:
            logger.info("Forecast run %s cancelled by a newer request", generation)
            return None

    def shutdown(self) -> None:
        with self._lock:
            if self._inflight is not None:
                self._inflight.cancel_event.set()
                self._inflight = None
        if self._owns_executor and self.executor is not None:
            self.executor.shutdown(wait=True)
