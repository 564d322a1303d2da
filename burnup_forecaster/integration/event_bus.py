from __future__ import annotations

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, DefaultDict, Protocol, Type, TypeVar

from burnup_forecaster.integration.events import DomainEvent


logger = logging.getLogger(__name__)

E = TypeVar("E", bound=DomainEvent)
Handler = Callable[[DomainEvent], None]


class EventBus(Protocol):
    """Publish/subscribe interface for domain events."""

    def publish(self, event: DomainEvent) -> None:
        ...

    def subscribe(self, event_type: Type[E], handler: Callable[[E], None]) -> None:
        ...


@dataclass
class InMemoryEventBus(EventBus):
    """Synchronous in-process pub/sub bus.

    Forecasts may be published from worker threads, so the handler table is
    guarded by a lock.
    """

    _handlers: DefaultDict[Type[DomainEvent], list[Handler]]

    def __init__(self) -> None:
        self._handlers = defaultdict(list)
        self._lock = threading.Lock()

    def publish(self, event: DomainEvent) -> None:
        with self._lock:
            snapshot = [(t, list(hs)) for t, hs in self._handlers.items()]
        for event_type, handlers in snapshot:
            if isinstance(event, event_type):
                for handler in handlers:
                    try:
                        handler(event)
                    except Exception:
                        logger.exception(
                            "Event handler failed: %s for %s",
                            handler,
                            type(event).__name__,
                        )

    def subscribe(self, event_type: Type[E], handler: Callable[[E], None]) -> None:
        with self._lock:
            self._handlers[event_type].append(handler)  # type: ignore[arg-type]
