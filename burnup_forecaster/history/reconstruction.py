from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping

from burnup_forecaster.common.time_utils import ensure_aware
from burnup_forecaster.domain.models import ABSENT, ChangeEntry, FieldValue, Item

# Jira change logs name custom fields by display name, current values by id.
DEFAULT_FIELD_ALIASES: Mapping[str, str] = {"customfield_10006": "Story Points"}


@dataclass(frozen=True)
class FieldHistory:
    """Ordered change trail of one field of one item.

    Entries are sorted by (instant, sequence): entries sharing an instant keep
    their original ingestion order.
    """

    instants: tuple[datetime, ...]
    entries: tuple[ChangeEntry, ...]

    @classmethod
    def from_item(
        cls,
        item: Item,
        field_key: str,
        aliases: Mapping[str, str] | None = None,
    ) -> "FieldHistory":
        names = {field_key}
        alias = (aliases or {}).get(field_key)
        if alias:
            names.add(alias)
        matching = sorted(
            (e for e in item.changelog if e.field in names),
            key=lambda e: (ensure_aware(e.instant), e.sequence),
        )
        return cls(
            instants=tuple(ensure_aware(e.instant) for e in matching),
            entries=tuple(matching),
        )

    def value_at(self, current: FieldValue, target: datetime) -> FieldValue:
        # Undoing every change after target leaves the "from" of the earliest one.
        idx = bisect_right(self.instants, ensure_aware(target))
        if idx >= len(self.entries):
            return current
        return self.entries[idx].from_value


def value_at_time(
    item: Item,
    field_key: str,
    target: datetime,
    aliases: Mapping[str, str] = DEFAULT_FIELD_ALIASES,
) -> FieldValue:
    """Value of `field_key` on `item` as it stood at `target`."""
    if ensure_aware(target) < ensure_aware(item.created):
        return ABSENT
    history = FieldHistory.from_item(item, field_key, aliases)
    return history.value_at(item.current_value(field_key), target)


@dataclass
class IssueHistoryReconstructor:
    """Reconstructs field values, caching each field trail across queries.

    Meant to live for one series computation; items are identified by key and
    creation instant.
    """

    aliases: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_FIELD_ALIASES))
    _histories: dict[tuple[str, datetime, str], FieldHistory] = field(default_factory=dict)

    def history(self, item: Item, field_key: str) -> FieldHistory:
        cache_key = (item.key, ensure_aware(item.created), field_key)
        hist = self._histories.get(cache_key)
        if hist is None:
            hist = FieldHistory.from_item(item, field_key, self.aliases)
            self._histories[cache_key] = hist
        return hist

    def value_at_time(self, item: Item, field_key: str, target: datetime) -> FieldValue:
        if ensure_aware(target) < ensure_aware(item.created):
            return ABSENT
        return self.history(item, field_key).value_at(item.current_value(field_key), target)
