from __future__ import annotations

from typing import Iterable, Sequence

from burnup_forecaster.domain.models import (
    STATUS_FIELD,
    Item,
    StatusCategory,
    StatusDefinition,
)


def extract_all_statuses(items: Iterable[Item]) -> list[str]:
    """Every status an item currently has or ever moved from/to, sorted."""
    statuses: set[str] = set()
    for item in items:
        if item.status:
            statuses.add(item.status)
        for entry in item.changelog:
            if entry.field != STATUS_FIELD:
                continue
            for value in (entry.from_value, entry.to_value):
                name = value.as_text()
                if name:
                    statuses.add(name)
    return sorted(statuses)


def merge_status_definitions(
    existing: Sequence[StatusDefinition],
    discovered: Iterable[str],
) -> list[StatusDefinition]:
    """Keep configured statuses as-is and append newly seen ones."""
    merged = sorted(existing, key=lambda d: d.order)
    known = {d.name for d in merged}
    next_order = max((d.order for d in merged), default=-1) + 1
    for name in discovered:
        if name in known:
            continue
        merged.append(
            StatusDefinition(
                name=name,
                category=StatusCategory.NOT_STARTED,
                enabled=True,
                order=next_order,
            )
        )
        known.add(name)
        next_order += 1
    return merged


def tracked_status_names(
    definitions: Sequence[StatusDefinition],
    discovered: Sequence[str],
) -> list[str]:
    enabled = [d.name for d in sorted(definitions, key=lambda d: d.order) if d.enabled]
    return enabled if enabled else list(discovered)
