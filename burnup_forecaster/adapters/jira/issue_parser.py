from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping

from burnup_forecaster.common.time_utils import parse_iso8601
from burnup_forecaster.domain.models import ChangeEntry, FieldValue, Item

logger = logging.getLogger(__name__)

_RESERVED_FIELDS = frozenset({"created", "status"})


def _parse_changelog(raw_issue: Mapping[str, Any]) -> tuple[ChangeEntry, ...]:
    changelog = raw_issue.get("changelog")
    if not isinstance(changelog, dict):
        return ()
    histories = changelog.get("histories") or []

    entries: list[ChangeEntry] = []
    sequence = 0
    for history in histories:
        if not isinstance(history, dict) or not history.get("created"):
            continue
        instant = parse_iso8601(str(history["created"]))
        for item in history.get("items") or []:
            if not isinstance(item, dict) or not item.get("field"):
                continue
            entries.append(
                ChangeEntry(
                    instant=instant,
                    field=str(item["field"]),
                    from_value=FieldValue.of(item.get("fromString")),
                    to_value=FieldValue.of(item.get("toString")),
                    sequence=sequence,
                )
            )
            sequence += 1
    return tuple(entries)


def parse_issue(raw_issue: Mapping[str, Any]) -> Item:
    """Convert a Jira REST v2 issue (expanded with changelog) into an Item."""
    fields = raw_issue.get("fields") or {}
    key = raw_issue.get("key")
    created = fields.get("created")
    if not key or not created:
        raise ValueError("issue is missing 'key' or 'fields.created'")

    status = fields.get("status")
    status_name = status.get("name") if isinstance(status, dict) else status

    values = {
        str(k): FieldValue.of(v)
        for k, v in fields.items()
        if k not in _RESERVED_FIELDS
    }

    return Item(
        key=str(key),
        created=parse_iso8601(str(created)),
        status=str(status_name) if status_name else None,
        fields=values,
        changelog=_parse_changelog(raw_issue),
    )


def parse_issues(payload: Any) -> list[Item]:
    """Parse a list of issues or a search response of the form {"issues": [...]}."""
    if isinstance(payload, dict):
        payload = payload.get("issues") or []
    if not isinstance(payload, list):
        raise ValueError("expected a list of issues or an object with an 'issues' list")

    items: list[Item] = []
    for raw in payload:
        if not isinstance(raw, dict):
            logger.warning("Skipping non-object issue entry: %r", raw)
            continue
        try:
            items.append(parse_issue(raw))
        except (ValueError, TypeError) as exc:
            logger.warning("Skipping malformed issue %s: %s", raw.get("key", "?"), exc)
    logger.info("Parsed %s of %s issues", len(items), len(payload))
    return items


def load_issues(path: Path) -> list[Item]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return parse_issues(data)
