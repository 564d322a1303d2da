from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from burnup_forecaster.adapters.jira.issue_parser import load_issues, parse_issue, parse_issues
from burnup_forecaster.domain.models import FieldKind


def _raw_issue(key: str = "PROJ-1") -> dict:
    return {
        "key": key,
        "fields": {
            "created": "2023-01-01T08:00:00.000-0800",
            "status": {"name": "Done"},
            "customfield_10006": 5,
            "priority": {"name": "High"},
            "labels": None,
        },
        "changelog": {
            "histories": [
                {
                    "created": "2023-01-03T08:00:00.000-0800",
                    "items": [
                        {"field": "status", "fromString": "In Progress", "toString": "Done"},
                        {"field": "Story Points", "fromString": "3", "toString": "5"},
                    ],
                },
                {
                    "created": "2023-01-02T08:00:00.000-0800",
                    "items": [{"field": "status", "fromString": "To Do", "toString": "In Progress"}],
                },
            ]
        },
    }


def test_parse_issue_reads_fields_and_changelog() -> None:
    item = parse_issue(_raw_issue())

    assert item.key == "PROJ-1"
    assert item.created == datetime(2023, 1, 1, 16, tzinfo=timezone.utc)
    assert item.created.utcoffset() == timedelta(hours=-8)
    assert item.status == "Done"
    assert item.fields["customfield_10006"].as_number() == 5.0
    assert item.fields["priority"].as_text() == "High"
    assert item.fields["labels"].kind is FieldKind.ABSENT
    assert "status" not in item.fields

    assert [e.sequence for e in item.changelog] == [0, 1, 2]
    assert [e.field for e in item.changelog] == ["status", "Story Points", "status"]
    assert item.changelog[1].from_value.as_number() == 3.0


def test_missing_changelog_gives_empty_history() -> None:
    raw = _raw_issue()
    del raw["changelog"]
    assert parse_issue(raw).changelog == ()


@pytest.mark.parametrize("drop", ["key", "created"])
def test_issue_without_key_or_created_is_rejected(drop: str) -> None:
    raw = _raw_issue()
    if drop == "key":
        del raw["key"]
    else:
        del raw["fields"]["created"]

    with pytest.raises(ValueError):
        parse_issue(raw)


def test_parse_issues_accepts_search_response_and_skips_bad_entries() -> None:
    bad = {"key": "PROJ-9", "fields": {}}
    payload = {"issues": [_raw_issue("PROJ-1"), bad, "junk", _raw_issue("PROJ-2")]}

    items = parse_issues(payload)

    assert [i.key for i in items] == ["PROJ-1", "PROJ-2"]


def test_parse_issues_rejects_unexpected_payload() -> None:
    with pytest.raises(ValueError):
        parse_issues("not issues")


def test_load_issues_from_file(tmp_path: Path) -> None:
    path = tmp_path / "issues.json"
    path.write_text(json.dumps([_raw_issue()]), encoding="utf-8")

    (item,) = load_issues(path)
    assert item.status == "Done"
