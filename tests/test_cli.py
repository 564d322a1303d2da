from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from burnup_forecaster.cli import app

runner = CliRunner()

CONFIG = """
[snapshots]
metric = "count"

[forecast]
show_confidence = true
mc_cycles = 100

[[statuses]]
name = "To Do"
category = "not-started"

[[statuses]]
name = "Done"
category = "done"
"""


def _issue(key: str, done_at: str | None) -> dict:
    histories = []
    if done_at:
        histories.append(
            {"created": done_at, "items": [{"field": "status", "fromString": "To Do", "toString": "Done"}]}
        )
    return {
        "key": key,
        "fields": {"created": "2023-01-01T00:00:00.000+0000", "status": {"name": "Done" if done_at else "To Do"}},
        "changelog": {"histories": histories},
    }


def _write_inputs(tmp_path: Path) -> tuple[Path, Path]:
    issues = tmp_path / "issues.json"
    issues.write_text(
        json.dumps(
            {
                "issues": [
                    _issue("A-1", "2023-01-02T10:00:00.000+0000"),
                    _issue("A-2", "2023-01-03T10:00:00.000+0000"),
                    _issue("A-3", None),
                ]
            }
        ),
        encoding="utf-8",
    )
    config = tmp_path / "burnup_config.toml"
    config.write_text(CONFIG, encoding="utf-8")
    return issues, config


def test_statuses_command(tmp_path: Path) -> None:
    issues, _ = _write_inputs(tmp_path)
    result = runner.invoke(app, ["statuses", str(issues)])
    assert result.exit_code == 0
    assert result.stdout.splitlines() == ["Done", "To Do"]


def test_snapshots_command(tmp_path: Path) -> None:
    issues, config = _write_inputs(tmp_path)

    result = runner.invoke(
        app,
        ["snapshots", str(issues), "--start", "2023-01-02", "--end", "2023-01-04", "--config", str(config)],
    )

    assert result.exit_code == 0, result.output
    records = json.loads(result.stdout)
    assert [r["date"] for r in records] == ["2023-01-02", "2023-01-03", "2023-01-04"]
    assert records[-1] == {"date": "2023-01-04", "To Do": 1.0, "Done": 2.0}


def test_forecast_command(tmp_path: Path) -> None:
    issues, config = _write_inputs(tmp_path)

    result = runner.invoke(
        app,
        [
            "forecast",
            str(issues),
            "--start",
            "2023-01-02",
            "--end",
            "2023-01-04",
            "--config",
            str(config),
            "--seed",
            "3",
            "--no-progress",
        ],
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["metric"] == "Issue Count"
    assert payload["completion_date"] == "2023-01-06"
    assert payload["avg_velocity"] == 0.5
    assert len(payload["simulation_results"]["completion_dates"]) == 100
    assert payload["simulation_summary"]["completion_date"]["count"] == 100


def test_forecast_without_done_status(tmp_path: Path) -> None:
    issues, _ = _write_inputs(tmp_path)

    result = runner.invoke(
        app,
        ["forecast", str(issues), "--start", "2023-01-02", "--end", "2023-01-04", "--no-progress"],
    )

    assert result.exit_code == 0
    assert '"forecast": null' in result.stdout


def test_missing_issues_file_is_a_usage_error(tmp_path: Path) -> None:
    result = runner.invoke(app, ["statuses", str(tmp_path / "nope.json")])
    assert result.exit_code == 2


def test_reversed_window_is_rejected(tmp_path: Path) -> None:
    issues, _ = _write_inputs(tmp_path)
    result = runner.invoke(app, ["snapshots", str(issues), "--start", "2023-02-01", "--end", "2023-01-01"])
    assert result.exit_code == 2


def test_init_config_writes_once(tmp_path: Path) -> None:
    out = tmp_path / "burnup_config.toml"

    first = runner.invoke(app, ["init-config", str(out)])
    assert first.exit_code == 0, first.output
    assert "[forecast]" in out.read_text()

    second = runner.invoke(app, ["init-config", str(out)])
    assert second.exit_code != 0
