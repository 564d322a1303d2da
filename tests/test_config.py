from __future__ import annotations

from datetime import date, time
from pathlib import Path

import pytest
from pydantic import ValidationError

from burnup_forecaster.config import AppConfig, ForecastSettings, SnapshotSettings, StatusSettings
from burnup_forecaster.domain.models import ForecastConfig, StatusCategory

ROOT = Path(__file__).resolve().parents[1]


def test_forecast_settings_clamp_out_of_range_values() -> None:
    s = ForecastSettings(avg_datapoints=0, mc_cycles=5)
    assert s.avg_datapoints == 1
    assert s.mc_cycles == 100

    s = ForecastSettings(avg_datapoints="4", mc_cycles=1_000_000)
    assert s.avg_datapoints == 4
    assert s.mc_cycles == 100_000


def test_domain_config_rejects_out_of_range_values() -> None:
    with pytest.raises(ValueError):
        ForecastConfig(avg_datapoints=0)
    with pytest.raises(ValueError):
        ForecastConfig(mc_cycles=99)


def test_snapshot_settings_validate_working_days() -> None:
    assert SnapshotSettings(working_days=(4, 0, 0)).working_days == (0, 4)
    with pytest.raises(ValidationError):
        SnapshotSettings(working_days=(7,))
    with pytest.raises(ValidationError):
        SnapshotSettings(working_days=())


def test_snapshot_settings_build_the_series_builder() -> None:
    builder = SnapshotSettings(timezone="UTC", sample_hour=6, working_days=(5, 6)).builder()

    assert builder.sample_time == time(6)
    assert builder.calendar.is_workday(date(2023, 1, 7))
    assert not builder.calendar.is_workday(date(2023, 1, 9))
    assert builder.sampling_instant(date(2023, 1, 7)).utcoffset().total_seconds() == 0


def test_status_order_defaults_to_position() -> None:
    defs = AppConfig(
        statuses=[StatusSettings(name="A"), StatusSettings(name="B", order=9, category="done")]
    ).status_definitions()

    assert [(d.name, d.order) for d in defs] == [("A", 0), ("B", 9)]
    assert defs[1].category is StatusCategory.DONE


def test_load_toml(tmp_path: Path) -> None:
    path = tmp_path / "burnup_config.toml"
    path.write_text(
        """
[snapshots]
metric = "count"
working_days = [0, 1, 2, 3]

[forecast]
avg_datapoints = 5
mc_cycles = 50
rng_seed = 3

[[statuses]]
name = "Done"
category = "done"
enabled = false
""",
        encoding="utf-8",
    )

    cfg = AppConfig.load(path)

    assert cfg.snapshots.metric == "count"
    assert cfg.snapshots.working_days == (0, 1, 2, 3)
    assert cfg.forecast.to_domain() == ForecastConfig(
        enabled=True, avg_datapoints=5, show_confidence=True, mc_cycles=100
    )
    assert cfg.forecast.rng_seed == 3
    assert cfg.status_definitions()[0].enabled is False
    assert cfg.metric_label("count") == "Issue Count"
    assert cfg.metric_label("customfield_1") == "customfield_1"


def test_example_config_loads() -> None:
    cfg = AppConfig.load(ROOT / "burnup_config.example.toml")

    assert [s.name for s in cfg.statuses] == ["To Do", "In Progress", "Done"]
    assert cfg.snapshots.field_aliases == {"customfield_10006": "Story Points"}
    assert cfg.forecast.mc_cycles == 1000
