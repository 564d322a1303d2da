from __future__ import annotations

import logging
from pathlib import Path

from burnup_forecaster.common.logging_config import configure_logging


def test_log_dir_receives_forecast_log(tmp_path: Path) -> None:
    log_dir = tmp_path / "logs"
    configure_logging(logging.DEBUG, str(log_dir))
    try:
        logging.getLogger("burnup_forecaster.forecasting.projection").debug("velocities=%s", [1.0, 2.0])
        for handler in logging.getLogger().handlers:
            handler.flush()

        text = (log_dir / "forecast.log").read_text(encoding="utf-8")
        assert "| DEBUG | burnup_forecaster.forecasting.projection | velocities=[1.0, 2.0]" in text
    finally:
        configure_logging(logging.WARNING)


def test_reconfiguring_replaces_handlers(tmp_path: Path) -> None:
    configure_logging(logging.INFO, str(tmp_path))
    configure_logging(logging.WARNING)

    root = logging.getLogger()
    assert root.level == logging.WARNING
    assert not any(isinstance(h, logging.FileHandler) for h in root.handlers)
