from __future__ import annotations

import logging
from pathlib import Path
from typing import Final


DEFAULT_LOG_FORMAT: Final[str] = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: int = logging.INFO, log_dir: str | None = None) -> None:
    """Route burnup-forecaster logs to stderr, and to <log_dir>/forecast.log if given.

    The CLI calls this once per command with WARNING, or DEBUG under
    --verbose, where the velocity window and scope breakdown are logged.
    Existing handlers are replaced so repeated invocations in one process do
    not duplicate output.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_dir is not None:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(Path(log_dir) / "forecast.log", encoding="utf-8"))

    logging.basicConfig(level=level, format=DEFAULT_LOG_FORMAT, handlers=handlers, force=True)
