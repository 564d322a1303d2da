from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)


@dataclass(frozen=True)
class Ui:
    console: Console
    progress: Progress

    def day_tracker(self, description: str) -> "DayTracker":
        task_id = self.progress.add_task(description, total=None)
        return DayTracker(progress=self.progress, task_id=task_id)


@dataclass(frozen=True)
class DayTracker:
    """Adapts simulator progress callbacks onto a rich task."""

    progress: Progress
    task_id: TaskID

    def __call__(self, day: int, total: int) -> None:
        self.progress.update(self.task_id, completed=day, total=total)


@contextmanager
def progress_ui(console: Console | None = None) -> Iterator[Ui]:
    console = console or Console(stderr=True)
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )
    with progress:
        yield Ui(console=console, progress=progress)
