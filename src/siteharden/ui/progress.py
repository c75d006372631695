"""Rich progress display driven by pass events.

Passes report through a plain ``(event, payload)`` callback so they stay
usable without a terminal; this reporter maps the events onto progress bars:

- ``pass:start`` {"pass": name, "files": total}: opens a bar for the pass
- ``file:processed`` {"path": ...}: advances the open bar
- ``pass:done`` {"pass": name, ...}: completes and removes the bar
"""

from __future__ import annotations

from types import TracebackType

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


class ProgressReporter:
    def __init__(self, console: Console | None = None) -> None:
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        )
        self._tasks: dict[str, TaskID] = {}
        self._totals: dict[str, int] = {}
        self._current: str | None = None

    def __enter__(self) -> ProgressReporter:
        self.progress.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.progress.stop()

    def add_step(self, description: str, total: int | None = None) -> TaskID:
        return self.progress.add_task(description, total=total)

    def finish_task(self, task_id: TaskID) -> None:
        task = next((t for t in self.progress.tasks if t.id == task_id), None)
        if task is not None and task.total is not None:
            self.progress.update(task_id, completed=task.total)
        self.progress.remove_task(task_id)

    def emit(self, event: str, payload: dict[str, int | str]) -> None:
        if event == "pass:start":
            name = str(payload.get("pass", "pass"))
            total = int(payload.get("files", 0))
            self._totals[name] = total
            self._tasks[name] = self.add_step(name, total=total)
            self._current = name
        elif event == "file:processed":
            if self._current in self._tasks:
                self.progress.advance(self._tasks[self._current])
        elif event == "pass:done":
            name = str(payload.get("pass", self._current or ""))
            task_id = self._tasks.pop(name, None)
            if task_id is not None:
                self.finish_task(task_id)
            if self._current == name:
                self._current = None


__all__ = ["ProgressReporter"]
