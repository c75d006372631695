from __future__ import annotations

from siteharden.ui.progress import ProgressReporter


def test_progress_pass_flow() -> None:
    with ProgressReporter() as pr:
        pr.emit("pass:start", {"pass": "sri", "files": 3})
        assert "sri" in pr._tasks
        assert pr._totals.get("sri") == 3
        pr.emit("file:processed", {"path": "a.html"})
        pr.emit("file:processed", {"path": "b.html"})
        pr.emit("file:processed", {"path": "c.html"})
        pr.emit("pass:done", {"pass": "sri", "files": 1, "replacements": 2})
        # task finalized and removed
        assert "sri" not in pr._tasks
        assert pr._current is None


def test_progress_ignores_file_events_without_pass() -> None:
    with ProgressReporter() as pr:
        pr.emit("file:processed", {"path": "orphan.html"})
        pr.emit("pass:done", {"pass": "never-started"})
        assert pr._tasks == {}


def test_progress_sequential_passes() -> None:
    with ProgressReporter() as pr:
        pr.emit("pass:start", {"pass": "extract-assets", "files": 1})
        pr.emit("pass:done", {"pass": "extract-assets"})
        pr.emit("pass:start", {"pass": "collapse-styles", "files": 0})
        assert pr._current == "collapse-styles"
        pr.emit("pass:done", {"pass": "collapse-styles"})
        assert pr._tasks == {}


def test_progress_unknown_event_is_ignored() -> None:
    with ProgressReporter() as pr:
        pr.emit("something:else", {})
        assert pr._tasks == {}
