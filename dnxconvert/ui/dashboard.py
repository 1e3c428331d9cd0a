import time
from typing import Optional
from rich.console import Console, Group, RenderableType
from rich.live import Live
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table
from rich.text import Text
from rich.box import ROUNDED
from dnxconvert.pipeline.runner import RunHandle
from dnxconvert.ui.state import RunState, JobRow

REFRESH_PER_SECOND = 10
BAR_WIDTH = 40


def _status_style(row: JobRow) -> str:
    if row.failed:
        return "bold red"
    if row.finished:
        return "green"
    if row.indeterminate:
        return "yellow"
    return "white"


def _bar(row: JobRow) -> ProgressBar:
    if row.indeterminate and not row.finished:
        # rich animates the pulse from its own clock on each refresh
        return ProgressBar(total=None, pulse=True, width=BAR_WIDTH)
    return ProgressBar(
        total=1.0,
        completed=row.fraction,
        width=BAR_WIDTH,
        complete_style="red" if row.failed else "green",
        finished_style="red" if row.failed else "green",
    )


def _percent(row: JobRow) -> str:
    if row.indeterminate and not row.finished:
        return "--"
    return f"{row.fraction * 100:5.1f}%"


class Dashboard:
    """Rich Live view of a RunState; drains a RunHandle on its own clock."""

    def __init__(self, state: RunState, title: str = "dnxconvert", console: Optional[Console] = None):
        self.state = state
        self.title = title
        self.console = console or Console()

    def create_display(self) -> RenderableType:
        table = Table(box=ROUNDED, expand=False, show_header=True, header_style="bold")
        table.add_column("#", justify="right", no_wrap=True)
        table.add_column("File", overflow="ellipsis", max_width=40)
        table.add_column("Progress", no_wrap=True)
        table.add_column("%", justify="right", no_wrap=True)
        table.add_column("Status", overflow="fold")

        for idx, row in enumerate(self.state.snapshot()):
            table.add_row(
                str(idx + 1),
                row.name,
                _bar(row),
                _percent(row),
                Text(row.status, style=_status_style(row)),
            )

        footer = Text()
        if self.state.finished:
            footer.append(f"Done: {self.state.completed_count} completed", style="green")
            if self.state.failed_count:
                footer.append(f", {self.state.failed_count} failed", style="bold red")
        else:
            footer.append("Transcoding…", style="dim")
        return Panel(Group(table, footer), title=self.title, border_style="cyan")

    def follow(self, handle: RunHandle) -> None:
        """Render until the run's worker thread has exited and its queue is drained."""
        with Live(self.create_display(), console=self.console, refresh_per_second=REFRESH_PER_SECOND) as live:
            while True:
                for event in handle.poll():
                    self.state.apply(event)
                live.update(self.create_display())
                if not handle.is_running():
                    for event in handle.poll():
                        self.state.apply(event)
                    live.update(self.create_display())
                    break
                time.sleep(1.0 / REFRESH_PER_SECOND)


class PlainReporter:
    """Line-oriented fallback for non-interactive terminals and logs."""

    def __init__(self, state: RunState, console: Optional[Console] = None):
        self.state = state
        self.console = console or Console(highlight=False)
        self._last_percent = {}

    def _report(self, event) -> None:
        self.state.apply(event)
        idx = getattr(event, "job_index", None)
        if idx is None or idx >= len(self.state.rows):
            return
        row = self.state.rows[idx]
        if row.indeterminate and not row.finished:
            self.console.print(f"[{idx + 1}] {row.name}: {row.status} (duration unknown)", markup=False)
            return
        percent = int(row.fraction * 100)
        if not row.finished and self._last_percent.get(idx) == percent:
            return
        self._last_percent[idx] = percent
        style = _status_style(row)
        self.console.print(f"[{idx + 1}] {row.name}: {row.status} {percent}%", style=style, markup=False)

    def follow(self, handle: RunHandle) -> None:
        while True:
            for event in handle.poll():
                self._report(event)
            if not handle.is_running():
                for event in handle.poll():
                    self._report(event)
                break
            time.sleep(0.1)
