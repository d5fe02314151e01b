"""Console rendering and progress helpers for the video-up CLI."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .models import BatchResult, FileTask, GalleryItem, UploadOutcome
from .registry import FileSelectionRegistry
from .status import ERROR, INFO, NEUTRAL, SUCCESS, progress_bar_width, project_task

TAG_STYLES = {
    NEUTRAL: "white",
    INFO: "blue",
    SUCCESS: "green",
    ERROR: "red",
}
BAR_WIDTH = 24

console = Console()


def _human_size(value: int) -> str:
    size = float(max(value, 0))
    units = ["B", "KB", "MB", "GB", "TB"]
    unit_idx = 0
    while size >= 1024.0 and unit_idx < len(units) - 1:
        size /= 1024.0
        unit_idx += 1
    if unit_idx == 0:
        return f"{int(size)} {units[unit_idx]}"
    return f"{size:.2f} {units[unit_idx]}"


def _render_bar(task: FileTask) -> Text:
    width = progress_bar_width(task.status, task.progress)
    filled = round(width / 100 * BAR_WIDTH)
    style = TAG_STYLES[project_task(task).tag]
    bar = Text("█" * filled, style=style)
    bar.append("░" * (BAR_WIDTH - filled), style="dim")
    return bar


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    panel = Panel(
        table,
        title="[bold green]video-up[/bold green]",
        subtitle="[dim]video gallery uploader[/dim]",
        border_style="blue",
    )
    console.print(panel)


def build_task_table(tasks: Iterable[FileTask]) -> Table:
    """One row per task: name, size, bar, and status text coloured by tag."""
    table = Table(title="Selected Videos", expand=False)
    table.add_column("File", style="bold", overflow="ellipsis", max_width=48)
    table.add_column("Size", justify="right", style="dim")
    table.add_column("Progress")
    table.add_column("Status")

    for task in tasks:
        view = project_task(task)
        table.add_row(
            task.name,
            _human_size(task.payload.size),
            _render_bar(task),
            Text(view.text, style=TAG_STYLES[view.tag]),
        )
    return table


class BatchUploadDisplay:
    """
    Live table of the registry while a batch runs.

    On a terminal the table refreshes continuously from the registry; otherwise
    one line is printed per settled task.
    """

    def __init__(self, registry: FileSelectionRegistry, live: Optional[bool] = None):
        self._registry = registry
        self._use_live = console.is_terminal if live is None else live
        self._live: Optional[Live] = None

    def render(self) -> Table:
        return build_task_table(self._registry.tasks())

    def start(self) -> None:
        if not self._use_live or self._live is not None:
            return
        self._live = Live(
            get_renderable=self.render,
            console=console,
            refresh_per_second=5,
            vertical_overflow="visible",
        )
        self._live.start()

    def stop(self) -> None:
        if self._live is not None:
            self._live.refresh()
            self._live.stop()
            self._live = None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *args):
        self.stop()

    def on_task_complete(self, outcome: UploadOutcome) -> None:
        if self._live is None:
            console.print(f"[green]Uploaded:[/green] {outcome.name}")

    def on_task_fail(self, task: FileTask) -> None:
        if self._live is None:
            suffix = f" - {task.error}" if task.error else ""
            console.print(f"[red]Failed:[/red] {task.name}{suffix}")


def render_batch_summary(result: BatchResult, outcomes: List[UploadOutcome]) -> None:
    """Print the URLs of uploaded videos and the final counts."""
    if outcomes:
        table = Table(title="Uploaded Videos")
        table.add_column("File", style="bold")
        table.add_column("Video URL", style="cyan", overflow="fold")
        table.add_column("Thumbnail URL", style="dim", overflow="fold")
        for outcome in outcomes:
            table.add_row(outcome.name or outcome.task_id, outcome.video_url, outcome.thumbnail_url or "-")
        console.print(table)

    failed = result.total - len(outcomes)
    style = "green" if failed == 0 else "yellow" if outcomes else "red"
    console.print(f"[{style}]{len(outcomes)}/{result.total} uploaded, {failed} failed[/{style}]")


def render_gallery(items: List[GalleryItem]) -> None:
    if not items:
        console.print("No videos uploaded yet.")
        return

    table = Table(title=f"Video Gallery ({len(items)})")
    table.add_column("Name", style="bold")
    table.add_column("Video URL", style="cyan", overflow="fold")
    table.add_column("Thumbnail", style="dim", overflow="fold")
    for item in items:
        table.add_row(item.name or "-", item.video_url, item.thumbnail_url or "(none)")
    console.print(table)
