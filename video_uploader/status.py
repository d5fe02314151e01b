"""Human-readable status for file tasks."""
from dataclasses import dataclass

from .models import FileTask, TaskStatus

NEUTRAL = "neutral"
INFO = "info"
SUCCESS = "success"
ERROR = "error"


@dataclass(frozen=True)
class StatusView:
    text: str
    tag: str


def project_status(status: TaskStatus, progress: int = 0) -> StatusView:
    """Map (status, progress) to display text and a semantic colour tag."""
    if status == TaskStatus.READY:
        return StatusView("Ready", NEUTRAL)
    if status == TaskStatus.UPLOADING:
        return StatusView(f"Uploading: {progress}%", INFO)
    if status == TaskStatus.PROCESSING:
        return StatusView("Processing…", INFO)
    if status == TaskStatus.COMPLETE:
        return StatusView("Complete", SUCCESS)
    return StatusView("Upload failed", ERROR)


def project_task(task: FileTask) -> StatusView:
    return project_status(task.status, task.progress)


def progress_bar_width(status: TaskStatus, progress: int) -> int:
    """Bar width in percent; failed tasks show a full (red) bar."""
    if status == TaskStatus.ERROR:
        return 100
    return max(0, min(100, progress))
