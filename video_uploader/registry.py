"""
File Selection Registry - Single Responsibility: own the selected file tasks.

One table keyed by task id. Every mutation goes through a lock-guarded method,
so transfer callbacks can update it from any task or thread.
"""
from dataclasses import replace
from typing import Dict, Iterable, List, Optional
import logging
import threading
import uuid

from .errors import ValidationError
from .models import FileTask, TaskStatus, UploadConfig, VideoFile

logger = logging.getLogger(__name__)

CLAIMABLE = (TaskStatus.READY, TaskStatus.ERROR)


def generate_id() -> str:
    return uuid.uuid4().hex


class FileSelectionRegistry:
    """
    Holds the files a user has chosen, each with a unique id and a status.

    Usage:
        registry = FileSelectionRegistry(UploadConfig(max_file_size=5 * MB))
        tasks = registry.add([VideoFile.from_path(p) for p in paths])
        registry.get(tasks[0].id).status  # TaskStatus.READY
    """

    def __init__(self, config: Optional[UploadConfig] = None):
        self._config = config or UploadConfig()
        self._tasks: Dict[str, FileTask] = {}
        self._lock = threading.RLock()

    def validate(self, payload: VideoFile) -> None:
        """Raise ValidationError if the payload may not be admitted."""
        limit = self._config.max_file_size
        if limit is not None and payload.size > limit:
            raise ValidationError(
                f"{payload.name} is {payload.size_mb:.2f} MB, "
                f"larger than the {limit / (1024 * 1024):.2f} MB limit",
                filename=payload.name,
            )
        if not self._config.accepts(payload.content_type):
            raise ValidationError(
                f"{payload.name} has unsupported type {payload.content_type} "
                f"(accepted: {self._config.accept})",
                filename=payload.name,
            )

    def add(self, files: Iterable[VideoFile]) -> List[FileTask]:
        """
        Admit payloads as READY tasks.

        All payloads are validated first; one rejection leaves the registry
        untouched.
        """
        payloads = list(files)
        if not payloads:
            return []

        for payload in payloads:
            self.validate(payload)

        added = []
        with self._lock:
            for payload in payloads:
                task_id = generate_id()
                while task_id in self._tasks:
                    task_id = generate_id()
                task = FileTask(id=task_id, payload=payload)
                self._tasks[task_id] = task
                added.append(task)

        logger.debug(f"Registered {len(added)} file(s)")
        return added

    def remove(self, task_id: str) -> None:
        with self._lock:
            self._tasks.pop(task_id, None)

    def clear(self) -> None:
        with self._lock:
            self._tasks.clear()

    def get(self, task_id: str) -> Optional[FileTask]:
        with self._lock:
            return self._tasks.get(task_id)

    def tasks(self) -> List[FileTask]:
        """Snapshots in insertion order."""
        with self._lock:
            return list(self._tasks.values())

    def pending(self) -> List[str]:
        """Ids of tasks a batch may pick up (READY or ERROR)."""
        with self._lock:
            return [t.id for t in self._tasks.values() if t.status in CLAIMABLE]

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        with self._lock:
            return task_id in self._tasks

    def update(
        self,
        task_id: str,
        status: Optional[TaskStatus] = None,
        progress: Optional[int] = None,
        error: Optional[str] = None,
    ) -> Optional[FileTask]:
        """
        Apply a status/progress change and return the new snapshot.

        Progress never decreases while a task is in flight, a PROCESSING task
        never falls back to UPLOADING, and terminal tasks only change through
        reset() or claim(). Unknown ids return None.
        """
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None or task.status.is_terminal:
                return task

            if status == TaskStatus.UPLOADING and task.status == TaskStatus.PROCESSING:
                status = None

            changes = {}
            if status is not None and status != task.status:
                changes["status"] = status
            if progress is not None:
                value = max(0, min(100, int(progress)))
                if value > task.progress:
                    changes["progress"] = value
            if status == TaskStatus.ERROR:
                changes["error"] = error
            if not changes:
                return task

            task = replace(task, **changes)
            self._tasks[task_id] = task
            return task

    def claim(self, task_ids: Iterable[str]) -> List[FileTask]:
        """Atomically move READY/ERROR tasks to UPLOADING; others are skipped."""
        claimed = []
        with self._lock:
            for task_id in task_ids:
                task = self._tasks.get(task_id)
                if task is None or task.status not in CLAIMABLE:
                    continue
                task = replace(task, status=TaskStatus.UPLOADING, progress=0, error=None)
                self._tasks[task_id] = task
                claimed.append(task)
        return claimed

    def reset(self, task_id: str) -> Optional[FileTask]:
        """Put a task back to READY at 0%."""
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                return None
            task = replace(task, status=TaskStatus.READY, progress=0, error=None)
            self._tasks[task_id] = task
            return task
