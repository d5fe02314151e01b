"""
Models for video_uploader.

Immutable dataclasses; the registry hands out snapshots and replaces them on
every mutation.
"""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, List, Dict, BinaryIO
import io
import mimetypes

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class TaskStatus(Enum):
    """Lifecycle status of a file task."""
    READY = "ready"
    UPLOADING = "uploading"
    PROCESSING = "processing"  # bytes sent, waiting on server-side thumbnailing
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETE, TaskStatus.ERROR)

    @property
    def is_active(self) -> bool:
        return self in (TaskStatus.UPLOADING, TaskStatus.PROCESSING)


def guess_content_type(name: str) -> str:
    content_type, _ = mimetypes.guess_type(name)
    return content_type or DEFAULT_CONTENT_TYPE


@dataclass(frozen=True)
class VideoFile:
    """A selected file: name, byte size, and where its bytes come from."""
    name: str
    size: int
    content_type: str = DEFAULT_CONTENT_TYPE
    path: Optional[Path] = None
    data: Optional[bytes] = field(default=None, repr=False)

    @classmethod
    def from_path(cls, path: Path, content_type: Optional[str] = None) -> "VideoFile":
        path = Path(path)
        return cls(
            name=path.name,
            size=path.stat().st_size,
            content_type=content_type or guess_content_type(path.name),
            path=path,
        )

    @classmethod
    def from_bytes(cls, name: str, data: bytes, content_type: Optional[str] = None) -> "VideoFile":
        return cls(
            name=name,
            size=len(data),
            content_type=content_type or guess_content_type(name),
            data=data,
        )

    def open(self) -> BinaryIO:
        """Open a fresh binary stream over the payload."""
        if self.data is not None:
            return io.BytesIO(self.data)
        if self.path is None:
            raise ValueError(f"VideoFile {self.name!r} has neither path nor data")
        return open(self.path, "rb")

    @property
    def size_mb(self) -> float:
        return self.size / (1024 * 1024)


@dataclass(frozen=True)
class FileTask:
    """Snapshot of one selected file moving through the upload lifecycle."""
    id: str
    payload: VideoFile
    status: TaskStatus = TaskStatus.READY
    progress: int = 0
    error: Optional[str] = None

    @property
    def name(self) -> str:
        return self.payload.name

    @property
    def failed(self) -> bool:
        return self.status == TaskStatus.ERROR


@dataclass(frozen=True)
class UploadOutcome:
    """Remote location of a video that reached COMPLETE."""
    task_id: str
    video_url: str
    thumbnail_url: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class ProgressEvent:
    """Progress of one transfer, already rescaled to the 0-100 display range."""
    percent: int
    status: TaskStatus = TaskStatus.UPLOADING


@dataclass(frozen=True)
class TransferResult:
    """Terminal result of one transfer."""
    video_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    error: Optional[Exception] = None

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> Optional[str]:
        """Failure kind: the error class name, e.g. ``ProtocolError``."""
        return type(self.error).__name__ if self.error is not None else None

    @classmethod
    def ok(cls, video_url: str, thumbnail_url: Optional[str] = None):
        return cls(video_url=video_url, thumbnail_url=thumbnail_url)

    @classmethod
    def fail(cls, error: Exception):
        return cls(error=error)


@dataclass
class BatchResult:
    """Result of one orchestration run. Outcomes are in completion order."""
    total: int = 0
    outcomes: List[UploadOutcome] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> int:
        return len(self.outcomes)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def all_success(self) -> bool:
        return self.failed == 0


@dataclass(frozen=True)
class GalleryItem:
    """One entry of the gallery listing."""
    video_url: str
    thumbnail_url: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class UploadConfig:
    """Immutable configuration for upload operations."""
    base_url: str = ""
    upload_endpoint: str = "/api/upload"
    gallery_endpoint: str = "/api/videos"
    field_name: str = "file"
    max_file_size: Optional[int] = None  # bytes, None = unlimited
    accept: Optional[str] = "video/*"  # None = any content type
    max_parallel: Optional[int] = None  # None = every task at once
    completion_delay: float = 0.0  # seconds to linger before notifying
    reset_after_batch: bool = False
    timeout: float = 300.0

    def accepts(self, content_type: str) -> bool:
        """Match a content type against the ``accept`` pattern (``video/*`` style)."""
        if not self.accept:
            return True
        for pattern in (p.strip() for p in self.accept.split(",")):
            if not pattern:
                continue
            if pattern.endswith("/*"):
                if content_type.startswith(pattern[:-1]):
                    return True
            elif content_type == pattern:
                return True
        return False
