"""
video_uploader - Concurrent video uploads to a video gallery service.

Components:
- FileSelectionRegistry: the selected files, one table keyed by task id
- HTTPUploadTransport: one multipart POST per file with rescaled progress
- UploadOrchestrator: settle-all concurrent batches, retry and cancel
- project_status: (status, progress) -> display text and colour tag

Usage:
    from video_uploader import UploadOrchestrator, UploadConfig, VideoFile

    config = UploadConfig(base_url="https://gallery.example.com", max_file_size=5 * 1024 * 1024)
    async with UploadOrchestrator(config, on_complete=refresh_gallery) as uploader:
        uploader.registry.add([VideoFile.from_path(p) for p in paths])
        result = await uploader.run_batch()

    # Gallery listing
    async with GalleryClient(config) as gallery:
        items = await gallery.list_videos()
"""
from .orchestrator import UploadOrchestrator
from .registry import FileSelectionRegistry
from .models import (
    BatchResult,
    FileTask,
    GalleryItem,
    ProgressEvent,
    TaskStatus,
    TransferResult,
    UploadConfig,
    UploadOutcome,
    VideoFile,
)
from .errors import (
    BatchInProgressError,
    FormatError,
    ProtocolError,
    TaskStateError,
    TransportError,
    UnknownTaskError,
    UploadError,
    ValidationError,
)
from .services import GalleryClient, HTTPUploadTransport
from .status import StatusView, project_status, project_task

__version__ = "0.1.0"
__all__ = [
    # Main
    "UploadOrchestrator",
    "FileSelectionRegistry",
    # Models
    "BatchResult",
    "FileTask",
    "GalleryItem",
    "ProgressEvent",
    "TaskStatus",
    "TransferResult",
    "UploadConfig",
    "UploadOutcome",
    "VideoFile",
    # Errors
    "UploadError",
    "ValidationError",
    "TransportError",
    "ProtocolError",
    "FormatError",
    "BatchInProgressError",
    "UnknownTaskError",
    "TaskStateError",
    # Services
    "GalleryClient",
    "HTTPUploadTransport",
    # Status
    "StatusView",
    "project_status",
    "project_task",
]
