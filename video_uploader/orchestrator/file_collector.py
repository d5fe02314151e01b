"""File collection utilities for folder uploads."""
from pathlib import Path
from typing import Iterable, List, Optional

from ..models import UploadConfig, guess_content_type


class FileCollector:
    """Collects uploadable video files from paths and folders."""

    def __init__(self, config: Optional[UploadConfig] = None):
        self._config = config or UploadConfig()

    def is_uploadable(self, path: Path) -> bool:
        return path.is_file() and self._config.accepts(guess_content_type(path.name))

    def collect_files(self, folder: Path) -> List[Path]:
        """
        Collect all accepted files recursively.

        Args:
            folder: Root folder to scan

        Returns:
            Sorted list of file paths
        """
        files = []
        for item in folder.rglob("*"):
            if self.is_uploadable(item):
                files.append(item)
        return sorted(files)

    def expand(self, sources: Iterable[Path]) -> List[Path]:
        """Expand folders into their files; plain files are kept as given."""
        files = []
        for source in sources:
            if source.is_dir():
                files.extend(self.collect_files(source))
            else:
                files.append(source)
        return files
