"""
Output directory management: listing, download resolution, deletion and retention cleanup.

The output directory is the only state shared between jobs. Every job
writes job-id-qualified filenames, so no locking is needed here.
"""

import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..config import get_settings
from ..logging_config import LoggerMixin
from ..utils.file_utils import bytes_to_mb, content_type_for, ensure_directory

FILE_TYPES = {
    ".mp4": "video",
    ".mov": "video",
    ".webm": "video",
    ".mp3": "audio",
    ".wav": "audio",
    ".srt": "subtitle",
}


class FileManagerError(Exception):
    """Raised for invalid or missing output files."""
    pass


def file_type_for(filename: str) -> str:
    return FILE_TYPES.get(Path(filename).suffix.lower(), "other")


class OutputFileManager(LoggerMixin):
    """Manages files in the output directory."""

    def __init__(self, settings=None, clock: Callable[[], float] = time.time):
        self.settings = settings or get_settings()
        self.output_dir = ensure_directory(self.settings.output_dir)
        self.retention_hours = int(getattr(self.settings, "output_retention_hours", 24))
        self.download_prefix = f"{str(self.settings.public_base_path).rstrip('/')}/download"
        self.clock = clock

    def download_url(self, filename: str) -> str:
        return f"{self.download_prefix}/{filename}"

    def resolve(self, filename: str) -> Path:
        """
        Map a client-supplied filename to a file in the output directory.

        Raises:
            FileManagerError: If the name escapes the directory
            FileNotFoundError: If the file does not exist
        """
        if not filename or Path(filename).name != filename or filename in (".", ".."):
            raise FileManagerError(f"Invalid filename: {filename}")

        path = (self.output_dir / filename).resolve()
        if path.parent != self.output_dir.resolve():
            raise FileManagerError(f"Invalid filename: {filename}")
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {filename}")
        return path

    def describe(self, path: Path) -> Dict[str, Any]:
        stat = path.stat()
        return {
            "name": path.name,
            "size": stat.st_size,
            "sizeMB": bytes_to_mb(stat.st_size),
            "type": file_type_for(path.name),
            "contentType": content_type_for(path.name),
            "created": datetime.fromtimestamp(getattr(stat, "st_birthtime", stat.st_ctime)).isoformat(),
            "modified": datetime.fromtimestamp(stat.st_mtime).isoformat(),
            "ageHours": round((self.clock() - stat.st_mtime) / 3600, 2),
            "downloadUrl": self.download_url(path.name),
        }

    def list_files(self) -> List[Dict[str, Any]]:
        """All output files, newest first. Dotfiles are in-progress renders and are not listed."""
        paths = [path for path in self.output_dir.iterdir() if path.is_file() and not path.name.startswith(".")]
        paths.sort(key=lambda path: path.stat().st_mtime, reverse=True)
        return [self.describe(path) for path in paths]

    def group_files(self, files: Optional[List[Dict[str, Any]]] = None) -> Dict[str, List[Dict[str, Any]]]:
        files = self.list_files() if files is None else files
        grouped: Dict[str, List[Dict[str, Any]]] = {"videos": [], "audio": [], "subtitles": [], "other": []}
        keys = {"video": "videos", "audio": "audio", "subtitle": "subtitles"}
        for item in files:
            grouped[keys.get(item["type"], "other")].append(item)
        return grouped

    def summary(self, files: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
        files = self.list_files() if files is None else files
        total_size = sum(item["size"] for item in files)
        grouped = self.group_files(files)
        return {
            "totalFiles": len(files),
            "totalSize": total_size,
            "totalSizeMB": bytes_to_mb(total_size),
            "videoCount": len(grouped["videos"]),
            "audioCount": len(grouped["audio"]),
            "subtitleCount": len(grouped["subtitles"]),
            "otherCount": len(grouped["other"]),
            "newestFile": files[0]["name"] if files else None,
            "oldestFile": files[-1]["name"] if files else None,
            "retentionHours": self.retention_hours,
        }

    def delete(self, filename: str) -> Dict[str, Any]:
        """
        Delete one output file.

        Raises:
            FileManagerError, FileNotFoundError: See `resolve`
        """
        path = self.resolve(filename)
        size = path.stat().st_size
        path.unlink()
        self.logger.info("Output file deleted", file=filename, size_bytes=size)
        return {"name": filename, "size": size, "sizeMB": bytes_to_mb(size)}

    def cleanup(self, older_than_hours: float) -> Dict[str, Any]:
        """
        Delete files whose age is at least `older_than_hours`.

        `0` deletes everything currently in the directory.
        """
        if older_than_hours < 0:
            raise FileManagerError("olderThanHours cannot be negative")

        cutoff = self.clock() - older_than_hours * 3600
        deleted: List[str] = []
        total_size = 0
        for path in list(self.output_dir.iterdir()):
            if not path.is_file():
                continue
            stat = path.stat()
            if older_than_hours > 0 and stat.st_mtime > cutoff:
                continue
            try:
                path.unlink()
            except OSError as e:
                self.logger.warning("Failed to delete output file", file=path.name, error=str(e))
                continue
            deleted.append(path.name)
            total_size += stat.st_size

        self.logger.info(
            "Output cleanup finished",
            older_than_hours=older_than_hours,
            files_deleted=len(deleted),
            size_bytes=total_size,
        )
        return {
            "filesDeleted": len(deleted),
            "totalSizeDeleted": total_size,
            "totalSizeDeletedMB": bytes_to_mb(total_size),
            "deletedFiles": deleted,
            "olderThanHours": older_than_hours,
        }

    def cleanup_expired(self) -> Dict[str, Any]:
        """Apply the retention window to the output directory."""
        return self.cleanup(self.retention_hours)
