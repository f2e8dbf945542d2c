"""
File utility functions for the video automation studio.
"""

import shutil
from pathlib import Path
from typing import Union

from ..logging_config import get_logger

logger = get_logger(__name__)


CONTENT_TYPES = {
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".webm": "video/webm",
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".srt": "application/x-subrip",
    ".txt": "text/plain",
}


def ensure_directory(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to create

    Returns:
        Path object for the directory
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    logger.debug("Directory ensured", path=str(path))
    return path


def format_size_mb(size_bytes: int) -> str:
    """Format a byte count the way the API reports it, e.g. '12.34MB'."""
    return f"{bytes_to_mb(size_bytes)}MB"


def bytes_to_mb(size_bytes: int) -> float:
    return round(size_bytes / (1024 * 1024), 2)


def remove_file(file_path: Union[str, Path, None]) -> bool:
    """
    Delete a file if it exists. Failures are logged, not raised.

    Returns:
        True if a file was deleted
    """
    if file_path is None:
        return False
    file_path = Path(file_path)
    if not file_path.exists():
        return False
    try:
        file_path.unlink()
        logger.debug("File removed", file=str(file_path))
        return True
    except OSError as e:
        logger.warning("Failed to remove file", file=str(file_path), error=str(e))
        return False


def remove_directory(path: Union[str, Path]) -> None:
    """Delete a directory tree if it exists."""
    path = Path(path)
    if path.exists():
        try:
            shutil.rmtree(path)
            logger.info("Directory removed", path=str(path))
        except OSError as e:
            logger.error("Failed to remove directory", path=str(path), error=str(e))


def content_type_for(filename: Union[str, Path]) -> str:
    """Infer the response content type from a file extension."""
    return CONTENT_TYPES.get(Path(filename).suffix.lower(), "application/octet-stream")
