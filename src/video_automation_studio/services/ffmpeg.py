"""
Thin wrapper around the ffmpeg and ffprobe executables.
"""

import json
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from ..config import get_settings
from ..logging_config import LoggerMixin


class FFmpegError(Exception):
    """Raised when an ffmpeg or ffprobe invocation fails."""
    pass


class FFmpegRunner(LoggerMixin):
    """Runs ffmpeg commands synchronously and probes media durations."""

    def __init__(self, settings=None):
        self.settings = settings or get_settings()
        self.ffmpeg = getattr(self.settings, "ffmpeg_binary", "ffmpeg")
        self.ffprobe = getattr(self.settings, "ffprobe_binary", "ffprobe")

    def is_available(self) -> bool:
        """Check whether the ffmpeg executable can be launched."""
        try:
            result = subprocess.run(
                [self.ffmpeg, "-version"], capture_output=True, text=True, check=False
            )
        except OSError:
            return False
        return result.returncode == 0

    def build_command(self, args: Sequence[str]) -> List[str]:
        return [self.ffmpeg, "-y", "-loglevel", "warning", *[str(arg) for arg in args]]

    def run(self, args: Sequence[str], description: str = "ffmpeg") -> None:
        """
        Run ffmpeg with the given arguments.

        Args:
            args: Arguments after the binary name (inputs, filters, output)
            description: Short label used in logs and errors

        Raises:
            FFmpegError: If the process cannot start or exits non-zero
        """
        command = self.build_command(args)
        self.logger.debug("Running ffmpeg", step=description, command=" ".join(command))

        try:
            result = subprocess.run(command, capture_output=True, text=True, check=False)
        except OSError as e:
            raise FFmpegError(f"{description}: could not start ffmpeg: {e}") from e

        if result.returncode != 0:
            self.logger.error(
                "FFmpeg command failed",
                step=description,
                returncode=result.returncode,
                stderr=result.stderr[-2000:] if result.stderr else "",
            )
            raise FFmpegError(f"{description} failed: {result.stderr}")

    def probe_duration(self, media_path: Path) -> float:
        """
        Return the duration of a media file in seconds.

        Raises:
            FFmpegError: If ffprobe fails or reports no duration
        """
        command = [
            self.ffprobe,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "json",
            str(media_path),
        ]
        try:
            result = subprocess.run(command, capture_output=True, text=True, check=True)
            data = json.loads(result.stdout)
            duration = float(data["format"]["duration"])
        except (OSError, subprocess.CalledProcessError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise FFmpegError(f"Could not probe duration of {media_path}: {e}") from e

        if duration <= 0:
            raise FFmpegError(f"Non-positive duration for {media_path}: {duration}")
        return duration

    def try_probe_duration(self, media_path: Path, default: Optional[float] = None) -> Optional[float]:
        """Probe a duration, returning `default` instead of raising."""
        try:
            return self.probe_duration(media_path)
        except FFmpegError as e:
            self.logger.warning("Duration probe failed", file=str(media_path), error=str(e))
            return default

    def has_audio_stream(self, media_path: Path) -> bool:
        """Whether the file carries at least one audio stream."""
        command = [
            self.ffprobe,
            "-v", "error",
            "-select_streams", "a",
            "-show_entries", "stream=index",
            "-of", "json",
            str(media_path),
        ]
        try:
            result = subprocess.run(command, capture_output=True, text=True, check=True)
            data = json.loads(result.stdout)
        except (OSError, subprocess.CalledProcessError, json.JSONDecodeError) as e:
            self.logger.warning("Audio stream probe failed", file=str(media_path), error=str(e))
            return False
        return bool(data.get("streams"))
