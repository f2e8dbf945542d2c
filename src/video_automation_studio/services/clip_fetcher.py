"""
Clip fetcher: downloads source clips from Google Drive into a job's scratch directory.

Clips are fetched one at a time. A clip that fails (HTTP error, timeout,
empty body, a local write error) is dropped and the batch carries on; only a batch in which
every clip fails is an error.
"""

import re
import time
from pathlib import Path
from typing import Callable, List, Optional

import requests

from ..config import get_settings
from ..job_context import JobContext
from ..logging_config import LoggerMixin
from ..models import ClipRecord, ClipSource
from ..utils.file_utils import remove_file
from ..utils.retry import RetryPolicy, exponential_backoff
from .ffmpeg import FFmpegRunner

MB = 1024 * 1024
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def clip_filename(index: int, file_id: str) -> str:
    """Scratch filename for the clip at `index`; the Drive id is reduced to [A-Za-z0-9_-]."""
    return f"video_{index + 1}_{_UNSAFE_FILENAME_CHARS.sub('_', file_id)}.mp4"


class ClipFetchError(Exception):
    """Raised when clips cannot be downloaded."""
    pass


class _TransientFetchError(ClipFetchError):
    """A download failure worth retrying (network, timeout, 5xx)."""
    pass


class ClipFetcher(LoggerMixin):
    """Streams Drive files to disk and probes their durations."""

    def __init__(
        self,
        settings=None,
        session: Optional[requests.Session] = None,
        ffmpeg: Optional[FFmpegRunner] = None,
        retry_policy: Optional[RetryPolicy] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or get_settings()
        self.session = session or requests.Session()
        self.ffmpeg = ffmpeg or FFmpegRunner(self.settings)
        self.clock = clock

        self.base_url = str(self.settings.drive_api_base_url).rstrip("/")
        self.connect_timeout = float(self.settings.download_connect_timeout)
        self.total_timeout = float(self.settings.download_total_timeout)
        self.progress_step = int(self.settings.download_progress_step_mb) * MB
        self.chunk_size = int(getattr(self.settings, "download_chunk_size", MB))

        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=int(getattr(self.settings, "download_max_attempts", 1)),
            delay_fn=exponential_backoff(2.0, 15.0),
            timeout=self.total_timeout,
            retry_on=lambda exc: isinstance(exc, _TransientFetchError),
        )

    def fetch(self, context: JobContext, clips: List[ClipSource], access_token: str) -> List[ClipRecord]:
        """
        Download every clip, skipping the ones that fail.

        Args:
            context: Job whose scratch directory receives the files
            clips: Clips to download, in output order
            access_token: Google OAuth bearer token

        Returns:
            Records for the clips that downloaded, in input order

        Raises:
            ClipFetchError: If no clip could be downloaded
        """
        if not access_token:
            raise ClipFetchError("Google Drive access token is required")

        records: List[ClipRecord] = []
        for index, clip in enumerate(clips):
            output_path: Optional[Path] = None
            self.logger.info(
                "Downloading clip",
                job_id=context.job_id,
                clip_id=clip.id,
                name=clip.name,
                position=f"{index + 1}/{len(clips)}",
            )
            try:
                output_path = context.path(clip_filename(index, clip.id))
                size = self.retry_policy.call(
                    self.download_file,
                    clip.id,
                    access_token,
                    output_path,
                    description=f"download {clip.id}",
                )
            except (ClipFetchError, OSError, ValueError) as e:
                self.logger.warning(
                    "Clip download failed, skipping",
                    job_id=context.job_id,
                    clip_id=clip.id,
                    name=clip.name,
                    error=str(e),
                )
                remove_file(output_path)
                continue

            duration = self.ffmpeg.try_probe_duration(output_path, default=clip.duration or 0.0)
            records.append(
                ClipRecord(path=output_path, name=clip.name, source_id=clip.id, duration=duration or 0.0)
            )
            self.logger.info(
                "Clip downloaded",
                job_id=context.job_id,
                clip_id=clip.id,
                size_bytes=size,
                duration=duration,
            )

        if not records:
            raise ClipFetchError("no clips downloaded")

        self.logger.info(
            "Clip batch finished",
            job_id=context.job_id,
            requested=len(clips),
            downloaded=len(records),
        )
        return records

    def download_file(self, file_id: str, access_token: str, output_path: Path) -> int:
        """
        Stream one Drive file to `output_path`.

        Returns:
            Number of bytes written

        Raises:
            ClipFetchError: On HTTP errors, timeouts or an empty body
        """
        url = f"{self.base_url}/files/{file_id}"
        headers = {"Authorization": f"Bearer {access_token}"}
        started = self.clock()

        try:
            response = self.session.get(
                url,
                params={"alt": "media"},
                headers=headers,
                stream=True,
                timeout=(self.connect_timeout, self.total_timeout),
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            raise _TransientFetchError(f"Network error downloading {file_id}: {e}") from e

        try:
            if response.status_code >= 500:
                raise _TransientFetchError(f"Drive returned {response.status_code} for {file_id}")
            if response.status_code >= 400:
                raise ClipFetchError(f"Drive returned {response.status_code} for {file_id}")

            written = 0
            next_report = self.progress_step
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, "wb") as f:
                for chunk in response.iter_content(chunk_size=self.chunk_size):
                    if not chunk:
                        continue
                    f.write(chunk)
                    written += len(chunk)
                    if written >= next_report:
                        self.logger.info(
                            "Download progress",
                            file_id=file_id,
                            downloaded_mb=round(written / MB, 1),
                        )
                        next_report += self.progress_step
                    if self.clock() - started > self.total_timeout:
                        raise _TransientFetchError(
                            f"Download of {file_id} exceeded {int(self.total_timeout)}s"
                        )
        except requests.RequestException as e:
            raise _TransientFetchError(f"Transfer of {file_id} interrupted: {e}") from e
        finally:
            response.close()

        if written == 0:
            remove_file(output_path)
            raise ClipFetchError(f"Downloaded file {file_id} is empty")

        return written
