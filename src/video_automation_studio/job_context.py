"""
Job-scoped scratch storage and lifecycle state.
"""

from datetime import datetime
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional

from .logging_config import LoggerMixin
from .models import JobState
from .utils.file_utils import remove_directory


# Allowed forward transitions; any non-terminal state may also move to FAILED.
_TRANSITIONS: Dict[JobState, FrozenSet[JobState]] = {
    JobState.CREATED: frozenset({JobState.FETCHING}),
    JobState.FETCHING: frozenset({JobState.SCRIPTING, JobState.ASSEMBLING}),
    JobState.SCRIPTING: frozenset({JobState.NARRATING, JobState.ASSEMBLING}),
    JobState.NARRATING: frozenset({JobState.ASSEMBLING}),
    JobState.ASSEMBLING: frozenset({JobState.SUBTITLING, JobState.RESPONDING}),
    JobState.SUBTITLING: frozenset({JobState.RESPONDING}),
    JobState.RESPONDING: frozenset({JobState.PUBLISHING, JobState.DONE}),
    JobState.PUBLISHING: frozenset({JobState.DONE}),
    JobState.DONE: frozenset(),
    JobState.FAILED: frozenset(),
}


class JobStateError(Exception):
    """Raised on an illegal job state transition."""
    pass


class DirectoryProvider:
    """Creates and removes job scratch directories."""

    def create(self, job_id: str) -> Path:
        raise NotImplementedError

    def release(self, path: Path) -> None:
        raise NotImplementedError


class TempDirectoryProvider(DirectoryProvider, LoggerMixin):
    """Scratch directories under a fixed root, one per job id."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def create(self, job_id: str) -> Path:
        path = self.root / job_id
        path.mkdir(parents=True, exist_ok=True)
        self.logger.debug("Scratch directory created", path=str(path))
        return path

    def release(self, path: Path) -> None:
        remove_directory(path)


class JobContext(LoggerMixin):
    """
    Everything a pipeline stage needs to know about the job it runs in.

    Owns the job's scratch directory: every intermediate file is created
    through `path()`, and the whole directory goes away on `release()`.
    """

    def __init__(self, job_id: str, provider: DirectoryProvider):
        self.job_id = job_id
        self.provider = provider
        self.scratch_dir = provider.create(job_id)
        self.state = JobState.CREATED
        self.created_at = datetime.now()
        self.history: List[JobState] = [JobState.CREATED]
        self.error: Optional[str] = None
        self._released = False

    def path(self, filename: str) -> Path:
        """Return a path inside the scratch directory."""
        if Path(filename).name != filename:
            raise ValueError(f"Scratch filenames must not contain directories: {filename}")
        return self.scratch_dir / filename

    def transition(self, new_state: JobState) -> None:
        """Move the job to `new_state`, enforcing the lifecycle."""
        if self.state.is_terminal:
            raise JobStateError(f"Job {self.job_id} is already {self.state.value}")
        if new_state != JobState.FAILED and new_state not in _TRANSITIONS[self.state]:
            raise JobStateError(
                f"Illegal transition for job {self.job_id}: {self.state.value} -> {new_state.value}"
            )
        self.logger.info(
            "Job state changed",
            job_id=self.job_id,
            from_state=self.state.value,
            to_state=new_state.value,
        )
        self.state = new_state
        self.history.append(new_state)

    def fail(self, error: str) -> None:
        """Mark the job failed unless it already finished."""
        self.error = error
        if not self.state.is_terminal:
            self.transition(JobState.FAILED)

    def release(self) -> None:
        """Remove the scratch directory. Safe to call more than once."""
        if self._released:
            return
        self.provider.release(self.scratch_dir)
        self._released = True

    @property
    def released(self) -> bool:
        return self._released
