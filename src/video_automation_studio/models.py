"""
Core data models for the video automation studio.
"""

from dataclasses import dataclass, asdict, field
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .logging_config import get_logger

logger = get_logger(__name__)


VALID_PRIVACY_STATUSES = ("private", "unlisted", "public")
YOUTUBE_TITLE_MAX_LENGTH = 100
YOUTUBE_DESCRIPTION_MAX_LENGTH = 5000


class JobState(Enum):
    """Lifecycle states of a combine job."""
    CREATED = "created"
    FETCHING = "fetching"
    SCRIPTING = "scripting"
    NARRATING = "narrating"
    ASSEMBLING = "assembling"
    SUBTITLING = "subtitling"
    RESPONDING = "responding"
    PUBLISHING = "publishing"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.DONE, JobState.FAILED)


class StageStatus(Enum):
    """Outcome of a single pipeline stage."""
    OK = "ok"
    DEGRADED = "degraded"  # failed, pipeline continues with the last good artifact
    FATAL = "fatal"


class SubtitleMode(Enum):
    """How subtitles are delivered."""
    SIDECAR = "sidecar"
    BURN = "burn"


@dataclass
class StageResult:
    """Tagged result of a pipeline stage."""
    stage: str
    status: StageStatus
    artifact: Any = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, stage: str, artifact: Any = None) -> 'StageResult':
        return cls(stage=stage, status=StageStatus.OK, artifact=artifact)

    @classmethod
    def degraded(cls, stage: str, last_good: Any, error: Union[str, Exception]) -> 'StageResult':
        return cls(stage=stage, status=StageStatus.DEGRADED, artifact=last_good, error=str(error))

    @classmethod
    def fatal(cls, stage: str, error: Union[str, Exception]) -> 'StageResult':
        return cls(stage=stage, status=StageStatus.FATAL, error=str(error))

    @property
    def is_ok(self) -> bool:
        return self.status == StageStatus.OK

    @property
    def is_fatal(self) -> bool:
        return self.status == StageStatus.FATAL


@dataclass
class ClipSource:
    """A clip requested by the caller, identified by its Drive file id."""
    id: str
    name: str
    duration: Optional[float] = None  # declared by the caller, seconds

    def __post_init__(self):
        """Validate data after initialization."""
        if not self.id or not str(self.id).strip():
            raise ValueError("Clip id cannot be empty")
        if not self.name:
            self.name = self.id
        if self.duration is not None and self.duration < 0:
            raise ValueError("Declared duration cannot be negative")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ClipSource':
        """Create instance from a request payload item."""
        duration = data.get("duration")
        return cls(
            id=str(data.get("id") or "").strip(),
            name=str(data.get("name") or data.get("displayName") or ""),
            duration=float(duration) if isinstance(duration, (int, float)) else None,
        )


@dataclass
class ClipRecord:
    """A clip downloaded into a job's scratch directory."""
    path: Path
    name: str
    source_id: str
    duration: float  # probed, seconds

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "duration": self.duration}


@dataclass(frozen=True)
class ScriptOptions:
    """Requested shape of a generated narration script."""
    theme: str = "motivacional"
    duration: str = "60 segundos"
    style: str = "casual e engajante"
    language: str = "português brasileiro"

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'ScriptOptions':
        """Build options from a payload, falling back to defaults for blank values."""
        data = data or {}
        defaults = cls()
        return cls(
            theme=data.get("theme") or defaults.theme,
            duration=data.get("duration") or defaults.duration,
            style=data.get("style") or defaults.style,
            language=data.get("language") or defaults.language,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Script:
    """A generated narration script. Immutable once generated."""
    text: str
    options: ScriptOptions
    tokens_used: int = 0
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if not self.text.strip():
            raise ValueError("Script text cannot be empty")
        if self.tokens_used < 0:
            raise ValueError("Token usage cannot be negative")

    @property
    def character_count(self) -> int:
        return len(self.text)


@dataclass
class NarrationAudio:
    """Synthesized narration. Temporary: deleted once folded into a video."""
    path: Path
    size_bytes: int
    voice_id: str


@dataclass
class OutputVideo:
    """The final artifact retained for download."""
    path: Path
    size_bytes: int
    content_type: str = "video/mp4"
    has_audio: bool = False
    has_background_music: bool = False
    has_subtitles: bool = False
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def filename(self) -> str:
        return self.path.name

    def expires_at(self, retention_hours: int) -> datetime:
        return self.created_at + timedelta(hours=retention_hours)


@dataclass
class UploadResult:
    """Result of a YouTube upload. Produced once per job, never mutated."""
    video_id: str
    video_url: str
    title: str
    privacy_status: str
    uploaded_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase shape returned by the API."""
        return {
            "videoId": self.video_id,
            "videoUrl": self.video_url,
            "title": self.title,
            "privacyStatus": self.privacy_status,
            "uploadedAt": self.uploaded_at.isoformat(),
        }


@dataclass
class VideoMetadata:
    """Metadata sent to YouTube with an upload."""
    title: str
    description: str = ""
    tags: List[str] = field(default_factory=list)
    privacy_status: str = "private"
    category_id: str = "22"

    def __post_init__(self):
        """Validate data after initialization."""
        if isinstance(self.tags, str):
            self.tags = parse_tags(self.tags)
        self.title = (self.title or "").strip()
        if not self.title:
            raise ValueError("Title cannot be empty")
        if len(self.title) > YOUTUBE_TITLE_MAX_LENGTH:
            self.title = self.title[:YOUTUBE_TITLE_MAX_LENGTH]
        if len(self.description) > YOUTUBE_DESCRIPTION_MAX_LENGTH:
            self.description = self.description[:YOUTUBE_DESCRIPTION_MAX_LENGTH]
        if self.privacy_status not in VALID_PRIVACY_STATUSES:
            raise ValueError(f"Privacy status must be one of {VALID_PRIVACY_STATUSES}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "tags": list(self.tags),
            "privacyStatus": self.privacy_status,
            "categoryId": self.category_id,
        }


def parse_tags(tags: Union[str, List[str], None]) -> List[str]:
    """Accept a list or a comma-separated string of tags."""
    if not tags:
        return []
    if isinstance(tags, str):
        tags = tags.split(",")
    return [str(tag).strip() for tag in tags if str(tag).strip()]


@dataclass
class JobOutcome:
    """
    Feature flags and facts accumulated while a job runs.

    Flags only ever move from False to True; the response is built from
    this object once, at the end of the pipeline.
    """
    has_audio: bool = False
    has_background_music: bool = False
    has_subtitles: bool = False
    subtitles_url: Optional[str] = None
    generated_script: Optional[str] = None
    videos_processed: int = 0
    total_duration: float = 0.0
    processed_videos: List[ClipRecord] = field(default_factory=list)
    degraded_stages: List[str] = field(default_factory=list)

    def mark_audio(self) -> None:
        self.has_audio = True

    def mark_background_music(self) -> None:
        self.has_background_music = True

    def mark_subtitles(self, url: Optional[str] = None) -> None:
        self.has_subtitles = True
        if url:
            self.subtitles_url = url

    def record_clips(self, clips: List[ClipRecord]) -> None:
        self.processed_videos = list(clips)
        self.videos_processed = len(clips)
        self.total_duration = round(sum(clip.duration for clip in clips), 2)

    def record_script(self, script: Script) -> None:
        self.generated_script = script.text

    def record_stage(self, result: StageResult) -> None:
        if result.status == StageStatus.DEGRADED:
            self.degraded_stages.append(result.stage)
