"""
Video Automation Studio

Combines short Google Drive clips into one video, optionally with an
AI-written narration, background music and subtitles, and can publish
the result to YouTube.
"""

__version__ = "0.1.0"

from .models import (
    JobState,
    StageStatus,
    StageResult,
    SubtitleMode,
    ClipSource,
    ClipRecord,
    ScriptOptions,
    Script,
    NarrationAudio,
    OutputVideo,
    UploadResult,
    VideoMetadata,
    JobOutcome,
)

__all__ = [
    "JobState",
    "StageStatus",
    "StageResult",
    "SubtitleMode",
    "ClipSource",
    "ClipRecord",
    "ScriptOptions",
    "Script",
    "NarrationAudio",
    "OutputVideo",
    "UploadResult",
    "VideoMetadata",
    "JobOutcome",
]
