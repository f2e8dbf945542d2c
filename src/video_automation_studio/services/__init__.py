"""
Service modules for the video automation studio.
"""

from .ffmpeg import FFmpegRunner, FFmpegError
from .clip_fetcher import ClipFetcher, ClipFetchError
from .narration_generator import NarrationGenerator, NarrationError
from .speech_synthesizer import SpeechSynthesizer, SpeechSynthesisError
from .video_assembler import VideoAssembler, VideoAssemblyError, EncodingProfile
from .subtitle_burner import SubtitleBurner, SubtitleError, SubtitleStyle, SubtitleResult
from .publisher import YouTubePublisher, PublishError
from .file_manager import OutputFileManager, FileManagerError
from .job_orchestrator import (
    JobOrchestrator,
    JobOrchestratorError,
    CombineRequest,
    CombineResult,
)

__all__ = [
    "FFmpegRunner",
    "FFmpegError",
    "ClipFetcher",
    "ClipFetchError",
    "NarrationGenerator",
    "NarrationError",
    "SpeechSynthesizer",
    "SpeechSynthesisError",
    "VideoAssembler",
    "VideoAssemblyError",
    "EncodingProfile",
    "SubtitleBurner",
    "SubtitleError",
    "SubtitleStyle",
    "SubtitleResult",
    "YouTubePublisher",
    "PublishError",
    "OutputFileManager",
    "FileManagerError",
    "JobOrchestrator",
    "JobOrchestratorError",
    "CombineRequest",
    "CombineResult",
]
