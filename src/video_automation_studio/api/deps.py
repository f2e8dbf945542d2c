from __future__ import annotations

from functools import lru_cache

from ..config import Settings, get_settings
from ..services import (
    FFmpegRunner,
    JobOrchestrator,
    NarrationGenerator,
    OutputFileManager,
    SpeechSynthesizer,
    YouTubePublisher,
)


def get_app_settings() -> Settings:
    return get_settings()


@lru_cache(maxsize=1)
def get_ffmpeg() -> FFmpegRunner:
    return FFmpegRunner(get_settings())


@lru_cache(maxsize=1)
def get_narration_generator() -> NarrationGenerator:
    return NarrationGenerator(get_settings())


@lru_cache(maxsize=1)
def get_speech_synthesizer() -> SpeechSynthesizer:
    return SpeechSynthesizer(get_settings())


@lru_cache(maxsize=1)
def get_publisher() -> YouTubePublisher:
    return YouTubePublisher(get_settings())


@lru_cache(maxsize=1)
def get_file_manager() -> OutputFileManager:
    return OutputFileManager(get_settings())


@lru_cache(maxsize=1)
def get_orchestrator() -> JobOrchestrator:
    settings = get_settings()
    return JobOrchestrator(
        settings=settings,
        generator=get_narration_generator(),
        synthesizer=get_speech_synthesizer(),
        publisher=get_publisher(),
        ffmpeg=get_ffmpeg(),
    )
