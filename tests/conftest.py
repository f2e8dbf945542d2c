"""
Pytest configuration and fixtures for the video automation studio tests.
"""

import pytest
import tempfile
import shutil
from pathlib import Path
from typing import Generator, List
from unittest.mock import Mock

from video_automation_studio.config import Settings
from video_automation_studio.job_context import JobContext, TempDirectoryProvider
from video_automation_studio.models import (
    ClipRecord,
    ClipSource,
    Script,
    ScriptOptions,
)


SAMPLE_SCRIPT_TEXT = (
    "Cada manhã é uma nova chance de recomeçar. "
    "Não espere o momento perfeito, comece agora com o que você tem. "
    "Pequenos passos todos os dias constroem grandes conquistas! "
    "Acredite no seu caminho e siga em frente."
)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_settings(temp_dir: Path) -> Settings:
    """Create test settings with temporary directories."""
    settings = Settings(
        output_dir=temp_dir / "output",
        temp_dir=temp_dir / "temp",
        logs_dir=temp_dir / "logs",
        assets_dir=temp_dir / "assets",
        background_music_path=temp_dir / "assets" / "background_music.mp3",
        log_level="DEBUG",
    )

    # Create directories
    settings.output_dir.mkdir(parents=True, exist_ok=True)
    settings.temp_dir.mkdir(parents=True, exist_ok=True)
    settings.logs_dir.mkdir(parents=True, exist_ok=True)
    settings.assets_dir.mkdir(parents=True, exist_ok=True)

    return settings


@pytest.fixture
def directory_provider(test_settings: Settings) -> TempDirectoryProvider:
    return TempDirectoryProvider(test_settings.temp_dir)


@pytest.fixture
def job_context(directory_provider: TempDirectoryProvider) -> Generator[JobContext, None, None]:
    """A job context with a live scratch directory."""
    context = JobContext("1700000000000_abc123", directory_provider)
    try:
        yield context
    finally:
        context.release()


@pytest.fixture
def sample_clip_sources() -> List[ClipSource]:
    return [
        ClipSource(id="drive_a", name="Nascer do sol", duration=5.0),
        ClipSource(id="drive_b", name="Montanhas", duration=6.0),
        ClipSource(id="drive_c", name="Oceano", duration=4.0),
    ]


@pytest.fixture
def sample_clip_records(job_context: JobContext) -> List[ClipRecord]:
    """Downloaded clips sitting in the job scratch directory."""
    records = []
    for index, (name, duration) in enumerate([("Nascer do sol", 5.0), ("Montanhas", 6.0)]):
        path = job_context.path(f"video_{index + 1}_clip{index}.mp4")
        path.write_bytes(b"fake video content")
        records.append(ClipRecord(path=path, name=name, source_id=f"clip{index}", duration=duration))
    return records


@pytest.fixture
def sample_script() -> Script:
    return Script(
        text=SAMPLE_SCRIPT_TEXT,
        options=ScriptOptions(duration="30 segundos", style="direto e impactante"),
        tokens_used=150,
    )


@pytest.fixture
def mock_ffmpeg() -> Mock:
    """FFmpegRunner stand-in: every command succeeds, every file lasts 10s."""
    ffmpeg = Mock()
    ffmpeg.probe_duration.return_value = 10.0
    ffmpeg.try_probe_duration.return_value = 10.0
    ffmpeg.has_audio_stream.return_value = True
    ffmpeg.is_available.return_value = True
    return ffmpeg


@pytest.fixture
def mock_video_file(temp_dir: Path) -> Path:
    """Create a mock video file for testing."""
    video_file = temp_dir / "test_video.mp4"
    video_file.write_bytes(b"fake video content")
    return video_file


@pytest.fixture
def mock_audio_file(temp_dir: Path) -> Path:
    """Create a mock audio file for testing."""
    audio_file = temp_dir / "test_audio.mp3"
    audio_file.write_bytes(b"fake audio content")
    return audio_file


# Property-based testing fixtures
@pytest.fixture
def hypothesis_settings():
    """Configure Hypothesis settings for property tests."""
    from hypothesis import settings, Verbosity

    return settings(
        max_examples=100,
        verbosity=Verbosity.normal,
        deadline=None,
    )
