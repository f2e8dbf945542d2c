"""
Unit tests for data models.
"""

import pytest
from datetime import datetime, timedelta
from pathlib import Path

import video_automation_studio
from video_automation_studio.models import (
    ClipRecord,
    ClipSource,
    JobOutcome,
    JobState,
    OutputVideo,
    Script,
    ScriptOptions,
    StageResult,
    StageStatus,
    UploadResult,
    VideoMetadata,
    parse_tags,
)


class TestJobState:
    """Test lifecycle states."""

    def test_terminal_states(self):
        assert JobState.DONE.is_terminal
        assert JobState.FAILED.is_terminal

    def test_non_terminal_states(self):
        for state in (JobState.CREATED, JobState.FETCHING, JobState.RESPONDING, JobState.PUBLISHING):
            assert not state.is_terminal


class TestStageResult:
    """Test tagged stage results."""

    def test_ok(self):
        result = StageResult.ok("fetching", ["clip"])
        assert result.is_ok
        assert not result.is_fatal
        assert result.artifact == ["clip"]
        assert result.error is None

    def test_degraded_keeps_last_good_artifact(self):
        last_good = Path("combined.mp4")
        result = StageResult.degraded("mixing_music", last_good, RuntimeError("boom"))
        assert result.status == StageStatus.DEGRADED
        assert result.artifact == last_good
        assert result.error == "boom"
        assert not result.is_ok
        assert not result.is_fatal

    def test_fatal(self):
        result = StageResult.fatal("fetching", "no clips downloaded")
        assert result.is_fatal
        assert result.artifact is None
        assert result.error == "no clips downloaded"


class TestClipSource:
    """Test ClipSource validation."""

    def test_from_dict_with_display_name(self):
        clip = ClipSource.from_dict({"id": "abc", "displayName": "Praia", "duration": 7})
        assert clip.id == "abc"
        assert clip.name == "Praia"
        assert clip.duration == 7.0

    def test_name_falls_back_to_id(self):
        clip = ClipSource.from_dict({"id": "abc"})
        assert clip.name == "abc"
        assert clip.duration is None

    def test_empty_id(self):
        with pytest.raises(ValueError, match="Clip id cannot be empty"):
            ClipSource.from_dict({"name": "no id"})

    def test_negative_duration(self):
        with pytest.raises(ValueError, match="negative"):
            ClipSource(id="abc", name="x", duration=-1)


class TestScriptOptions:
    """Test script options defaults."""

    def test_defaults(self):
        options = ScriptOptions()
        assert options.theme == "motivacional"
        assert options.duration == "60 segundos"
        assert options.style == "casual e engajante"
        assert options.language == "português brasileiro"

    def test_from_dict_blank_values_use_defaults(self):
        options = ScriptOptions.from_dict({"theme": "gratidão", "style": ""})
        assert options.theme == "gratidão"
        assert options.style == "casual e engajante"

    def test_to_dict(self):
        assert ScriptOptions().to_dict()["language"] == "português brasileiro"


class TestScript:
    """Test Script model."""

    def test_character_count(self, sample_script):
        assert sample_script.character_count == len(sample_script.text)

    def test_is_frozen(self, sample_script):
        with pytest.raises(Exception):
            sample_script.text = "changed"

    def test_empty_text(self):
        with pytest.raises(ValueError, match="Script text cannot be empty"):
            Script(text="   ", options=ScriptOptions())

    def test_negative_tokens(self):
        with pytest.raises(ValueError, match="Token usage"):
            Script(text="ok", options=ScriptOptions(), tokens_used=-1)


class TestOutputVideo:
    """Test OutputVideo model."""

    def test_filename_and_expiry(self):
        created = datetime(2024, 1, 15, 10, 0, 0)
        video = OutputVideo(path=Path("/out/combined_1.mp4"), size_bytes=10, created_at=created)
        assert video.filename == "combined_1.mp4"
        assert video.content_type == "video/mp4"
        assert video.expires_at(24) == created + timedelta(hours=24)


class TestUploadResult:
    """Test UploadResult serialization."""

    def test_to_dict_camel_case(self):
        result = UploadResult(
            video_id="vid123",
            video_url="https://www.youtube.com/watch?v=vid123",
            title="Título",
            privacy_status="private",
        )
        data = result.to_dict()
        assert data["videoId"] == "vid123"
        assert data["videoUrl"].endswith("vid123")
        assert data["privacyStatus"] == "private"
        assert "uploadedAt" in data


class TestVideoMetadata:
    """Test VideoMetadata validation."""

    def test_valid(self):
        metadata = VideoMetadata(title="Título", tags=["a", "b"])
        assert metadata.privacy_status == "private"
        assert metadata.category_id == "22"

    def test_string_tags_are_split(self):
        metadata = VideoMetadata(title="Título", tags="motivação, foco , ,sucesso")
        assert metadata.tags == ["motivação", "foco", "sucesso"]

    def test_empty_title(self):
        with pytest.raises(ValueError, match="Title cannot be empty"):
            VideoMetadata(title="  ")

    def test_invalid_privacy(self):
        with pytest.raises(ValueError, match="Privacy status"):
            VideoMetadata(title="Título", privacy_status="secret")

    def test_long_fields_are_truncated(self):
        metadata = VideoMetadata(title="t" * 150, description="d" * 6000)
        assert len(metadata.title) == 100
        assert len(metadata.description) == 5000

    def test_to_dict(self):
        data = VideoMetadata(title="Título", privacy_status="unlisted").to_dict()
        assert data["privacyStatus"] == "unlisted"
        assert data["categoryId"] == "22"


class TestParseTags:
    def test_none(self):
        assert parse_tags(None) == []

    def test_list(self):
        assert parse_tags([" a ", "", "b"]) == ["a", "b"]


class TestJobOutcome:
    """Test the job outcome accumulator."""

    def test_defaults(self):
        outcome = JobOutcome()
        assert not outcome.has_audio
        assert not outcome.has_background_music
        assert not outcome.has_subtitles
        assert outcome.generated_script is None
        assert outcome.videos_processed == 0

    def test_marks(self):
        outcome = JobOutcome()
        outcome.mark_audio()
        outcome.mark_background_music()
        outcome.mark_subtitles("/api/download/subtitles_1.srt")
        assert outcome.has_audio
        assert outcome.has_background_music
        assert outcome.has_subtitles
        assert outcome.subtitles_url == "/api/download/subtitles_1.srt"

    def test_record_clips(self):
        outcome = JobOutcome()
        outcome.record_clips([
            ClipRecord(path=Path("a.mp4"), name="A", source_id="a", duration=5.123),
            ClipRecord(path=Path("b.mp4"), name="B", source_id="b", duration=4.0),
        ])
        assert outcome.videos_processed == 2
        assert outcome.total_duration == 9.12
        assert [clip.name for clip in outcome.processed_videos] == ["A", "B"]

    def test_record_stage_tracks_degraded_only(self):
        outcome = JobOutcome()
        outcome.record_stage(StageResult.ok("fetching"))
        outcome.record_stage(StageResult.degraded("narrating", None, "rate limit"))
        assert outcome.degraded_stages == ["narrating"]

    def test_record_script(self, sample_script):
        outcome = JobOutcome()
        outcome.record_script(sample_script)
        assert outcome.generated_script == sample_script.text


class TestPackage:
    def test_package_metadata(self):
        assert video_automation_studio.__version__ == "0.1.0"
        assert not hasattr(video_automation_studio, "__author__")
        assert video_automation_studio.JobOutcome is JobOutcome
