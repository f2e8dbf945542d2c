"""Tests for JobOrchestrator."""

import errno
import pytest
from unittest.mock import Mock, patch

from video_automation_studio.job_context import TempDirectoryProvider
from video_automation_studio.models import (
    ClipRecord,
    ClipSource,
    JobState,
    NarrationAudio,
    Script,
    ScriptOptions,
    SubtitleMode,
    UploadResult,
)
from video_automation_studio.services.clip_fetcher import ClipFetchError
from video_automation_studio.services.job_orchestrator import (
    CombineRequest,
    JobOrchestrator,
    JobOrchestratorError,
)
from video_automation_studio.services.narration_generator import NarrationError
from video_automation_studio.services.publisher import PublishError
from video_automation_studio.services.speech_synthesizer import SpeechSynthesisError
from video_automation_studio.services.subtitle_burner import SubtitleResult
from video_automation_studio.services.video_assembler import VideoAssemblyError

SCRIPT_TEXT = "Acredite em você. Cada passo conta!"


def fake_fetch(context, clips, access_token):
    records = []
    for index, clip in enumerate(clips):
        path = context.path(f"video_{index + 1}_{clip.id}.mp4")
        path.write_bytes(b"clip")
        records.append(ClipRecord(path=path, name=clip.name, source_id=clip.id, duration=5.0))
    return records


def fake_concatenate(context, inputs, output_path):
    output_path.write_bytes(b"combined")
    return output_path


def fake_replace_audio(video_path, audio_path, output_path):
    output_path.write_bytes(b"narrated")
    video_path.unlink()
    return output_path


def fake_mix(video_path, music_path, output_path, keep_input=False):
    output_path.write_bytes(b"with music")
    if not keep_input:
        video_path.unlink()
    return output_path


class Harness:
    """A JobOrchestrator wired to mock collaborators."""

    def __init__(self, settings, mock_ffmpeg):
        self.settings = settings
        self.ffmpeg = mock_ffmpeg
        self.fetcher = Mock()
        self.fetcher.fetch.side_effect = fake_fetch
        self.generator = Mock()
        self.generator.generate.return_value = Script(text=SCRIPT_TEXT, options=ScriptOptions(), tokens_used=90)
        self.generator.generate_video_metadata.return_value = ("Comece Hoje", "Um novo dia ✨")
        self.synthesizer = Mock()
        self.synthesizer.synthesize.side_effect = self._synthesize
        self.assembler = Mock()
        self.assembler.normalize_clips.side_effect = lambda context, clips: [(clip, clip.path) for clip in clips]
        self.assembler.concatenate.side_effect = fake_concatenate
        self.assembler.replace_audio.side_effect = fake_replace_audio
        self.assembler.mix_background_music.side_effect = fake_mix
        self.subtitles = Mock()
        self.publisher = Mock()
        self.narration_paths = []

        self.orchestrator = JobOrchestrator(
            settings=settings,
            fetcher=self.fetcher,
            generator=self.generator,
            synthesizer=self.synthesizer,
            assembler=self.assembler,
            subtitles=self.subtitles,
            publisher=self.publisher,
            directory_provider=TempDirectoryProvider(settings.temp_dir),
            ffmpeg=mock_ffmpeg,
        )

    def _synthesize(self, text, output_path, api_key):
        output_path.write_bytes(b"mp3")
        self.narration_paths.append(output_path)
        return NarrationAudio(path=output_path, size_bytes=3, voice_id="voice")

    def add_music_asset(self):
        self.settings.background_music_path.write_bytes(b"music")


@pytest.fixture
def harness(test_settings, mock_ffmpeg):
    return Harness(test_settings, mock_ffmpeg)


def make_request(**overrides):
    fields = dict(
        clips=[ClipSource(id="a", name="Praia"), ClipSource(id="b", name="Montanha")],
        access_token="drive-token",
        background_music=False,
    )
    fields.update(overrides)
    return CombineRequest(**fields)


class TestCombineRequest:
    """Test request parsing."""

    def test_from_payload(self):
        request = CombineRequest.from_payload({
            "videos": [{"id": "a", "name": "Praia"}, {"id": "b", "displayName": "Montanha"}],
            "accessToken": " token ",
            "openaiApiKey": "sk",
            "elevenLabsApiKey": "xi",
            "enableSubtitles": True,
            "subtitleMode": "burn",
            "backgroundMusic": False,
            "youtubeCredentials": {"accessToken": "ya29"},
            "privacyStatus": "unlisted",
        })
        assert [clip.name for clip in request.clips] == ["Praia", "Montanha"]
        assert request.access_token == "token"
        assert request.subtitle_mode == SubtitleMode.BURN
        assert request.background_music is False
        assert request.youtube_credentials == {"accessToken": "ya29"}

    def test_defaults(self):
        request = CombineRequest.from_payload({"videos": [{"id": "a"}], "accessToken": "t"})
        assert request.openai_api_key is None
        assert request.enable_subtitles is False
        assert request.subtitle_mode == SubtitleMode.SIDECAR
        assert request.background_music is True

    def test_no_videos(self):
        with pytest.raises(ValueError, match="At least one video"):
            CombineRequest.from_payload({"videos": [], "accessToken": "t"})

    def test_no_token(self):
        with pytest.raises(ValueError, match="access token"):
            CombineRequest.from_payload({"videos": [{"id": "a"}]})

    def test_bad_subtitle_mode(self):
        with pytest.raises(ValueError, match="subtitleMode"):
            CombineRequest.from_payload({"videos": [{"id": "a"}], "accessToken": "t", "subtitleMode": "karaoke"})

    def test_bad_privacy(self):
        with pytest.raises(ValueError, match="privacyStatus"):
            make_request(privacy_status="secret")


class TestRunCombineJob:
    """Test the combine pipeline end to end with mock collaborators."""

    def test_no_keys_gives_plain_combination(self, harness, test_settings):
        result = harness.orchestrator.run_combine_job(make_request(), job_id="job1")
        response = result.to_response("/api/download/" + result.output.filename)

        assert response["success"] is True
        assert response["jobId"] == "job1"
        assert response["filename"] == "combined_job1.mp4"
        assert response["hasAudio"] is False
        assert response["hasBackgroundMusic"] is False
        assert response["hasSubtitles"] is False
        assert response["generatedScript"] is None
        assert response["videosProcessed"] == 2
        assert response["totalDuration"] == 10.0
        assert response["processedVideos"] == [
            {"name": "Praia", "duration": 5.0},
            {"name": "Montanha", "duration": 5.0},
        ]
        harness.generator.generate.assert_not_called()
        harness.synthesizer.synthesize.assert_not_called()
        assert result.context.state == JobState.DONE
        assert (test_settings.output_dir / "combined_job1.mp4").exists()

    def test_scratch_directory_released(self, harness, test_settings):
        result = harness.orchestrator.run_combine_job(make_request(), job_id="job1")
        assert result.context.released
        assert not (test_settings.temp_dir / "job1").exists()

    def test_partial_fetch_failure(self, harness):
        def fetch_two_of_three(context, clips, token):
            return fake_fetch(context, [clip for clip in clips if clip.id != "b"], token)

        harness.fetcher.fetch.side_effect = fetch_two_of_three
        request = make_request(clips=[
            ClipSource(id="a", name="Praia"),
            ClipSource(id="b", name="Montanha"),
            ClipSource(id="c", name="Oceano"),
        ])

        response = harness.orchestrator.run_combine_job(request).to_response("/x")

        assert response["videosProcessed"] == 2
        assert "Montanha" not in [video["name"] for video in response["processedVideos"]]

    def test_all_fetches_failed_is_fatal(self, harness, test_settings):
        harness.fetcher.fetch.side_effect = ClipFetchError("no clips downloaded")

        with pytest.raises(JobOrchestratorError, match="no clips downloaded") as exc_info:
            harness.orchestrator.run_combine_job(make_request(), job_id="job_fatal")

        assert exc_info.value.job_id == "job_fatal"
        assert not (test_settings.temp_dir / "job_fatal").exists()
        harness.assembler.concatenate.assert_not_called()

    def test_concatenation_failure_is_fatal(self, harness, test_settings):
        harness.assembler.concatenate.side_effect = VideoAssemblyError("concat exploded")

        with pytest.raises(JobOrchestratorError, match="concat exploded"):
            harness.orchestrator.run_combine_job(make_request(), job_id="job2")
        assert not (test_settings.output_dir / "combined_job2.mp4").exists()

    def test_full_pipeline_with_narration(self, harness, test_settings):
        request = make_request(openai_api_key="sk", elevenlabs_api_key="xi")

        result = harness.orchestrator.run_combine_job(request, job_id="job3")
        response = result.to_response("/x")

        assert response["hasAudio"] is True
        assert response["filename"] == "final_with_narration_job3.mp4"
        assert response["generatedScript"]["script"] == SCRIPT_TEXT
        assert response["generatedScript"]["tokensUsed"] == 90
        assert not (test_settings.output_dir / "combined_job3.mp4").exists()
        assert harness.narration_paths and not harness.narration_paths[0].exists()
        assert result.context.history == [
            JobState.CREATED,
            JobState.FETCHING,
            JobState.SCRIPTING,
            JobState.NARRATING,
            JobState.ASSEMBLING,
            JobState.RESPONDING,
            JobState.DONE,
        ]

    def test_script_prompt_mentions_clips(self, harness):
        harness.orchestrator.run_combine_job(make_request(openai_api_key="sk"))
        prompt, api_key, options = harness.generator.generate.call_args.args
        assert "Praia, Montanha" in prompt
        assert api_key == "sk"
        assert options.style == "direto e impactante"

    def test_script_failure_degrades(self, harness):
        harness.generator.generate.side_effect = NarrationError("quota exceeded")
        request = make_request(openai_api_key="sk", elevenlabs_api_key="xi")

        response = harness.orchestrator.run_combine_job(request).to_response("/x")

        assert response["generatedScript"] is None
        assert response["hasAudio"] is False
        assert "scripting" in response["degradedStages"]
        harness.synthesizer.synthesize.assert_not_called()

    def test_narration_failure_degrades(self, harness):
        harness.synthesizer.synthesize.side_effect = SpeechSynthesisError("rate limit", kind="rate_limit")
        request = make_request(openai_api_key="sk", elevenlabs_api_key="xi")

        response = harness.orchestrator.run_combine_job(request).to_response("/x")

        assert response["hasAudio"] is False
        assert response["generatedScript"] is not None
        assert response["degradedStages"] == ["narrating"]

    def test_replace_audio_failure_degrades_and_removes_narration(self, harness, test_settings):
        harness.assembler.replace_audio.side_effect = VideoAssemblyError("encoder error")
        request = make_request(openai_api_key="sk", elevenlabs_api_key="xi")

        response = harness.orchestrator.run_combine_job(request, job_id="job4").to_response("/x")

        assert response["hasAudio"] is False
        assert response["filename"] == "combined_job4.mp4"
        assert "replacing_audio" in response["degradedStages"]
        assert not harness.narration_paths[0].exists()

    def test_narration_removed_when_job_crashes(self, harness):
        harness.assembler.replace_audio.side_effect = RuntimeError("disk full")
        request = make_request(openai_api_key="sk", elevenlabs_api_key="xi")

        with pytest.raises(JobOrchestratorError, match="disk full"):
            harness.orchestrator.run_combine_job(request)
        assert not harness.narration_paths[0].exists()

    def test_background_music_mixed_in_place(self, harness, test_settings):
        harness.add_music_asset()

        response = harness.orchestrator.run_combine_job(
            make_request(background_music=True), job_id="job5"
        ).to_response("/x")

        assert response["hasBackgroundMusic"] is True
        assert response["filename"] == "combined_job5.mp4"
        assert (test_settings.output_dir / "combined_job5.mp4").read_bytes() == b"with music"

    def test_missing_music_asset_degrades(self, harness):
        response = harness.orchestrator.run_combine_job(make_request(background_music=True)).to_response("/x")
        assert response["hasBackgroundMusic"] is False
        assert response["degradedStages"] == ["mixing_music"]
        harness.assembler.mix_background_music.assert_not_called()

    def test_music_failure_degrades(self, harness, test_settings):
        harness.add_music_asset()
        harness.assembler.mix_background_music.side_effect = VideoAssemblyError("amix failed")

        response = harness.orchestrator.run_combine_job(
            make_request(background_music=True), job_id="job6"
        ).to_response("/x")

        assert response["hasBackgroundMusic"] is False
        assert (test_settings.output_dir / "combined_job6.mp4").read_bytes() == b"combined"

    def test_music_renders_next_to_output_and_keeps_input(self, harness, test_settings):
        harness.add_music_asset()

        harness.orchestrator.run_combine_job(make_request(background_music=True), job_id="job8")

        video_path, _, staged = harness.assembler.mix_background_music.call_args.args
        assert harness.assembler.mix_background_music.call_args.kwargs["keep_input"] is True
        assert staged.parent == video_path.parent == test_settings.output_dir
        assert not staged.exists()

    def test_music_swap_failure_keeps_combined_video(self, harness, test_settings):
        harness.add_music_asset()

        with patch(
            "video_automation_studio.services.job_orchestrator.os.replace",
            side_effect=OSError(errno.EXDEV, "Invalid cross-device link"),
        ):
            result = harness.orchestrator.run_combine_job(
                make_request(background_music=True), job_id="job9"
            )
        response = result.to_response("/x")

        assert response["hasBackgroundMusic"] is False
        assert response["degradedStages"] == ["mixing_music"]
        assert response["filename"] == "combined_job9.mp4"
        assert result.context.state == JobState.DONE
        assert sorted(path.name for path in test_settings.output_dir.iterdir()) == ["combined_job9.mp4"]
        assert (test_settings.output_dir / "combined_job9.mp4").read_bytes() == b"combined"

    def test_burn_swap_failure_keeps_video(self, harness, test_settings):
        def apply(context, text, video_path, duration, mode, burned_output_path, keep_input=False):
            burned_output_path.write_bytes(b"burned")
            if not keep_input:
                video_path.unlink()
            return SubtitleResult(mode=mode, srt_path=context.path("subtitles.srt"), video_path=burned_output_path)

        harness.subtitles.apply.side_effect = apply
        request = make_request(
            openai_api_key="sk", enable_subtitles=True, subtitle_mode=SubtitleMode.BURN
        )

        with patch(
            "video_automation_studio.services.job_orchestrator.os.replace",
            side_effect=OSError(errno.EXDEV, "Invalid cross-device link"),
        ):
            response = harness.orchestrator.run_combine_job(request, job_id="job10").to_response("/x")

        assert response["hasSubtitles"] is False
        assert "subtitling" in response["degradedStages"]
        assert sorted(path.name for path in test_settings.output_dir.iterdir()) == ["combined_job10.mp4"]
        assert (test_settings.output_dir / "combined_job10.mp4").read_bytes() == b"combined"

    def test_burned_subtitles_replace_video_in_place(self, harness, test_settings):
        def apply(context, text, video_path, duration, mode, burned_output_path, keep_input=False):
            burned_output_path.write_bytes(b"burned")
            return SubtitleResult(mode=mode, srt_path=context.path("subtitles.srt"), video_path=burned_output_path)

        harness.subtitles.apply.side_effect = apply
        request = make_request(
            openai_api_key="sk", enable_subtitles=True, subtitle_mode=SubtitleMode.BURN
        )

        response = harness.orchestrator.run_combine_job(request, job_id="job11").to_response("/x")

        assert response["hasSubtitles"] is True
        assert response["filename"] == "combined_job11.mp4"
        assert sorted(path.name for path in test_settings.output_dir.iterdir()) == ["combined_job11.mp4"]
        assert (test_settings.output_dir / "combined_job11.mp4").read_bytes() == b"burned"

    def test_sidecar_subtitles(self, harness, test_settings):
        def apply(context, text, video_path, duration, mode, burned_output_path, keep_input=False):
            srt = test_settings.output_dir / f"subtitles_{context.job_id}.srt"
            srt.write_text("1\n", encoding="utf-8")
            return SubtitleResult(
                mode=mode, srt_path=srt, video_path=video_path,
                download_url=f"/api/download/{srt.name}",
            )

        harness.subtitles.apply.side_effect = apply
        request = make_request(openai_api_key="sk", enable_subtitles=True)

        response = harness.orchestrator.run_combine_job(request, job_id="job7").to_response("/x")

        assert response["hasSubtitles"] is True
        assert response["subtitlesUrl"] == "/api/download/subtitles_job7.srt"
        assert harness.subtitles.apply.call_args.args[3] == 10.0

    def test_subtitles_need_a_script(self, harness):
        response = harness.orchestrator.run_combine_job(make_request(enable_subtitles=True)).to_response("/x")
        assert response["hasSubtitles"] is False
        harness.subtitles.apply.assert_not_called()

    def test_subtitles_skipped_without_duration(self, harness):
        harness.ffmpeg.try_probe_duration.return_value = None
        request = make_request(openai_api_key="sk", enable_subtitles=True)

        response = harness.orchestrator.run_combine_job(request).to_response("/x")

        assert response["hasSubtitles"] is False
        assert "subtitling" in response["degradedStages"]

    def test_publishing_pending_leaves_job_responding(self, harness):
        request = make_request(openai_api_key="sk", youtube_credentials={"accessToken": "ya29"})
        result = harness.orchestrator.run_combine_job(request)
        assert result.context.state == JobState.RESPONDING
        assert JobOrchestrator.should_publish(result, request.youtube_credentials)


class TestPublishResult:
    """Test publishing after the response."""

    def test_publish(self, harness):
        harness.publisher.upload.return_value = UploadResult(
            video_id="vid1", video_url="https://www.youtube.com/watch?v=vid1",
            title="Comece Hoje", privacy_status="private",
        )
        credentials = {"accessToken": "ya29"}
        result = harness.orchestrator.run_combine_job(
            make_request(openai_api_key="sk", youtube_credentials=credentials)
        )

        upload = harness.orchestrator.publish_result(result, credentials, "sk")

        assert upload.video_id == "vid1"
        assert result.upload is upload
        assert result.context.state == JobState.DONE
        assert result.context.history[-2:] == [JobState.PUBLISHING, JobState.DONE]
        video_path, metadata, creds = harness.publisher.upload.call_args.args
        assert video_path == result.output.path
        assert metadata.title == "Comece Hoje"
        assert metadata.privacy_status == "private"
        assert "motivacional" in metadata.tags

    def test_publish_failure_is_swallowed(self, harness):
        harness.publisher.upload.side_effect = PublishError("quota exceeded")
        credentials = {"accessToken": "ya29"}
        result = harness.orchestrator.run_combine_job(
            make_request(openai_api_key="sk", youtube_credentials=credentials)
        )

        assert harness.orchestrator.publish_result(result, credentials, "sk") is None
        assert result.context.state == JobState.DONE

    def test_publish_without_script_is_skipped(self, harness):
        credentials = {"accessToken": "ya29"}
        result = harness.orchestrator.run_combine_job(make_request(youtube_credentials=credentials))

        assert harness.orchestrator.publish_result(result, credentials) is None
        harness.publisher.upload.assert_not_called()

    def test_publish_without_openai_key_uses_default_metadata(self, harness):
        harness.publisher.upload.return_value = UploadResult(
            video_id="vid2", video_url="u", title="t", privacy_status="unlisted",
        )
        credentials = {"accessToken": "ya29"}
        result = harness.orchestrator.run_combine_job(
            make_request(openai_api_key="sk", youtube_credentials=credentials)
        )

        harness.orchestrator.publish_result(result, credentials, None, "unlisted")

        metadata = harness.publisher.upload.call_args.args[1]
        assert metadata.title.startswith("Vídeo Motivacional - ")
        assert metadata.privacy_status == "unlisted"
        harness.generator.generate_video_metadata.assert_not_called()


class TestPrepareVideos:
    def test_prepare_videos(self, harness, test_settings):
        result = harness.orchestrator.prepare_videos(make_request(openai_api_key="sk"), job_id="prep1")

        assert result.output.filename == "combined_prep1.mp4"
        assert result.script is None
        assert result.outcome.videos_processed == 2
        assert result.context.state == JobState.DONE
        harness.generator.generate.assert_not_called()
        assert not (test_settings.temp_dir / "prep1").exists()

    def test_prepare_videos_fatal(self, harness):
        harness.fetcher.fetch.side_effect = ClipFetchError("no clips downloaded")
        with pytest.raises(JobOrchestratorError):
            harness.orchestrator.prepare_videos(make_request(), job_id="prep2")
