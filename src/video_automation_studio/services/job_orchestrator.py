"""Job orchestration for the combine-videos pipeline.

A job runs strictly in sequence:
1. Clip fetching (Google Drive)
2. Script generation (optional, needs an OpenAI key)
3. Narration synthesis (optional, needs a script and an ElevenLabs key)
4. Assembly: normalize + concatenate, replace audio, mix background music
5. Subtitles (optional)
6. Response, then optional publishing to YouTube

Every stage reports a StageResult. Only fetching and concatenation can be
fatal; every later stage degrades to the last good artifact.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config import get_settings
from ..job_context import DirectoryProvider, JobContext, TempDirectoryProvider
from ..logging_config import LoggerMixin, job_log_context
from ..models import (
    ClipRecord,
    ClipSource,
    JobOutcome,
    JobState,
    NarrationAudio,
    OutputVideo,
    Script,
    StageResult,
    SubtitleMode,
    UploadResult,
    VideoMetadata,
    VALID_PRIVACY_STATUSES,
)
from ..utils.file_utils import bytes_to_mb, ensure_directory, format_size_mb, remove_file
from ..utils.time_utils import format_duration, new_job_id
from .clip_fetcher import ClipFetchError, ClipFetcher
from .ffmpeg import FFmpegError, FFmpegRunner
from .narration_generator import (
    DEFAULT_DESCRIPTION,
    JOB_SCRIPT_OPTIONS,
    NarrationError,
    NarrationGenerator,
    build_job_prompt,
    default_title,
)
from .publisher import PublishError, YouTubePublisher
from .speech_synthesizer import SpeechSynthesisError, SpeechSynthesizer
from .subtitle_burner import SubtitleBurner, SubtitleError
from .video_assembler import VideoAssembler, VideoAssemblyError

DEFAULT_TAGS = ["motivacional", "inspiração", "motivação"]


class JobOrchestratorError(Exception):
    """Raised when a job fails fatally."""

    def __init__(self, message: str, job_id: Optional[str] = None):
        super().__init__(message)
        self.job_id = job_id


@dataclass
class CombineRequest:
    """Validated input of a combine job."""
    clips: List[ClipSource]
    access_token: str
    openai_api_key: Optional[str] = None
    elevenlabs_api_key: Optional[str] = None
    enable_subtitles: bool = False
    subtitle_mode: SubtitleMode = SubtitleMode.SIDECAR
    background_music: bool = True
    youtube_credentials: Optional[Dict[str, Any]] = None
    privacy_status: Optional[str] = None

    def __post_init__(self):
        """Validate data after initialization."""
        if not self.clips:
            raise ValueError("At least one video is required")
        if not self.access_token:
            raise ValueError("Google Drive access token is required")
        if self.privacy_status and self.privacy_status not in VALID_PRIVACY_STATUSES:
            raise ValueError(f"privacyStatus must be one of {VALID_PRIVACY_STATUSES}")

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], default_subtitle_mode: str = "sidecar") -> 'CombineRequest':
        """
        Build a request from the camelCase JSON body of /api/combine-videos.

        Raises:
            ValueError: If required fields are missing or malformed
        """
        videos = payload.get("videos") or []
        if not isinstance(videos, list):
            raise ValueError("videos must be a list")
        clips = [ClipSource.from_dict(item) for item in videos if isinstance(item, dict)]

        mode = payload.get("subtitleMode") or default_subtitle_mode
        try:
            subtitle_mode = SubtitleMode(mode)
        except ValueError as e:
            raise ValueError(f"subtitleMode must be one of {[m.value for m in SubtitleMode]}") from e

        return cls(
            clips=clips,
            access_token=(payload.get("accessToken") or "").strip(),
            openai_api_key=payload.get("openaiApiKey") or None,
            elevenlabs_api_key=payload.get("elevenLabsApiKey") or None,
            enable_subtitles=bool(payload.get("enableSubtitles", False)),
            subtitle_mode=subtitle_mode,
            background_music=bool(payload.get("backgroundMusic", True)),
            youtube_credentials=payload.get("youtubeCredentials") or None,
            privacy_status=payload.get("privacyStatus") or None,
        )


@dataclass
class CombineResult:
    """Outcome of a finished combine job."""
    context: JobContext
    output: OutputVideo
    outcome: JobOutcome
    script: Optional[Script] = None
    stages: List[StageResult] = field(default_factory=list)
    upload: Optional[UploadResult] = None

    @property
    def job_id(self) -> str:
        return self.context.job_id

    def to_response(self, download_url: str) -> Dict[str, Any]:
        """Build the JSON body returned to the dashboard."""
        return {
            "success": True,
            "jobId": self.job_id,
            "message": f"{self.outcome.videos_processed} videos combined successfully",
            "filename": self.output.filename,
            "downloadUrl": download_url,
            "videosProcessed": self.outcome.videos_processed,
            "totalDuration": self.outcome.total_duration,
            "fileSize": format_size_mb(self.output.size_bytes),
            "fileSizeMB": bytes_to_mb(self.output.size_bytes),
            "hasAudio": self.outcome.has_audio,
            "hasBackgroundMusic": self.outcome.has_background_music,
            "hasSubtitles": self.outcome.has_subtitles,
            "subtitlesUrl": self.outcome.subtitles_url,
            "processedVideos": [clip.to_dict() for clip in self.outcome.processed_videos],
            "generatedScript": self._script_payload(),
            "degradedStages": list(self.outcome.degraded_stages),
            "createdAt": self.output.created_at.isoformat(),
        }

    def _script_payload(self) -> Optional[Dict[str, Any]]:
        if self.script is None:
            return None
        return {
            "script": self.script.text,
            "theme": self.script.options.theme,
            "tokensUsed": self.script.tokens_used,
            "characterCount": self.script.character_count,
            "generatedAt": self.script.created_at.isoformat(),
        }


class JobOrchestrator(LoggerMixin):
    """Run combine jobs end to end.

    Owns the per-job scratch directory and decides, per stage, whether a
    failure is fatal or degrades to the last good artifact. Every
    collaborator can be injected, which is how the tests drive it.
    """

    def __init__(
        self,
        settings=None,
        fetcher: Optional[ClipFetcher] = None,
        generator: Optional[NarrationGenerator] = None,
        synthesizer: Optional[SpeechSynthesizer] = None,
        assembler: Optional[VideoAssembler] = None,
        subtitles: Optional[SubtitleBurner] = None,
        publisher: Optional[YouTubePublisher] = None,
        directory_provider: Optional[DirectoryProvider] = None,
        ffmpeg: Optional[FFmpegRunner] = None,
    ):
        """Initialize the job orchestrator.

        Args:
            settings: Optional settings object (uses default if not provided)
            fetcher, generator, synthesizer, assembler, subtitles, publisher:
                Stage collaborators; defaults are built from settings
            directory_provider: Creates job scratch directories
            ffmpeg: Runner used to probe the final video
        """
        self.settings = settings or get_settings()
        self.ffmpeg = ffmpeg or FFmpegRunner(self.settings)
        self.fetcher = fetcher or ClipFetcher(self.settings, ffmpeg=self.ffmpeg)
        self.generator = generator or NarrationGenerator(self.settings)
        self.synthesizer = synthesizer or SpeechSynthesizer(self.settings)
        self.assembler = assembler or VideoAssembler(self.settings, ffmpeg=self.ffmpeg)
        self.subtitles = subtitles or SubtitleBurner(self.settings, ffmpeg=self.ffmpeg)
        self.publisher = publisher or YouTubePublisher(self.settings)
        self.directory_provider = directory_provider or TempDirectoryProvider(self.settings.temp_dir)
        self.output_dir = ensure_directory(self.settings.output_dir)
        self.background_music_path = Path(self.settings.background_music_path)

    # ---------------------------
    # Job Management
    # ---------------------------

    def create_context(self, job_id: Optional[str] = None) -> JobContext:
        return JobContext(job_id or new_job_id(), self.directory_provider)

    def run_combine_job(self, request: CombineRequest, job_id: Optional[str] = None) -> CombineResult:
        """
        Run the full combine pipeline for one request.

        The returned job is left in RESPONDING when publishing is still
        pending, and in DONE otherwise.

        Raises:
            JobOrchestratorError: If no clip could be fetched or the
                concatenation failed
        """
        context = self.create_context(job_id)
        with job_log_context(job_id=context.job_id):
            return self._run_combine(context, request)

    def _run_combine(self, context: JobContext, request: CombineRequest) -> CombineResult:
        outcome = JobOutcome()
        stages: List[StageResult] = []
        narration: Optional[NarrationAudio] = None
        script: Optional[Script] = None

        self.logger.info(
            "Combine job started",
            job_id=context.job_id,
            clips=len(request.clips),
            script_requested=bool(request.openai_api_key),
            narration_requested=bool(request.elevenlabs_api_key),
            subtitles_requested=request.enable_subtitles,
        )

        try:
            context.transition(JobState.FETCHING)
            fetched = self._record(stages, outcome, self._stage_fetch(context, request))
            self._ensure_not_fatal(context, fetched)
            clips: List[ClipRecord] = fetched.artifact
            outcome.record_clips(clips)

            if request.openai_api_key:
                context.transition(JobState.SCRIPTING)
                scripted = self._record(stages, outcome, self._stage_script(context, clips, request.openai_api_key))
                script = scripted.artifact
                if script is not None:
                    outcome.record_script(script)

                if script is not None and request.elevenlabs_api_key:
                    context.transition(JobState.NARRATING)
                    narrated = self._record(
                        stages, outcome, self._stage_narrate(context, script, request.elevenlabs_api_key)
                    )
                    narration = narrated.artifact

            context.transition(JobState.ASSEMBLING)
            combined = self._record(stages, outcome, self._stage_concatenate(context, clips))
            self._ensure_not_fatal(context, combined)
            current, processed = combined.artifact
            outcome.record_clips(processed)

            if narration is not None:
                replaced = self._record(stages, outcome, self._stage_replace_audio(context, current, narration))
                current = replaced.artifact
                if replaced.is_ok:
                    outcome.mark_audio()
                remove_file(narration.path)

            if request.background_music:
                mixed = self._record(stages, outcome, self._stage_mix_music(context, current))
                current = mixed.artifact
                if mixed.is_ok:
                    outcome.mark_background_music()

            if request.enable_subtitles and script is not None:
                context.transition(JobState.SUBTITLING)
                subtitled = self._record(
                    stages, outcome, self._stage_subtitles(context, script, current, request.subtitle_mode)
                )
                if subtitled.is_ok:
                    current = subtitled.artifact.video_path
                    outcome.mark_subtitles(subtitled.artifact.download_url)

            context.transition(JobState.RESPONDING)
            output = OutputVideo(
                path=current,
                size_bytes=current.stat().st_size,
                has_audio=outcome.has_audio,
                has_background_music=outcome.has_background_music,
                has_subtitles=outcome.has_subtitles,
            )
            result = CombineResult(context=context, output=output, outcome=outcome, script=script, stages=stages)
            if not self.should_publish(result, request.youtube_credentials):
                context.transition(JobState.DONE)

            self.logger.info(
                "Combine job finished",
                job_id=context.job_id,
                filename=output.filename,
                videos_processed=outcome.videos_processed,
                total_duration=format_duration(outcome.total_duration),
                has_audio=outcome.has_audio,
                has_background_music=outcome.has_background_music,
                has_subtitles=outcome.has_subtitles,
                degraded=outcome.degraded_stages,
            )
            return result

        except JobOrchestratorError as e:
            context.fail(str(e))
            raise
        except Exception as e:
            self.logger.error("Combine job crashed", job_id=context.job_id, error=str(e))
            context.fail(str(e))
            raise JobOrchestratorError(f"Video combination failed: {e}", job_id=context.job_id) from e
        finally:
            if narration is not None:
                remove_file(narration.path)
            context.release()

    def prepare_videos(self, request: CombineRequest, job_id: Optional[str] = None) -> CombineResult:
        """
        Fetch, normalize and concatenate only: no script, narration or music.

        Raises:
            JobOrchestratorError: If no clip could be fetched or the
                concatenation failed
        """
        context = self.create_context(job_id)
        with job_log_context(job_id=context.job_id):
            return self._run_prepare(context, request)

    def _run_prepare(self, context: JobContext, request: CombineRequest) -> CombineResult:
        outcome = JobOutcome()
        stages: List[StageResult] = []
        try:
            context.transition(JobState.FETCHING)
            fetched = self._record(stages, outcome, self._stage_fetch(context, request))
            self._ensure_not_fatal(context, fetched)

            context.transition(JobState.ASSEMBLING)
            combined = self._record(stages, outcome, self._stage_concatenate(context, fetched.artifact))
            self._ensure_not_fatal(context, combined)
            current, processed = combined.artifact
            outcome.record_clips(processed)

            context.transition(JobState.RESPONDING)
            output = OutputVideo(path=current, size_bytes=current.stat().st_size)
            context.transition(JobState.DONE)
            return CombineResult(context=context, output=output, outcome=outcome, stages=stages)
        except JobOrchestratorError as e:
            context.fail(str(e))
            raise
        except Exception as e:
            self.logger.error("Prepare job crashed", job_id=context.job_id, error=str(e))
            context.fail(str(e))
            raise JobOrchestratorError(f"Video preparation failed: {e}", job_id=context.job_id) from e
        finally:
            context.release()

    # ---------------------------
    # Publishing
    # ---------------------------

    @staticmethod
    def should_publish(result: CombineResult, youtube_credentials: Optional[Dict[str, Any]]) -> bool:
        """Publishing needs a generated script and a YouTube access token."""
        return result.script is not None and bool((youtube_credentials or {}).get("accessToken"))

    def publish_result(
        self,
        result: CombineResult,
        youtube_credentials: Optional[Dict[str, Any]],
        openai_api_key: Optional[str] = None,
        privacy_status: Optional[str] = None,
    ) -> Optional[UploadResult]:
        """
        Publish a finished job's video. Runs after the response was sent.

        Failures are logged and swallowed: the response already told the
        caller the video is ready.
        """
        context = result.context
        if context.state.is_terminal:
            return None
        if not self.should_publish(result, youtube_credentials):
            self.logger.info("Publishing skipped", job_id=context.job_id)
            context.transition(JobState.DONE)
            return None

        context.transition(JobState.PUBLISHING)
        try:
            if openai_api_key:
                title, description = self.generator.generate_video_metadata(result.script, openai_api_key)
            else:
                title, description = default_title(), DEFAULT_DESCRIPTION
            metadata = VideoMetadata(
                title=title,
                description=description,
                tags=list(DEFAULT_TAGS),
                privacy_status=privacy_status or self.settings.youtube_default_privacy,
                category_id=self.settings.youtube_category_id,
            )
            result.upload = self.publisher.upload(result.output.path, metadata, youtube_credentials)
            self.logger.info(
                "Job published",
                job_id=context.job_id,
                video_id=result.upload.video_id,
                url=result.upload.video_url,
            )
        except (PublishError, ValueError) as e:
            self.logger.error("Publishing failed", job_id=context.job_id, error=str(e))
        finally:
            context.transition(JobState.DONE)
        return result.upload

    # ---------------------------
    # Internal: Stages
    # ---------------------------

    def _stage_fetch(self, context: JobContext, request: CombineRequest) -> StageResult:
        try:
            clips = self.fetcher.fetch(context, request.clips, request.access_token)
        except ClipFetchError as e:
            return StageResult.fatal("fetching", e)
        return StageResult.ok("fetching", clips)

    def _stage_script(self, context: JobContext, clips: List[ClipRecord], api_key: str) -> StageResult:
        total_duration = sum(clip.duration for clip in clips)
        prompt = build_job_prompt([clip.name for clip in clips], total_duration)
        try:
            script = self.generator.generate(prompt, api_key, JOB_SCRIPT_OPTIONS)
        except NarrationError as e:
            return StageResult.degraded("scripting", None, e)
        return StageResult.ok("scripting", script)

    def _stage_narrate(self, context: JobContext, script: Script, api_key: str) -> StageResult:
        output_path = context.path(f"narration_{context.job_id}.mp3")
        try:
            narration = self.synthesizer.synthesize(script.text, output_path, api_key)
        except (SpeechSynthesisError, OSError) as e:
            remove_file(output_path)
            return StageResult.degraded("narrating", None, e)
        return StageResult.ok("narrating", narration)

    def _stage_concatenate(self, context: JobContext, clips: List[ClipRecord]) -> StageResult:
        output_path = self.output_dir / f"combined_{context.job_id}.mp4"
        try:
            normalized = self.assembler.normalize_clips(context, clips)
            self.assembler.concatenate(context, [path for _, path in normalized], output_path)
        except (VideoAssemblyError, FFmpegError, OSError) as e:
            remove_file(output_path)
            return StageResult.fatal("concatenating", e)
        return StageResult.ok("concatenating", (output_path, [clip for clip, _ in normalized]))

    def _stage_replace_audio(self, context: JobContext, video_path: Path, narration: NarrationAudio) -> StageResult:
        output_path = self.output_dir / f"final_with_narration_{context.job_id}.mp4"
        try:
            self.assembler.replace_audio(video_path, narration.path, output_path)
        except VideoAssemblyError as e:
            return StageResult.degraded("replacing_audio", video_path, e)
        return StageResult.ok("replacing_audio", output_path)

    def _stage_mix_music(self, context: JobContext, video_path: Path) -> StageResult:
        if not self.background_music_path.exists():
            return StageResult.degraded(
                "mixing_music", video_path, f"Background music not found: {self.background_music_path}"
            )
        staged = self._staging_path(context, video_path, "music")
        try:
            self.assembler.mix_background_music(
                video_path, self.background_music_path, staged, keep_input=True
            )
            os.replace(staged, video_path)
        except (VideoAssemblyError, OSError) as e:
            remove_file(staged)
            return StageResult.degraded("mixing_music", video_path, e)
        return StageResult.ok("mixing_music", video_path)

    def _stage_subtitles(
        self, context: JobContext, script: Script, video_path: Path, mode: SubtitleMode
    ) -> StageResult:
        duration = self.ffmpeg.try_probe_duration(video_path)
        if not duration:
            return StageResult.degraded("subtitling", video_path, "Could not measure the video duration")

        staged = self._staging_path(context, video_path, "subtitles")
        try:
            subtitle_result = self.subtitles.apply(
                context,
                script.text,
                video_path,
                duration,
                mode=mode,
                burned_output_path=staged,
                keep_input=True,
            )
            if mode == SubtitleMode.BURN:
                os.replace(staged, video_path)
                subtitle_result.video_path = video_path
        except (SubtitleError, FFmpegError, OSError) as e:
            remove_file(staged)
            return StageResult.degraded("subtitling", video_path, e)
        return StageResult.ok("subtitling", subtitle_result)

    @staticmethod
    def _staging_path(context: JobContext, video_path: Path, step: str) -> Path:
        # Next to the output: the swap must stay on one filesystem.
        return video_path.with_name(f".{step}_{context.job_id}{video_path.suffix}")

    # ---------------------------
    # Internal: Error Handling
    # ---------------------------

    def _record(self, stages: List[StageResult], outcome: JobOutcome, result: StageResult) -> StageResult:
        stages.append(result)
        outcome.record_stage(result)
        if result.is_ok:
            self.logger.info("Stage completed", stage=result.stage)
        elif result.is_fatal:
            self.logger.error("Stage failed", stage=result.stage, error=result.error)
        else:
            self.logger.warning("Stage degraded, continuing with last good artifact", stage=result.stage, error=result.error)
        return result

    def _ensure_not_fatal(self, context: JobContext, result: StageResult) -> None:
        if result.is_fatal:
            raise JobOrchestratorError(result.error or f"{result.stage} failed", job_id=context.job_id)
