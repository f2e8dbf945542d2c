"""
Video assembly: normalize, concatenate, replace audio and mix background music.

Each transformation is one ffmpeg invocation that writes a new file. Once a
transformation succeeds its input is deleted, so at most one "current"
version of the video exists at any time.
"""

import math
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from ..config import get_settings
from ..job_context import JobContext
from ..logging_config import LoggerMixin
from ..models import ClipRecord
from ..utils.file_utils import remove_file
from .ffmpeg import FFmpegError, FFmpegRunner


class VideoAssemblyError(Exception):
    """Raised when a video assembly step fails."""
    pass


@dataclass
class EncodingProfile:
    """Target format every clip is normalized to."""
    width: int = 1280
    height: int = 720
    fps: int = 30
    video_codec: str = "libx264"
    audio_codec: str = "aac"
    preset: str = "fast"
    pixel_format: str = "yuv420p"
    video_bitrate: str = "2000k"
    audio_bitrate: str = "128k"
    audio_sample_rate: int = 44100

    def __post_init__(self):
        """Validate profile parameters."""
        valid_presets = [
            "ultrafast", "superfast", "veryfast", "faster", "fast",
            "medium", "slow", "slower", "veryslow",
        ]
        if self.preset not in valid_presets:
            raise ValueError(f"Invalid preset: {self.preset}")
        if self.width <= 0 or self.height <= 0:
            raise ValueError("Resolution must be positive")
        if self.fps <= 0:
            raise ValueError("Frame rate must be positive")

    @classmethod
    def from_settings(cls, settings) -> 'EncodingProfile':
        return cls(
            width=settings.video_width,
            height=settings.video_height,
            fps=settings.video_fps,
            video_codec=settings.video_codec,
            audio_codec=settings.audio_codec,
            preset=settings.video_preset,
            pixel_format=settings.pixel_format,
            video_bitrate=settings.video_bitrate,
            audio_bitrate=settings.audio_bitrate,
            audio_sample_rate=settings.audio_sample_rate,
        )

    def scale_filter(self) -> str:
        """Scale into the frame keeping aspect ratio, then pad to exact size."""
        return (
            f"scale={self.width}:{self.height}:force_original_aspect_ratio=decrease,"
            f"pad={self.width}:{self.height}:(ow-iw)/2:(oh-ih)/2,setsar=1"
        )

    def video_args(self) -> List[str]:
        return [
            "-c:v", self.video_codec,
            "-preset", self.preset,
            "-b:v", self.video_bitrate,
            "-pix_fmt", self.pixel_format,
            "-r", str(self.fps),
        ]

    def audio_args(self) -> List[str]:
        return [
            "-c:a", self.audio_codec,
            "-b:a", self.audio_bitrate,
            "-ar", str(self.audio_sample_rate),
        ]


def loop_count(video_duration: float, audio_duration: float) -> int:
    """
    How many times the video must play to cover the audio.

    1 when the video is already at least as long as the audio.
    """
    if video_duration <= 0:
        raise ValueError("Video duration must be positive")
    if audio_duration <= video_duration:
        return 1
    return math.ceil(audio_duration / video_duration)


def escape_concat_path(path: Path) -> str:
    """Quote a path for an ffmpeg concat demuxer file list."""
    return "'" + str(Path(path).resolve()).replace("'", "'\\''") + "'"


class VideoAssembler(LoggerMixin):
    """Runs the four ffmpeg transformations of the assembly pipeline."""

    def __init__(self, settings=None, ffmpeg: Optional[FFmpegRunner] = None):
        self.settings = settings or get_settings()
        self.ffmpeg = ffmpeg or FFmpegRunner(self.settings)
        self.profile = EncodingProfile.from_settings(self.settings)
        self.music_volume = float(self.settings.background_music_volume)
        self.narration_volume = float(self.settings.narration_volume)

    # ---------------------------
    # Normalize
    # ---------------------------

    def normalize_clips(self, context: JobContext, clips: List[ClipRecord]) -> List[Tuple[ClipRecord, Path]]:
        """
        Re-encode every clip to the common profile, preserving order.

        Clips that fail are logged and skipped; each raw clip is deleted
        once its normalized copy exists.

        Returns:
            (clip, normalized path) pairs for the clips that succeeded

        Raises:
            VideoAssemblyError: If no clip could be normalized
        """
        normalized: List[Tuple[ClipRecord, Path]] = []
        for index, clip in enumerate(clips):
            output_path = context.path(f"normalized_{index + 1}.mp4")
            try:
                self.normalize_clip(clip.path, output_path)
            except FFmpegError as e:
                self.logger.warning(
                    "Clip normalization failed, skipping",
                    job_id=context.job_id,
                    clip=clip.name,
                    error=str(e),
                )
                remove_file(output_path)
                continue
            remove_file(clip.path)
            normalized.append((clip, output_path))

        if not normalized:
            raise VideoAssemblyError("No clips could be normalized")

        self.logger.info(
            "Clips normalized",
            job_id=context.job_id,
            normalized=len(normalized),
            requested=len(clips),
        )
        return normalized

    def normalize_clip(self, input_path: Path, output_path: Path) -> Path:
        """Re-encode one clip; clips without sound get a silent track."""
        has_audio = self.ffmpeg.has_audio_stream(input_path)
        args: List[str] = ["-i", str(input_path)]
        if has_audio:
            args += ["-map", "0:v:0", "-map", "0:a:0"]
        else:
            args += [
                "-f", "lavfi",
                "-i", f"anullsrc=channel_layout=stereo:sample_rate={self.profile.audio_sample_rate}",
                "-map", "0:v:0", "-map", "1:a:0", "-shortest",
            ]
        args += ["-vf", self.profile.scale_filter()]
        args += self.profile.video_args()
        args += self.profile.audio_args()
        args.append(str(output_path))

        self.ffmpeg.run(args, description=f"normalize {Path(input_path).name}")
        return output_path

    # ---------------------------
    # Concatenate
    # ---------------------------

    def concatenate(self, context: JobContext, inputs: List[Path], output_path: Path) -> Path:
        """
        Join normalized clips in order with the concat demuxer (no re-encode).

        Raises:
            VideoAssemblyError: If there is nothing to join or ffmpeg fails
        """
        if not inputs:
            raise VideoAssemblyError("Nothing to concatenate")

        file_list = context.path("filelist.txt")
        file_list.write_text(
            "\n".join(f"file {escape_concat_path(path)}" for path in inputs) + "\n",
            encoding="utf-8",
        )

        try:
            self.ffmpeg.run(
                ["-f", "concat", "-safe", "0", "-i", str(file_list), "-c", "copy", str(output_path)],
                description="concatenate",
            )
        except FFmpegError as e:
            remove_file(output_path)
            raise VideoAssemblyError(f"Video concatenation failed: {e}") from e
        finally:
            remove_file(file_list)

        for path in inputs:
            remove_file(path)

        self.logger.info(
            "Videos concatenated",
            job_id=context.job_id,
            inputs=len(inputs),
            output=str(output_path),
        )
        return output_path

    # ---------------------------
    # Replace audio
    # ---------------------------

    def build_replace_audio_args(
        self, video_path: Path, audio_path: Path, output_path: Path,
        video_duration: float, audio_duration: float,
    ) -> List[str]:
        """Loop or trim the video to the narration length; speed is never changed."""
        loops = loop_count(video_duration, audio_duration)
        args: List[str] = []
        if loops > 1:
            args += ["-stream_loop", str(loops - 1)]
        args += [
            "-i", str(video_path),
            "-i", str(audio_path),
            "-map", "0:v:0",
            "-map", "1:a:0",
            "-t", f"{audio_duration:.3f}",
        ]
        args += self.profile.video_args()
        args += self.profile.audio_args()
        args.append(str(output_path))
        return args

    def replace_audio(self, video_path: Path, audio_path: Path, output_path: Path) -> Path:
        """
        Replace the video's audio track with the narration.

        The result lasts exactly as long as the narration. The input
        video is deleted on success; the narration file is left alone.

        Raises:
            VideoAssemblyError: If probing or encoding fails
        """
        try:
            video_duration = self.ffmpeg.probe_duration(video_path)
            audio_duration = self.ffmpeg.probe_duration(audio_path)
        except FFmpegError as e:
            raise VideoAssemblyError(f"Could not measure durations for audio replacement: {e}") from e

        loops = loop_count(video_duration, audio_duration)
        self.logger.info(
            "Replacing audio",
            video_duration=round(video_duration, 3),
            audio_duration=round(audio_duration, 3),
            strategy="loop" if loops > 1 else "trim",
            loops=loops,
        )

        args = self.build_replace_audio_args(
            video_path, audio_path, output_path, video_duration, audio_duration
        )
        try:
            self.ffmpeg.run(args, description="replace audio")
        except FFmpegError as e:
            remove_file(output_path)
            raise VideoAssemblyError(f"Audio replacement failed: {e}") from e

        remove_file(video_path)
        return output_path

    # ---------------------------
    # Background music
    # ---------------------------

    def build_music_filter(self, video_duration: float, music_duration: float) -> str:
        """Loop or trim the music to the video length and mix it under the narration."""
        duration = f"{video_duration:.3f}"
        music_chain = "[1:a]"
        if music_duration < video_duration:
            music_chain += "aloop=loop=-1:size=2e9,asetpts=N/SR/TB,"
        music_chain += f"atrim=0:{duration},volume={self.music_volume}[bg]"
        narration_chain = f"[0:a]volume={self.narration_volume}[narration]"
        mix = "[narration][bg]amix=inputs=2:duration=first:dropout_transition=0[aout]"
        return ";".join([narration_chain, music_chain, mix])

    def mix_background_music(
        self, video_path: Path, music_path: Path, output_path: Path, keep_input: bool = False
    ) -> Path:
        """
        Mix the background music under the video's audio.

        The video stream is copied unchanged. The input video is deleted on
        success unless `keep_input` is set.

        Raises:
            VideoAssemblyError: If the asset is missing, probing fails or
                ffmpeg fails
        """
        music_path = Path(music_path)
        if not music_path.exists():
            raise VideoAssemblyError(f"Background music not found: {music_path}")

        try:
            video_duration = self.ffmpeg.probe_duration(video_path)
            music_duration = self.ffmpeg.probe_duration(music_path)
        except FFmpegError as e:
            raise VideoAssemblyError(f"Could not measure durations for music mix: {e}") from e

        self.logger.info(
            "Mixing background music",
            video_duration=round(video_duration, 3),
            music_duration=round(music_duration, 3),
            strategy="loop" if music_duration < video_duration else "trim",
            volume=self.music_volume,
        )

        args = [
            "-i", str(video_path),
            "-i", str(music_path),
            "-filter_complex", self.build_music_filter(video_duration, music_duration),
            "-map", "0:v:0",
            "-map", "[aout]",
            "-c:v", "copy",
            *self.profile.audio_args(),
            "-t", f"{video_duration:.3f}",
            str(output_path),
        ]
        try:
            self.ffmpeg.run(args, description="mix background music")
        except FFmpegError as e:
            remove_file(output_path)
            raise VideoAssemblyError(f"Background music mix failed: {e}") from e

        if not keep_input:
            remove_file(video_path)
        return output_path
