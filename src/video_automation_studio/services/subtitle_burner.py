"""Subtitle Burner Service - script-derived subtitles.

Builds subtitle cues from the narration script, spreading the video's
duration across cues in proportion to their length, and delivers them
either as a sidecar .srt file or burned into the picture.

Features:
- build_cues: split script text into readable cues (max 2 lines, ~42 chars each)
- write_srt: export cues with pysrt
- apply: sidecar or burn, selected by SubtitleMode
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

import pysrt

from ..config import get_settings
from ..job_context import JobContext
from ..logging_config import LoggerMixin
from ..models import SubtitleMode
from ..utils.file_utils import ensure_directory, remove_file
from .ffmpeg import FFmpegError, FFmpegRunner

MAX_LINES_PER_CUE = 2
SENTENCE_ENDINGS = (".", "?", "!", "…")


class SubtitleError(Exception):
    """Raised for subtitle generation related failures."""


@dataclass
class Subtitle:
    """A single subtitle entry with timing and text."""

    index: int
    start_time: float  # seconds
    end_time: float
    text: str

    def __post_init__(self):
        """Validate subtitle data."""
        if self.index < 1:
            raise ValueError("Subtitle index must be >= 1")
        if self.start_time < 0:
            raise ValueError("Start time cannot be negative")
        if self.end_time <= self.start_time:
            raise ValueError("End time must be greater than start time")
        if not self.text.strip():
            raise ValueError("Subtitle text cannot be empty")

    @property
    def duration(self) -> float:
        """Get subtitle duration in seconds."""
        return self.end_time - self.start_time

    def to_srt_item(self) -> pysrt.SubRipItem:
        return pysrt.SubRipItem(
            index=self.index,
            start=pysrt.SubRipTime.from_ordinal(int(round(self.start_time * 1000))),
            end=pysrt.SubRipTime.from_ordinal(int(round(self.end_time * 1000))),
            text=self.text,
        )


@dataclass
class SubtitleStyle:
    """Styling used when subtitles are burned in."""

    font_name: str = "Arial"
    font_size: int = 24
    font_color: str = "FFFFFF"  # hex RGB without #
    outline_color: str = "000000"
    outline_width: int = 2
    margin_vertical: int = 20  # pixels from bottom

    def __post_init__(self):
        """Validate style configuration."""
        if self.font_size <= 0:
            raise ValueError("Font size must be positive")
        if self.outline_width < 0:
            raise ValueError("Outline width must be non-negative")
        if self.margin_vertical < 0:
            raise ValueError("Margin vertical must be non-negative")

    def force_style(self) -> str:
        """ASS style override string for ffmpeg's subtitles filter (colours are BGR)."""
        def bgr(rgb: str) -> str:
            return f"&H00{rgb[4:6]}{rgb[2:4]}{rgb[0:2]}"

        return (
            f"FontName={self.font_name},FontSize={self.font_size},"
            f"PrimaryColour={bgr(self.font_color)},OutlineColour={bgr(self.outline_color)},"
            f"BorderStyle=1,Outline={self.outline_width},MarginV={self.margin_vertical}"
        )


@dataclass
class SubtitleResult:
    """What the subtitle step produced."""
    mode: SubtitleMode
    srt_path: Path
    video_path: Path
    download_url: Optional[str] = None


def split_into_cues(text: str, max_chars_per_line: int = 42) -> List[str]:
    """
    Group script words into cue texts.

    A cue holds at most two lines of `max_chars_per_line` characters and
    always closes at the end of a sentence.
    """
    cues: List[str] = []
    lines: List[str] = []
    line = ""

    for word in text.split():
        candidate = f"{line} {word}".strip()
        if len(candidate) > max_chars_per_line and line:
            lines.append(line)
            line = word
            if len(lines) >= MAX_LINES_PER_CUE:
                cues.append("\n".join(lines))
                lines = []
        else:
            line = candidate

        if word.endswith(SENTENCE_ENDINGS):
            if line:
                lines.append(line)
            if lines:
                cues.append("\n".join(lines))
            lines = []
            line = ""

    if line:
        lines.append(line)
    if lines:
        cues.append("\n".join(lines))
    return cues


def build_cues(text: str, duration: float, max_chars_per_line: int = 42) -> List[Subtitle]:
    """
    Time cue texts across `[0, duration]` in proportion to their length.

    Cues are contiguous and the last one ends exactly at `duration`.

    Raises:
        SubtitleError: If the text is empty or the duration is not positive
    """
    if duration <= 0:
        raise SubtitleError("Duration must be positive to build subtitles")
    texts = split_into_cues(text or "", max_chars_per_line)
    if not texts:
        raise SubtitleError("No subtitle text to time")

    weights = [len(cue.replace("\n", " ")) for cue in texts]
    total = float(sum(weights))

    subtitles: List[Subtitle] = []
    elapsed = 0
    for index, (cue_text, weight) in enumerate(zip(texts, weights), start=1):
        start = duration * elapsed / total
        elapsed += weight
        end = duration if index == len(texts) else duration * elapsed / total
        subtitles.append(Subtitle(index=index, start_time=start, end_time=end, text=cue_text))
    return subtitles


def write_srt(subtitles: List[Subtitle], output_path: Union[str, Path], encoding: str = "utf-8") -> Path:
    """Write cues to an .srt file."""
    if not subtitles:
        raise SubtitleError("Cannot export empty subtitle list")
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    srt_file = pysrt.SubRipFile(items=[subtitle.to_srt_item() for subtitle in subtitles])
    srt_file.save(str(output_path), encoding=encoding)
    return output_path


def _filter_path(path: Path) -> str:
    """Escape a path for use inside a quoted filtergraph option."""
    return str(Path(path).resolve()).replace("\\", "/").replace("'", r"'\''")


class SubtitleBurner(LoggerMixin):
    """Derive subtitles from a script and attach them to a video."""

    def __init__(self, settings=None, ffmpeg: Optional[FFmpegRunner] = None, style: Optional[SubtitleStyle] = None):
        self.settings = settings or get_settings()
        self.ffmpeg = ffmpeg or FFmpegRunner(self.settings)
        self.style = style or SubtitleStyle()
        self.max_chars_per_line = int(getattr(self.settings, "subtitle_max_chars_per_line", 42))
        self.output_dir = ensure_directory(self.settings.output_dir)
        self.download_prefix = f"{str(self.settings.public_base_path).rstrip('/')}/download"

    def apply(
        self,
        context: JobContext,
        script_text: str,
        video_path: Path,
        duration: float,
        mode: SubtitleMode = SubtitleMode.SIDECAR,
        burned_output_path: Optional[Path] = None,
        keep_input: bool = False,
    ) -> SubtitleResult:
        """
        Build subtitles for the video in the requested mode.

        Args:
            context: Current job
            script_text: Narration script the subtitles are taken from
            video_path: Video the subtitles belong to
            duration: Video duration in seconds
            mode: SIDECAR writes a downloadable .srt, BURN re-encodes the video
            burned_output_path: Destination of the re-encoded video (BURN only)
            keep_input: Leave `video_path` in place after a burn

        Returns:
            SubtitleResult; `video_path` is the video to keep using

        Raises:
            SubtitleError: On any failure
        """
        subtitles = build_cues(script_text, duration, self.max_chars_per_line)

        if mode == SubtitleMode.SIDECAR:
            srt_path = write_srt(subtitles, self.output_dir / f"subtitles_{context.job_id}.srt")
            url = f"{self.download_prefix}/{srt_path.name}"
            self.logger.info(
                "Subtitle sidecar written",
                job_id=context.job_id,
                cues=len(subtitles),
                file=srt_path.name,
            )
            return SubtitleResult(mode=mode, srt_path=srt_path, video_path=video_path, download_url=url)

        if burned_output_path is None:
            raise SubtitleError("An output path is required to burn subtitles")

        srt_path = write_srt(subtitles, context.path("subtitles.srt"))
        self.burn(video_path, srt_path, burned_output_path, keep_input=keep_input)
        remove_file(srt_path)
        self.logger.info("Subtitles burned", job_id=context.job_id, cues=len(subtitles))
        return SubtitleResult(mode=mode, srt_path=srt_path, video_path=burned_output_path)

    def burn(self, video_path: Path, srt_path: Path, output_path: Path, keep_input: bool = False) -> Path:
        """Re-encode the video with hard subtitles; deletes the input on success unless `keep_input`."""
        vf = f"subtitles=filename='{_filter_path(srt_path)}':force_style='{self.style.force_style()}'"
        args = [
            "-i", str(video_path),
            "-vf", vf,
            "-c:v", self.settings.video_codec,
            "-preset", self.settings.video_preset,
            "-pix_fmt", self.settings.pixel_format,
            "-c:a", "copy",
            str(output_path),
        ]
        try:
            self.ffmpeg.run(args, description="burn subtitles")
        except FFmpegError as e:
            remove_file(output_path)
            raise SubtitleError(f"Subtitle burn failed: {e}") from e

        if not keep_input:
            remove_file(video_path)
        return output_path
