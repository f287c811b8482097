"""Final video assembly with moviepy.

Each slide image is held on screen for exactly the measured length of its
padded narration, and the chapter's narration files are joined into one
audio track. The export is cut to the shorter of the two timelines so the
video never ends on a frozen frame with no audio behind it.
"""

import re
from dataclasses import dataclass
from pathlib import Path

from moviepy import AudioFileClip, ImageClip, concatenate_audioclips, concatenate_videoclips
from rich.console import Console

from versereel.errors import MediaError
from versereel.source import ChapterUnit

console = Console()

DEFAULT_ENCODING = {
    "fps": 30,
    "codec": "libx264",
    "pixel_format": "yuv420p",
    "audio_codec": "aac",
    "audio_bitrate": "192k",
}


@dataclass
class SlideArtifact:
    image_path: Path
    audio_path: Path
    duration: float


def output_filename(unit: ChapterUnit, timestamp_ms: int) -> str:
    """``<book>_<chapter>_<ms>.mp4`` with whitespace replaced by underscores."""
    return re.sub(r"\s+", "_", f"{unit.book_name}_{unit.chapter_number}_{timestamp_ms}.mp4")


def timeline_duration(artifacts: list[SlideArtifact]) -> float:
    return sum(a.duration for a in artifacts)


def concatenate_narration(audio_paths: list[Path], output_path: Path) -> Path:
    """Join per-slide narration files, in order, into one chapter track.

    The segments are decoded and re-encoded rather than joined at the stream
    level, so MP3 frame padding can make the track a few hundredths of a
    second longer than the sum of the slide durations. ``compose`` cuts the
    export to the shorter timeline, which absorbs the difference.
    """
    if not audio_paths:
        raise MediaError("No narration segments to concatenate")

    clips = []
    try:
        clips = [AudioFileClip(str(p)) for p in audio_paths]
        track = concatenate_audioclips(clips)
        track.write_audiofile(str(output_path), codec="libmp3lame", bitrate="128k", logger=None)
    except (OSError, ValueError) as e:
        raise MediaError(f"Could not concatenate narration: {e}") from e
    finally:
        for clip in clips:
            clip.close()
    return Path(output_path)


def compose(
    artifacts: list[SlideArtifact],
    narration_path: Path,
    output_path: Path,
    encoding: dict | None = None,
) -> Path:
    """Mux the slide timeline with the chapter narration into an MP4."""
    if not artifacts:
        raise MediaError("No slides to compose")

    enc = {**DEFAULT_ENCODING, **(encoding or {})}
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    slide_clips = []
    audio = None
    final = None
    try:
        slide_clips = [
            ImageClip(str(a.image_path)).with_duration(a.duration) for a in artifacts
        ]
        audio = AudioFileClip(str(narration_path))
        video = concatenate_videoclips(slide_clips, method="chain")

        length = min(video.duration, audio.duration)
        if abs(video.duration - audio.duration) > 0.05:
            console.print(
                f"[dim]Timeline {video.duration:.2f}s vs audio {audio.duration:.2f}s, "
                f"cutting to {length:.2f}s[/dim]"
            )
        final = video.with_audio(audio.subclipped(0, length)).subclipped(0, length)

        console.print(f"[bold cyan]Exporting video to:[/] {output_path}")
        final.write_videofile(
            str(output_path),
            fps=enc["fps"],
            codec=enc["codec"],
            audio_codec=enc["audio_codec"],
            audio_bitrate=enc["audio_bitrate"],
            ffmpeg_params=["-pix_fmt", enc["pixel_format"], "-movflags", "+faststart"],
            logger="bar",
        )
    except (OSError, ValueError) as e:
        raise MediaError(f"Could not export {output_path}: {e}") from e
    finally:
        if final is not None:
            final.close()
        if audio is not None:
            audio.close()
        for clip in slide_clips:
            clip.close()

    file_size_mb = output_path.stat().st_size / (1024 * 1024)
    console.print(f"[bold green]Video exported:[/] {output_path} ({file_size_mb:.1f} MB)")
    return output_path
