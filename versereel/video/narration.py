"""Per-slide narration: synthesize, pad with silence, measure.

Slide timing in the final video comes from the measured length of each
padded narration file, so durations are read back from the produced audio
rather than estimated from text length.
"""

from pathlib import Path
from typing import Callable

import numpy as np
from moviepy import AudioArrayClip, AudioFileClip, concatenate_audioclips
from rich.console import Console

from versereel.errors import MediaError
from versereel.video.layout import Slide

console = Console()

LEAD_SILENCE = 0.5
TRAIL_SILENCE = 1.0
SAMPLE_RATE = 44100


def narration_text(slide: Slide, index: int) -> str:
    """The first slide announces the chapter title; later ones read verses only."""
    if index == 0:
        return f"{slide.title}. {slide.read_text}"
    return slide.read_text


def _silence(duration: float, fps: int, nchannels: int) -> AudioArrayClip:
    frames = max(int(round(duration * fps)), 1)
    return AudioArrayClip(np.zeros((frames, nchannels)), fps=fps)


def pad_with_silence(raw_path: Path, output_path: Path, lead: float, trail: float) -> Path:
    """Write ``lead`` seconds of silence + narration + ``trail`` seconds of silence as MP3."""
    narration = AudioFileClip(str(raw_path))
    try:
        fps = narration.fps or SAMPLE_RATE
        padded = concatenate_audioclips([
            _silence(lead, fps, narration.nchannels),
            narration,
            _silence(trail, fps, narration.nchannels),
        ])
        padded.write_audiofile(
            str(output_path), fps=fps, codec="libmp3lame", bitrate="128k", logger=None
        )
    except (OSError, ValueError) as e:
        raise MediaError(f"Could not pad narration {raw_path}: {e}") from e
    finally:
        narration.close()
    return Path(output_path)


def audio_duration(path: Path) -> float:
    """Duration in seconds as reported by the decoded file."""
    try:
        clip = AudioFileClip(str(path))
    except (OSError, ValueError) as e:
        raise MediaError(f"Could not read duration of {path}: {e}") from e
    try:
        return float(clip.duration)
    finally:
        clip.close()


class NarrationAssembler:
    """Builds the padded, timed narration file for each slide of a chapter."""

    def __init__(
        self,
        rotator,
        work_dir: Path,
        voice: dict | None = None,
        lead_silence: float = LEAD_SILENCE,
        trail_silence: float = TRAIL_SILENCE,
        padder: Callable[[Path, Path, float, float], Path] = pad_with_silence,
        prober: Callable[[Path], float] = audio_duration,
    ):
        self.rotator = rotator
        self.work_dir = Path(work_dir)
        self.voice = voice or {}
        self.lead_silence = lead_silence
        self.trail_silence = trail_silence
        self.padder = padder
        self.prober = prober

    def synthesize(self, text: str, index: int) -> tuple[Path, float]:
        """Return the padded audio path for slide ``index`` and its duration in seconds."""
        self.work_dir.mkdir(parents=True, exist_ok=True)
        raw_path = self.work_dir / f"raw_{index}.mp3"
        audio_path = self.work_dir / f"audio_{index}.mp3"

        audio = self.rotator.synthesize(text, **self.voice)
        raw_path.write_bytes(audio)
        try:
            self.padder(raw_path, audio_path, self.lead_silence, self.trail_silence)
        finally:
            raw_path.unlink(missing_ok=True)

        duration = self.prober(audio_path)
        console.print(f"[dim]  audio {index}: {len(text)} chars -> {duration:.2f}s[/dim]")
        return audio_path, duration
