"""
One-chapter run.

1. Resolve the cursor to the next chapter
2. Paginate it into slides
3. Render each slide and synthesize its padded narration
4. Join the narration and mux the final MP4
5. Upload the MP4
6. Advance and persist the cursor (the commit point)

Any failure before step 6 leaves the stored cursor where it was, so the
next run redoes the same chapter from scratch.
"""

import time
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console

from versereel.progress import ProgressState, advance, next_chapter
from versereel.session import Session
from versereel.source import ChapterUnit
from versereel.video.composer import (
    SlideArtifact,
    compose,
    concatenate_narration,
    output_filename,
    timeline_duration,
)
from versereel.video.layout import Slide, paginate_chapter
from versereel.video.narration import NarrationAssembler, narration_text
from versereel.video.render import SlideRenderer
from versereel.video.voiceover import voice_settings

console = Console()


@dataclass
class RunResult:
    unit: ChapterUnit
    slide_count: int
    duration: float
    video_path: Path
    uri: str
    next_state: ProgressState


def clean_dir(path: Path) -> None:
    """Remove every file in ``path``, creating the directory if needed."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    for f in path.iterdir():
        if f.is_file():
            f.unlink()


def plan_chapter(session: Session, renderer: SlideRenderer | None = None) -> tuple[ChapterUnit, list[Slide]]:
    """Resolve and paginate the next chapter. Raises EndOfSource when done."""
    unit = next_chapter(session.state, session.source)
    renderer = renderer or SlideRenderer(session.config["layout"])
    slides = paginate_chapter(unit, renderer.settings, renderer.measure)
    return unit, slides


def build_narrator(session: Session) -> NarrationAssembler:
    narration = session.config["narration"]
    return NarrationAssembler(
        session.rotator,
        work_dir=session.tmp_dir,
        voice=voice_settings(narration),
        lead_silence=narration.get("lead_silence", 0.5),
        trail_silence=narration.get("trail_silence", 1.0),
    )


def run_chapter(
    session: Session,
    renderer: SlideRenderer | None = None,
    narrator: NarrationAssembler | None = None,
    compose_fn=compose,
    concat_fn=concatenate_narration,
    clock=time.time,
) -> RunResult:
    """Produce, upload and commit the video for the next chapter."""
    clean_dir(session.tmp_dir)

    renderer = renderer or SlideRenderer(session.config["layout"])
    unit, slides = plan_chapter(session, renderer)
    console.print(f"[bold cyan]Processing:[/] {unit.title} ({len(unit.verses)} verses)")
    console.print(f"[cyan]Slides: {len(slides)}[/cyan]")

    narrator = narrator or build_narrator(session)
    artifacts: list[SlideArtifact] = []
    for i, slide in enumerate(slides):
        console.print(f"  [dim]Slide {i + 1}/{len(slides)}...[/dim]")
        image_path = renderer.render(slide, session.tmp_dir / f"slide_{i}.png")
        audio_path, duration = narrator.synthesize(narration_text(slide, i), i)
        artifacts.append(SlideArtifact(image_path, audio_path, duration))

    console.print("[cyan]Joining narration...[/cyan]")
    narration_path = concat_fn(
        [a.audio_path for a in artifacts], session.tmp_dir / "final_audio.mp3"
    )

    filename = output_filename(unit, int(clock() * 1000))
    video_path = compose_fn(
        artifacts, narration_path, session.output_dir / filename, session.config["video"]
    )
    console.print(f"[green]Video finished locally: {video_path}[/green]")

    key = f"{session.config['storage']['videos_prefix']}{filename}"
    uri = session.store.upload_file(video_path, key, content_type="video/mp4")

    next_state = advance(unit, session.rotator.index)
    session.commit(next_state)
    console.print(
        f"[bold green]Done:[/] {unit.title} -> next book {next_state.book}, "
        f"chapter {next_state.chapter}"
    )

    clean_dir(session.tmp_dir)
    return RunResult(
        unit=unit,
        slide_count=len(slides),
        duration=timeline_duration(artifacts),
        video_path=video_path,
        uri=uri,
        next_state=next_state,
    )
