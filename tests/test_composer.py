from pathlib import Path

import pytest
from moviepy import VideoFileClip
from PIL import Image

from versereel.errors import MediaError
from versereel.source import ChapterUnit
from versereel.video.composer import (
    SlideArtifact,
    compose,
    concatenate_narration,
    output_filename,
    timeline_duration,
)
from versereel.video.narration import audio_duration


def _unit(name):
    return ChapterUnit(0, 0, name, 1, ("a",), 1)


def test_output_filename_has_no_whitespace():
    assert output_filename(_unit("1 Samuel"), 1700000000123) == "1_Samuel_1_1700000000123.mp4"
    assert output_filename(_unit("Cântico dos  Cânticos"), 5) == "Cântico_dos_Cânticos_1_5.mp4"


def test_timeline_duration():
    artifacts = [SlideArtifact(Path("a.png"), Path("a.mp3"), 3.5), SlideArtifact(Path("b.png"), Path("b.mp3"), 2.0)]
    assert timeline_duration(artifacts) == 5.5


def test_compose_requires_slides(tmp_path):
    with pytest.raises(MediaError):
        compose([], tmp_path / "a.mp3", tmp_path / "out.mp4")


def test_concatenate_requires_segments(tmp_path):
    with pytest.raises(MediaError):
        concatenate_narration([], tmp_path / "final.mp3")


def _slides(tmp_path, durations):
    artifacts = []
    for i, duration in enumerate(durations):
        image = tmp_path / f"slide_{i}.png"
        Image.new("RGB", (64, 112), (0, 0, i * 100)).save(image)
        artifacts.append(SlideArtifact(image, tmp_path / f"audio_{i}.mp3", duration))
    return artifacts


def _video_length(path):
    clip = VideoFileClip(str(path))
    try:
        return clip.duration
    finally:
        clip.close()


def test_concatenated_track_is_sum_of_segments(tone, tmp_path):
    first, second = tone("a.mp3", 1.0), tone("b.mp3", 2.0)

    track = concatenate_narration([first, second], tmp_path / "final.mp3")

    assert audio_duration(track) == pytest.approx(
        audio_duration(first) + audio_duration(second), abs=0.1
    )


def test_compose_cuts_to_shorter_audio(tone, tmp_path):
    artifacts = _slides(tmp_path, [2.0, 2.0])
    narration = tone("narration.mp3", 1.5)

    out = compose(artifacts, narration, tmp_path / "out" / "video.mp4")

    assert out.exists()
    assert _video_length(out) == pytest.approx(min(4.0, audio_duration(narration)), abs=0.15)


def test_compose_cuts_to_shorter_timeline(tone, tmp_path):
    artifacts = _slides(tmp_path, [1.0, 1.0])
    narration = tone("narration.mp3", 3.0)

    out = compose(artifacts, narration, tmp_path / "video.mp4")

    assert _video_length(out) == pytest.approx(timeline_duration(artifacts), abs=0.15)


def test_compose_bad_image_is_media_error(tone, tmp_path):
    artifacts = [SlideArtifact(tmp_path / "missing.png", tmp_path / "a.mp3", 1.0)]
    with pytest.raises(MediaError):
        compose(artifacts, tone("narration.mp3", 1.0), tmp_path / "video.mp4")
