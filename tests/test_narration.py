import pytest

from versereel.video.layout import Slide
from versereel.errors import MediaError
from versereel.video.narration import (
    NarrationAssembler,
    audio_duration,
    narration_text,
    pad_with_silence,
)


class RecordingRotator:
    def __init__(self):
        self.requests = []

    def synthesize(self, text, **voice):
        self.requests.append((text, voice))
        return b"ID3fake-mp3"


def test_first_slide_announces_title():
    slide = Slide("João 3", "(16) Porque Deus amou", "Porque Deus amou")
    assert narration_text(slide, 0) == "João 3. Porque Deus amou"
    assert narration_text(slide, 1) == "Porque Deus amou"


def test_synthesize_pads_measures_and_cleans_up(tmp_path):
    padded = []

    def padder(raw, out, lead, trail):
        assert raw.read_bytes() == b"ID3fake-mp3"
        padded.append((raw.name, out.name, lead, trail))
        out.write_bytes(b"padded")
        return out

    rotator = RecordingRotator()
    assembler = NarrationAssembler(
        rotator,
        work_dir=tmp_path / "tmp",
        voice={"voice_id": "v", "model_id": "m"},
        padder=padder,
        prober=lambda path: 4.25,
    )

    path, duration = assembler.synthesize("No princípio", 3)

    assert path == tmp_path / "tmp" / "audio_3.mp3"
    assert path.read_bytes() == b"padded"
    assert duration == 4.25
    assert padded == [("raw_3.mp3", "audio_3.mp3", 0.5, 1.0)]
    assert not (tmp_path / "tmp" / "raw_3.mp3").exists()
    assert rotator.requests == [("No princípio", {"voice_id": "v", "model_id": "m"})]


def test_raw_file_removed_when_padding_fails(tmp_path):
    def padder(raw, out, lead, trail):
        raise RuntimeError("ffmpeg exploded")

    assembler = NarrationAssembler(RecordingRotator(), tmp_path, padder=padder, prober=lambda p: 0.0)
    with pytest.raises(RuntimeError):
        assembler.synthesize("texto", 0)
    assert not (tmp_path / "raw_0.mp3").exists()


def test_padding_adds_lead_and_trail_silence(tone, tmp_path):
    raw = tone("raw.mp3", 1.0)
    raw_length = audio_duration(raw)

    padded = pad_with_silence(raw, tmp_path / "audio.mp3", lead=0.5, trail=1.0)

    assert audio_duration(padded) == pytest.approx(raw_length + 1.5, abs=0.1)


def test_assembler_reports_measured_duration(tone, tmp_path):
    sample = tone("sample.mp3", 2.0).read_bytes()

    class AudioRotator:
        def synthesize(self, text, **voice):
            return sample

    path, duration = NarrationAssembler(AudioRotator(), tmp_path / "work").synthesize("texto", 0)

    assert duration == pytest.approx(audio_duration(path), abs=1e-6)
    assert duration == pytest.approx(3.5, abs=0.15)


def test_unreadable_audio_is_media_error(tmp_path):
    with pytest.raises(MediaError):
        audio_duration(tmp_path / "missing.mp3")
