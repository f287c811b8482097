"""Shared fakes for the speech, storage and layout capabilities, plus a tone writer."""

import pytest

from versereel.errors import StorageError
from versereel.source import Source


def char_measure(text: str) -> float:
    """One pixel per character."""
    return float(len(text))


class FakeStore:
    """In-memory stand-in for ObjectStore."""

    def __init__(self, objects=None, fail_get=False, fail_put=False):
        self.objects = dict(objects or {})
        self.uploads = []
        self.fail_get = fail_get
        self.fail_put = fail_put

    def get_json(self, key):
        if self.fail_get:
            raise StorageError("network down")
        return self.objects.get(key)

    def put_json(self, key, data):
        if self.fail_put:
            raise StorageError("network down")
        self.objects[key] = dict(data)

    def upload_file(self, local_path, key, content_type="video/mp4"):
        self.uploads.append((str(local_path), key, content_type))
        return f"s3://bucket/{key}"


class FakeSpeech:
    """Scripted speech client for one key.

    ``remaining`` is the quota left (or an exception to raise on quota checks);
    ``failures`` is a list of exceptions raised by successive synthesize calls.
    """

    def __init__(self, remaining=10_000, failures=None, limit=10_000):
        self.remaining = remaining
        self.failures = list(failures or [])
        self.limit = limit
        self.quota_checks = 0
        self.calls = []

    def quota(self):
        self.quota_checks += 1
        if isinstance(self.remaining, Exception):
            raise self.remaining
        return self.limit, self.limit - self.remaining

    def remaining_quota(self):
        limit, used = self.quota()
        return limit - used

    def synthesize(self, text, **voice):
        self.calls.append(text)
        if self.failures:
            raise self.failures.pop(0)
        return f"audio:{text}".encode()


@pytest.fixture
def factory():
    """Build a client factory from a {key: FakeSpeech} mapping."""
    def _make(clients: dict):
        return lambda key: clients[key]
    return _make


@pytest.fixture
def small_source() -> Source:
    return Source.from_list([
        {"name": "Gênesis", "chapters": [["No princípio", "Era a terra"], ["Assim foram"]]},
        {"name": "Êxodo", "chapters": [["Estes são os nomes"]]},
        {"name": "Levítico", "chapters": [["a"], ["b"], ["c"]]},
        {"name": "Números", "chapters": [["d", "e"]]},
    ])


@pytest.fixture
def tone(tmp_path):
    """Write a stereo sine tone of ``seconds`` length as MP3 and return its path."""
    import numpy as np
    from moviepy import AudioArrayClip

    def _write(name: str, seconds: float, fps: int = 44100):
        t = np.arange(int(seconds * fps)) / fps
        wave = 0.2 * np.sin(2 * np.pi * 440 * t)
        clip = AudioArrayClip(np.column_stack([wave, wave]), fps=fps)
        path = tmp_path / name
        clip.write_audiofile(str(path), fps=fps, codec="libmp3lame", logger=None)
        clip.close()
        return path

    return _write
