import json

from versereel.progress import ProgressState
from versereel.session import Session, load_config
from tests.conftest import FakeSpeech, FakeStore

KEY = "biblia/state.json"


def _write_project(tmp_path, extra=""):
    (tmp_path / "books.json").write_text(json.dumps([{"name": "Jonas", "chapters": [["a"], ["b"]]}]))
    config_path = tmp_path / "config.yaml"
    config_path.write_text("source:\n  path: books.json\nnarration:\n  transient_retries: 4\n" + extra)
    return config_path


def test_load_config_resolves_paths(tmp_path):
    config = load_config(_write_project(tmp_path))

    assert config["source"]["path"] == tmp_path / "books.json"
    assert config["paths"]["tmp_dir"] == tmp_path / "tmp"
    assert config["paths"]["state_file"] == tmp_path / "state.json"
    assert config["storage"]["videos_prefix"] == "biblia/videos/prontos/"
    assert config["narration"]["transient_retries"] == 4


def test_load_config_missing_file_uses_defaults(tmp_path):
    config = load_config(tmp_path / "absent.yaml")
    assert config["storage"]["state_key"] == KEY
    assert config["source"]["path"] == tmp_path / "nvi.json"


def test_create_session_resumes_credential(tmp_path):
    config = load_config(_write_project(tmp_path))
    store = FakeStore({KEY: {"book": 0, "chapter": 1, "credentialIndex": 1}})
    clients = {"k0": FakeSpeech(), "k1": FakeSpeech(remaining=0), "k2": FakeSpeech()}

    session = Session.create(config, store=store, credentials=list(clients), client_factory=clients.get)

    assert session.state == ProgressState(book=0, chapter=1, credential_index=1)
    assert session.rotator.index == 1
    assert session.rotator.transient_retries == 4

    session.rotator.ensure_quota(10)
    assert store.objects[KEY] == {"book": 0, "chapter": 1, "credentialIndex": 2}
    assert json.loads((tmp_path / "state.json").read_text())["credentialIndex"] == 2


def test_create_session_without_narration(tmp_path):
    config = load_config(_write_project(tmp_path))
    session = Session.create(config, store=FakeStore(), credentials=[], with_narration=False)
    assert session.rotator is None
    assert len(session.source) == 1
