"""
Run session: everything a single run needs, built once at startup.

Holds the loaded config, the source text, the object store, the progress
cursor and the credential rotator, and is passed explicitly to the pipeline
instead of living in module globals.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from dotenv import load_dotenv
from rich.console import Console

from versereel.credentials import CredentialRotator, discover_credentials
from versereel.progress import ProgressState, ProgressStore
from versereel.source import Source
from versereel.storage import ObjectStore
from versereel.video.voiceover import SpeechClient

load_dotenv()

console = Console()

PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_PATH = PROJECT_ROOT / "config.yaml"

DEFAULT_CONFIG = {
    "source": {"path": "nvi.json"},
    "storage": {
        "state_key": "biblia/state.json",
        "videos_prefix": "biblia/videos/prontos/",
    },
    "narration": {},
    "layout": {},
    "video": {},
    "paths": {
        "tmp_dir": "tmp",
        "output_dir": "output",
        "state_file": "state.json",
        "log_dir": "logs",
    },
}


def load_config(config_path: Path | None = None) -> dict:
    """Read config.yaml and fill in missing sections with defaults.

    The file location can also be set with VERSEREEL_CONFIG. Relative paths
    in the ``source`` and ``paths`` sections resolve against the directory
    holding the config file.
    """
    config_path = Path(config_path or os.getenv("VERSEREEL_CONFIG") or CONFIG_PATH)
    data = {}
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        console.print(f"[yellow]{config_path} not found, using defaults[/yellow]")

    config = {section: {**defaults, **(data.get(section) or {})} for section, defaults in DEFAULT_CONFIG.items()}
    base = config_path.parent

    def _resolve(value: str) -> Path:
        path = Path(value).expanduser()
        return path if path.is_absolute() else base / path

    config["source"]["path"] = _resolve(config["source"]["path"])
    for key in ("tmp_dir", "output_dir", "state_file", "log_dir"):
        config["paths"][key] = _resolve(config["paths"][key])
    return config


@dataclass
class Session:
    config: dict
    source: Source
    store: ObjectStore
    progress: ProgressStore
    state: ProgressState = field(default_factory=ProgressState)
    rotator: CredentialRotator | None = None

    @property
    def tmp_dir(self) -> Path:
        return self.config["paths"]["tmp_dir"]

    @property
    def output_dir(self) -> Path:
        return self.config["paths"]["output_dir"]

    @property
    def log_dir(self) -> Path:
        return self.config["paths"]["log_dir"]

    def persist_credential(self, index: int) -> None:
        """Record a credential rotation in the stored cursor without moving it."""
        self.state = self.state.with_credential(index)
        self.progress.save(self.state)

    def commit(self, state: ProgressState) -> None:
        self.state = state
        self.progress.save(state)

    @classmethod
    def create(
        cls,
        config: dict,
        store=None,
        credentials: list[str] | None = None,
        client_factory=SpeechClient,
        with_narration: bool = True,
    ) -> "Session":
        """Load the source and cursor, and set up the credential rotator.

        Raises SourceLoadFailure when the source text cannot be read and
        CredentialsExhausted when narration is requested but no key is set.
        """
        source = Source.load(config["source"]["path"])
        store = store or ObjectStore.from_env(config["storage"])
        progress = ProgressStore(
            store,
            key=config["storage"]["state_key"],
            local_path=config["paths"]["state_file"],
        )
        session = cls(config=config, source=source, store=store, progress=progress)
        session.state = progress.load()

        if with_narration:
            narration = config["narration"]
            session.rotator = CredentialRotator(
                discover_credentials() if credentials is None else credentials,
                start_index=session.state.credential_index,
                client_factory=client_factory,
                on_rotate=session.persist_credential,
                transient_retries=narration.get("transient_retries", 2),
                retry_delay=narration.get("retry_delay", 2.0),
            )
        return session
