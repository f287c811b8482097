"""
Narration credential rotation.

Several ElevenLabs accounts are used in order to stretch the monthly
character quota. The rotator holds the index of the key in use and moves
forward when that key runs out of characters or keeps failing:

    Active(0) -> Active(1) -> ... -> Active(n-1) -> Exhausted

Every move forward is reported through ``on_rotate`` so the new index can
be persisted right away, independent of whether the chapter finishes.
Rotation is forward-only within a run, so the whole procedure is bounded by
the number of keys times ``transient_retries``.

Keys are discovered from the environment:

    ELEVENLABS_API_KEY, ELEVENLABS_API_KEY1, ELEVENLABS_API_KEY2, ...

stopping at the first missing number.
"""

import os
import time
from typing import Callable

from rich.console import Console

from versereel.errors import (
    CredentialsExhausted,
    ProviderFailure,
    QuotaExceeded,
    TransientProviderError,
)
from versereel.video.voiceover import SpeechClient

console = Console()

ENV_PREFIX = "ELEVENLABS_API_KEY"


def discover_credentials(environ: dict | None = None) -> list[str]:
    """Collect API keys from the environment in rotation order."""
    environ = os.environ if environ is None else environ
    keys = []
    if environ.get(ENV_PREFIX, "").strip():
        keys.append(environ[ENV_PREFIX].strip())

    i = 1
    while environ.get(f"{ENV_PREFIX}{i}", "").strip():
        keys.append(environ[f"{ENV_PREFIX}{i}"].strip())
        i += 1
    return keys


class CredentialRotator:
    """Picks the narration key for each request and rotates on exhaustion.

    Args:
        credentials: API keys in rotation order.
        start_index: Index persisted by the previous run.
        client_factory: Builds a speech client for one key.
        on_rotate: Called with the new index after every rotation.
        transient_retries: Extra attempts on the same key for transient errors.
        retry_delay: First backoff delay in seconds, doubled on each retry.
    """

    def __init__(
        self,
        credentials: list[str],
        start_index: int = 0,
        client_factory: Callable[[str], SpeechClient] = SpeechClient,
        on_rotate: Callable[[int], None] | None = None,
        transient_retries: int = 2,
        retry_delay: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if not credentials:
            raise CredentialsExhausted(f"No {ENV_PREFIX} found in the environment")
        self.credentials = list(credentials)
        if start_index >= len(self.credentials):
            console.print(
                f"[yellow]Stored key index #{start_index} is out of range "
                f"({len(self.credentials)} keys), starting from #0[/yellow]"
            )
            start_index = 0
        self.index = start_index
        self.client_factory = client_factory
        self.on_rotate = on_rotate
        self.transient_retries = transient_retries
        self.retry_delay = retry_delay
        self.sleep = sleep
        self._client = None

        console.print(f"[cyan]Using API key #{self.index}[/cyan] ({len(self.credentials)} available)")

    @property
    def client(self) -> SpeechClient:
        if self._client is None:
            self._client = self.client_factory(self.credentials[self.index])
        return self._client

    def rotate(self, reason: str) -> int:
        """Move to the next key, or raise CredentialsExhausted if there is none."""
        console.print(f"[yellow]Key #{self.index}: {reason}[/yellow]")
        next_index = self.index + 1
        if next_index >= len(self.credentials):
            raise CredentialsExhausted(
                f"All {len(self.credentials)} API keys are exhausted (last error: {reason})"
            )

        self.index = next_index
        self._client = None
        console.print(f"[cyan]Switching to backup API key #{self.index}...[/cyan]")
        if self.on_rotate is not None:
            self.on_rotate(self.index)
        return self.index

    def _call(self, fn, *args, **kwargs):
        """Call ``fn`` on the current key, retrying transient errors with backoff.

        Once the retries are spent the failure is raised as ProviderFailure.
        """
        delay = self.retry_delay
        for attempt in range(self.transient_retries + 1):
            try:
                return fn(*args, **kwargs)
            except TransientProviderError as e:
                if attempt == self.transient_retries:
                    raise ProviderFailure(f"{e} (after {attempt + 1} attempts)") from e
                console.print(
                    f"[dim]Key #{self.index} transient error "
                    f"(attempt {attempt + 1}/{self.transient_retries + 1}): {e}[/dim]"
                )
                self.sleep(delay)
                delay *= 2

    def ensure_quota(self, text_length: int) -> int:
        """Rotate until the current key has at least ``text_length`` characters left.

        Returns the remaining characters on the selected key.
        """
        while True:
            try:
                remaining = self._call(self.client.remaining_quota)
            except (QuotaExceeded, ProviderFailure) as e:
                self.rotate(f"quota check failed: {e}")
                continue

            if remaining >= text_length:
                return remaining
            self.rotate(f"insufficient quota ({remaining} characters left, {text_length} needed)")

    def synthesize(self, text: str, **voice) -> bytes:
        """Synthesize ``text``, moving to the next key whenever the current one fails."""
        while True:
            self.ensure_quota(len(text))
            try:
                return self._call(self.client.synthesize, text, **voice)
            except (QuotaExceeded, ProviderFailure) as e:
                self.rotate(f"synthesis failed: {e}")

    def quota_report(self) -> list[dict]:
        """Remaining characters for every key, for status display."""
        report = []
        for i, key in enumerate(self.credentials):
            entry = {"index": i, "active": i == self.index, "key": f"...{key[-4:]}"}
            try:
                limit, used = self.client_factory(key).quota()
                entry.update(limit=limit, used=used, remaining=limit - used, status="ok")
            except (QuotaExceeded, ProviderFailure, TransientProviderError) as e:
                entry.update(status="error", error=str(e))
            report.append(entry)
        return report
