"""ElevenLabs text-to-speech for chapter narration.

``SpeechClient`` wraps one API key. Provider errors are translated into the
versereel error kinds so the credential rotator can decide between retrying
the same key and moving on to the next one:

    quota / payment / invalid key  -> QuotaExceeded or ProviderFailure (rotate)
    HTTP 429 rate limit, 5xx, I/O  -> TransientProviderError (retry same key)
"""

import os

import httpx
from dotenv import load_dotenv
from elevenlabs import ElevenLabs
from elevenlabs.core.api_error import ApiError
from rich.console import Console

from versereel.errors import ProviderFailure, QuotaExceeded, TransientProviderError

load_dotenv()

console = Console()

DEFAULT_VOICE_ID = "CwhRBWXzGAHq8TQ4Fs17"
DEFAULT_MODEL_ID = "eleven_multilingual_v2"
DEFAULT_OUTPUT_FORMAT = "mp3_44100_128"

_QUOTA_MARKERS = ("quota_exceeded", "quota", "insufficient", "payment_required")


def voice_settings(config: dict | None = None) -> dict:
    """Voice, model and format from the environment, then config.yaml, then defaults."""
    config = config or {}
    return {
        "voice_id": os.getenv("ELEVENLABS_VOICE_ID") or config.get("voice_id", DEFAULT_VOICE_ID),
        "model_id": os.getenv("ELEVENLABS_MODEL") or config.get("model_id", DEFAULT_MODEL_ID),
        "output_format": os.getenv("ELEVENLABS_OUTPUT_FORMAT")
        or config.get("output_format", DEFAULT_OUTPUT_FORMAT),
    }


def classify_api_error(error: ApiError) -> Exception:
    """Map an ElevenLabs ApiError to a versereel error kind."""
    status = error.status_code or 0
    body = str(error.body).lower()

    if any(marker in body for marker in _QUOTA_MARKERS) or status == 402:
        return QuotaExceeded(f"HTTP {status}: {error.body}")
    if status == 429 or status >= 500:
        return TransientProviderError(f"HTTP {status}: {error.body}")
    return ProviderFailure(f"HTTP {status}: {error.body}")


class SpeechClient:
    """Narration capability bound to a single ElevenLabs API key."""

    def __init__(self, api_key: str, client: ElevenLabs | None = None):
        if not api_key:
            raise EnvironmentError("ELEVENLABS_API_KEY is required. Set it in your .env file.")
        self.client = client or ElevenLabs(api_key=api_key)

    def quota(self) -> tuple[int, int]:
        """Return (character_limit, character_count) for this key's subscription."""
        try:
            subscription = self.client.user.subscription.get()
        except ApiError as e:
            raise classify_api_error(e) from e
        except httpx.HTTPError as e:
            raise TransientProviderError(f"quota check: {e}") from e
        return int(subscription.character_limit), int(subscription.character_count)

    def remaining_quota(self) -> int:
        limit, used = self.quota()
        return limit - used

    def synthesize(
        self,
        text: str,
        voice_id: str = DEFAULT_VOICE_ID,
        model_id: str = DEFAULT_MODEL_ID,
        output_format: str = DEFAULT_OUTPUT_FORMAT,
    ) -> bytes:
        """Convert ``text`` to speech and return the encoded audio bytes."""
        try:
            audio_iterator = self.client.text_to_speech.convert(
                voice_id=voice_id,
                text=text,
                model_id=model_id,
                output_format=output_format,
            )
            audio = b"".join(audio_iterator)
        except ApiError as e:
            raise classify_api_error(e) from e
        except httpx.HTTPError as e:
            raise TransientProviderError(f"synthesis: {e}") from e

        if not audio:
            raise TransientProviderError("synthesis returned no audio")
        return audio
