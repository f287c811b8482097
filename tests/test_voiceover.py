from unittest.mock import MagicMock

import httpx
import pytest
from elevenlabs.core.api_error import ApiError

from versereel.errors import ProviderFailure, QuotaExceeded, TransientProviderError
from versereel.video.voiceover import SpeechClient, classify_api_error, voice_settings


@pytest.mark.parametrize("status,body,kind", [
    (401, {"detail": {"status": "quota_exceeded", "message": "This request exceeds your quota"}}, QuotaExceeded),
    (402, {"detail": "payment required"}, QuotaExceeded),
    (429, {"detail": {"status": "too_many_concurrent_requests"}}, TransientProviderError),
    (503, "service unavailable", TransientProviderError),
    (401, {"detail": {"status": "invalid_api_key"}}, ProviderFailure),
    (400, {"detail": "bad voice"}, ProviderFailure),
])
def test_classify_api_error(status, body, kind):
    assert isinstance(classify_api_error(ApiError(status_code=status, body=body)), kind)


def test_remaining_quota():
    sdk = MagicMock()
    sdk.user.subscription.get.return_value = MagicMock(character_limit=30000, character_count=29500)
    assert SpeechClient("key", client=sdk).remaining_quota() == 500


def test_quota_network_error_is_transient():
    sdk = MagicMock()
    sdk.user.subscription.get.side_effect = httpx.ConnectError("boom")
    with pytest.raises(TransientProviderError):
        SpeechClient("key", client=sdk).quota()


def test_synthesize_joins_chunks():
    sdk = MagicMock()
    sdk.text_to_speech.convert.return_value = iter([b"ab", b"cd"])
    audio = SpeechClient("key", client=sdk).synthesize("olá", voice_id="v", model_id="m")

    assert audio == b"abcd"
    sdk.text_to_speech.convert.assert_called_once_with(
        voice_id="v", text="olá", model_id="m", output_format="mp3_44100_128"
    )


def test_synthesize_quota_error():
    sdk = MagicMock()
    sdk.text_to_speech.convert.side_effect = ApiError(
        status_code=401, body={"detail": {"status": "quota_exceeded"}}
    )
    with pytest.raises(QuotaExceeded):
        SpeechClient("key", client=sdk).synthesize("olá")


def test_empty_audio_is_transient():
    sdk = MagicMock()
    sdk.text_to_speech.convert.return_value = iter([])
    with pytest.raises(TransientProviderError):
        SpeechClient("key", client=sdk).synthesize("olá")


def test_missing_key():
    with pytest.raises(EnvironmentError):
        SpeechClient("")


def test_voice_settings_env_override(monkeypatch):
    monkeypatch.setenv("ELEVENLABS_VOICE_ID", "from-env")
    monkeypatch.delenv("ELEVENLABS_MODEL", raising=False)
    monkeypatch.delenv("ELEVENLABS_OUTPUT_FORMAT", raising=False)
    settings = voice_settings({"voice_id": "from-config", "model_id": "eleven_turbo_v2_5"})
    assert settings == {
        "voice_id": "from-env",
        "model_id": "eleven_turbo_v2_5",
        "output_format": "mp3_44100_128",
    }
