"""
Text-to-speech narration through the ElevenLabs API.

The request timeout and retry budget both scale with the length of the
text: long scripts get more time per attempt, more attempts, and a longer
backoff between them.
"""

import time
from pathlib import Path
from typing import Any, Dict, Optional

import requests

from ..config import get_settings
from ..logging_config import LoggerMixin
from ..models import NarrationAudio
from ..utils.retry import RetryPolicy, exponential_backoff

LONG_TEXT_THRESHOLD = 5000
MAX_BACKOFF_SECONDS = 15.0

# (max characters, timeout seconds)
_TIMEOUT_STEPS = (
    (1000, 30.0),
    (3000, 60.0),
    (7000, 120.0),
    (10000, 180.0),
)
_MAX_TIMEOUT = 300.0


class SpeechSynthesisError(Exception):
    """
    Raised when narration cannot be synthesized.

    `kind` is one of: auth, rate_limit, invalid_request, api, network, input.
    """

    def __init__(self, message: str, kind: str = "api", status_code: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code

    @property
    def is_transient(self) -> bool:
        if self.kind in ("rate_limit", "network"):
            return True
        return self.kind == "api" and self.status_code is not None and self.status_code >= 500


def timeout_for_text(length: int) -> float:
    """Request timeout in seconds for a text of `length` characters."""
    for max_chars, timeout in _TIMEOUT_STEPS:
        if length <= max_chars:
            return timeout
    return _MAX_TIMEOUT


def retry_policy_for_text(length: int, sleep=time.sleep) -> RetryPolicy:
    """
    Retry policy for synthesizing a text of `length` characters.

    3 attempts with a 1s base delay, or 5 attempts with a 2s base delay
    above the long-text threshold. Delays double per attempt, capped at 15s.
    """
    is_long = length > LONG_TEXT_THRESHOLD
    base_delay = 2.0 if is_long else 1.0
    return RetryPolicy(
        max_attempts=5 if is_long else 3,
        base_delay=base_delay,
        delay_fn=exponential_backoff(base_delay, MAX_BACKOFF_SECONDS),
        timeout=timeout_for_text(length),
        retry_on=lambda exc: isinstance(exc, SpeechSynthesisError) and exc.is_transient,
        exceptions=(SpeechSynthesisError,),
        sleep=sleep,
    )


def _error_detail(response: requests.Response) -> str:
    """Pull the human-readable message out of an ElevenLabs error body."""
    try:
        payload = response.json()
    except ValueError:
        return (response.text or "").strip()[:300] or "API Error"

    if isinstance(payload, dict):
        detail = payload.get("detail")
        if isinstance(detail, dict):
            message = detail.get("message") or detail.get("status")
            if message:
                return str(message)
        elif isinstance(detail, str) and detail:
            return detail
        if payload.get("message"):
            return str(payload["message"])
    return "API Error"


def error_from_response(response: requests.Response) -> SpeechSynthesisError:
    """Map an ElevenLabs error response to a SpeechSynthesisError."""
    status = response.status_code
    detail = _error_detail(response)
    if status == 401:
        return SpeechSynthesisError(
            f"ElevenLabs authentication failed: {detail}. Please check your API key.",
            kind="auth",
            status_code=status,
        )
    if status == 429:
        return SpeechSynthesisError(
            f"ElevenLabs rate limit exceeded: {detail}", kind="rate_limit", status_code=status
        )
    if status == 422:
        return SpeechSynthesisError(
            f"Invalid request to ElevenLabs: {detail}", kind="invalid_request", status_code=status
        )
    return SpeechSynthesisError(
        f"ElevenLabs API error ({status}): {detail}", kind="api", status_code=status
    )


class SpeechSynthesizer(LoggerMixin):
    """Synthesizes narration audio from script text."""

    def __init__(self, settings=None, session: Optional[requests.Session] = None, sleep=time.sleep):
        self.settings = settings or get_settings()
        self.session = session or requests.Session()
        self.sleep = sleep

        self.base_url = str(self.settings.elevenlabs_api_base_url).rstrip("/")
        self.voice_id = self.settings.elevenlabs_voice_id
        self.model_id = self.settings.elevenlabs_model_id
        self.probe_timeout = float(self.settings.elevenlabs_probe_timeout)

    def voice_settings(self) -> Dict[str, Any]:
        return {
            "stability": self.settings.elevenlabs_stability,
            "similarity_boost": self.settings.elevenlabs_similarity_boost,
            "style": self.settings.elevenlabs_style,
            "use_speaker_boost": self.settings.elevenlabs_use_speaker_boost,
        }

    def validate_api_key(self, api_key: str) -> Dict[str, Any]:
        """
        Check an API key with a lightweight authenticated request.

        Returns:
            The account payload reported by ElevenLabs

        Raises:
            SpeechSynthesisError: kind `auth`, `rate_limit`, `api` or `network`
        """
        try:
            response = self.session.get(
                f"{self.base_url}/user",
                headers={"xi-api-key": api_key},
                timeout=self.probe_timeout,
            )
        except requests.RequestException as e:
            raise SpeechSynthesisError(
                f"Could not reach ElevenLabs to validate the API key: {e}", kind="network"
            ) from e

        if response.status_code != 200:
            raise error_from_response(response)

        self.logger.info("ElevenLabs API key validated")
        try:
            payload = response.json()
        except ValueError:
            return {}
        return payload if isinstance(payload, dict) else {}

    def synthesize(self, text: str, output_path: Path, api_key: str) -> NarrationAudio:
        """
        Synthesize `text` and write the MP3 to `output_path`.

        Args:
            text: Script to narrate
            output_path: Destination of the audio file
            api_key: ElevenLabs API key supplied by the caller

        Returns:
            NarrationAudio describing the written file

        Raises:
            SpeechSynthesisError: On invalid input, an invalid key, or when
                every attempt fails
        """
        if not api_key:
            raise SpeechSynthesisError("ElevenLabs API key is required", kind="input")
        if not text or not text.strip():
            raise SpeechSynthesisError("Text is required for audio generation", kind="input")

        self.validate_api_key(api_key)

        policy = retry_policy_for_text(len(text), sleep=self.sleep)
        self.logger.info(
            "Synthesizing narration",
            characters=len(text),
            timeout_s=policy.timeout,
            max_attempts=policy.max_attempts,
            voice_id=self.voice_id,
        )

        start_time = time.time()
        audio = policy.call(
            self._request_audio, text, api_key, policy.timeout, description="speech synthesis"
        )

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(audio)

        narration = NarrationAudio(path=output_path, size_bytes=len(audio), voice_id=self.voice_id)
        self.logger.info(
            "Speech synthesis completed",
            output=str(output_path),
            size_kb=round(len(audio) / 1024),
            processing_time=round(time.time() - start_time, 2),
        )
        return narration

    def _request_audio(self, text: str, api_key: str, timeout: float) -> bytes:
        body = {
            "text": text,
            "model_id": self.model_id,
            "voice_settings": self.voice_settings(),
        }
        headers = {
            "Accept": "audio/mpeg",
            "Content-Type": "application/json",
            "xi-api-key": api_key,
        }
        try:
            response = self.session.post(
                f"{self.base_url}/text-to-speech/{self.voice_id}",
                json=body,
                headers=headers,
                timeout=timeout,
            )
        except requests.RequestException as e:
            raise SpeechSynthesisError(f"Failed to generate audio: {e}", kind="network") from e

        if response.status_code != 200:
            raise error_from_response(response)
        if not response.content:
            raise SpeechSynthesisError("ElevenLabs returned an empty audio body", kind="api", status_code=200)
        return response.content
