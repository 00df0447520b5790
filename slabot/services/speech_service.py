import base64
import binascii
from typing import Optional

import httpx

from slabot.logging_config import get_logger
from slabot.services.errors import UpstreamError

logger = get_logger("speech_service")

GOOGLE_TTS_URL = "https://texttospeech.googleapis.com/v1/text:synthesize"


class SpeechService:
    """Text-to-speech through Google Cloud TTS, returning MP3 bytes."""

    def __init__(
        self,
        api_key: str,
        *,
        voice_name: str = "en-US-Standard-C",
        language_code: str = "en-US",
        max_chars: int = 5000,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.voice_name = voice_name
        self.language_code = language_code
        self.max_chars = max_chars
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def build_payload(self, text: str, language_code: Optional[str] = None) -> dict:
        return {
            "input": {"text": text[: self.max_chars]},
            "voice": {
                "languageCode": language_code or self.language_code,
                "name": self.voice_name,
                "ssmlGender": "FEMALE",
            },
            "audioConfig": {
                "audioEncoding": "MP3",
                "effectsProfileId": ["small-bluetooth-speaker-class-device"],
                "speakingRate": 1.0,
                "pitch": 0,
                "volumeGainDb": 6.0,
            },
        }

    async def synthesize(self, text: str, language_code: Optional[str] = None) -> bytes:
        if not text or not text.strip():
            raise UpstreamError("tts", "nothing to synthesize")

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.post(
                    GOOGLE_TTS_URL,
                    params={"key": self.api_key},
                    json=self.build_payload(text, language_code),
                )
        except httpx.TimeoutException as e:
            raise UpstreamError("tts", f"timeout: {e}") from e
        except httpx.HTTPError as e:
            raise UpstreamError("tts", str(e)) from e

        if response.status_code != 200:
            logger.error(f"Google TTS error: {response.status_code} - {response.text[:200]}")
            raise UpstreamError("tts", response.text[:200], status_code=response.status_code)

        try:
            audio_content = response.json().get("audioContent")
        except ValueError as e:
            raise UpstreamError("tts", "invalid JSON response") from e
        if not audio_content:
            raise UpstreamError("tts", "empty audioContent")

        try:
            return base64.b64decode(audio_content)
        except (binascii.Error, ValueError) as e:
            raise UpstreamError("tts", "audioContent is not base64") from e
