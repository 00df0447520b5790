from typing import List, Optional

import httpx

from slabot.logging_config import get_logger
from slabot.services.errors import UpstreamError
from slabot.services.llm.base import LLMProvider, LLMResponse

logger = get_logger("llm.openai")


class OpenAIProvider(LLMProvider):
    """OpenAI-compatible API provider (Groq by default)."""

    def __init__(
        self,
        api_key: Optional[str],
        default_model: str = "llama-3.3-70b-versatile",
        base_url: str = "https://api.groq.com/openai/v1",
        transcription_model: str = "whisper-large-v3",
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.default_model = default_model
        self.transcription_model = transcription_model
        self.timeout_seconds = timeout_seconds
        self.chat_url = f"{base_url.rstrip('/')}/chat/completions"
        self.audio_url = f"{base_url.rstrip('/')}/audio/transcriptions"
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport)

    async def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 500,
    ) -> LLMResponse:
        """Generate response from the chat completion endpoint."""
        if not self.api_key:
            raise UpstreamError("completion", "API key not configured")

        model = model or self.default_model
        payload = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        logger.debug(f"Completion request: model={model}, messages_count={len(messages)}")

        try:
            async with self._client() as client:
                response = await client.post(
                    self.chat_url,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
        except httpx.TimeoutException as e:
            raise UpstreamError("completion", f"timeout: {e}") from e
        except httpx.HTTPError as e:
            raise UpstreamError("completion", str(e)) from e

        logger.debug(f"Completion response status: {response.status_code}")

        if response.status_code != 200:
            logger.error(f"Completion error: {response.text[:500]}")
            raise UpstreamError("completion", response.text[:500], status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError("completion", "invalid JSON response") from e

        if not isinstance(data, dict):
            raise UpstreamError("completion", "malformed response")

        content = ""
        choices = data.get("choices") or []
        if choices:
            choice = choices[0] if isinstance(choices, list) else None
            message = choice.get("message") if isinstance(choice, dict) else None
            if not isinstance(message, dict):
                raise UpstreamError("completion", "malformed response")
            content = message.get("content") or ""
            if not isinstance(content, str):
                raise UpstreamError("completion", "malformed response")
        logger.debug(f"Completion content: {content[:100] if content else 'EMPTY'}")

        return LLMResponse(
            content=content,
            model=data.get("model", model),
            usage=data.get("usage"),
        )

    async def transcribe_audio(
        self,
        *,
        audio_bytes: bytes,
        filename: str,
        mime_type: Optional[str] = None,
        model: Optional[str] = None,
        language: Optional[str] = None,
    ) -> str:
        """Transcribe audio with the Whisper-compatible endpoint."""
        if not self.api_key:
            raise UpstreamError("transcription", "API key not configured")
        if not audio_bytes:
            raise UpstreamError("transcription", "audio is empty")

        files = {"file": (filename or "audio", audio_bytes, mime_type or "application/octet-stream")}
        data = {"model": model or self.transcription_model, "response_format": "json"}
        if language:
            data["language"] = language

        try:
            async with self._client() as client:
                response = await client.post(
                    self.audio_url,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    files=files,
                    data=data,
                )
        except httpx.TimeoutException as e:
            raise UpstreamError("transcription", f"timeout: {e}") from e
        except httpx.HTTPError as e:
            raise UpstreamError("transcription", str(e)) from e

        logger.debug(f"Transcription status: {response.status_code}")
        if response.status_code != 200:
            logger.error(f"Transcription error: {response.text[:500]}")
            raise UpstreamError("transcription", response.text[:500], status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamError("transcription", "invalid JSON response") from e

        text = payload.get("text") if isinstance(payload, dict) else None
        transcript = text.strip() if isinstance(text, str) else ""
        if not transcript:
            logger.warning("Transcription returned empty text")
        return transcript
