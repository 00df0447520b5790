from typing import Optional

import httpx

from slabot.logging_config import get_logger
from slabot.services.errors import UpstreamError

logger = get_logger("line_service")

# LINE accepts at most five message objects per reply or push call
MAX_MESSAGES_PER_CALL = 5
MAX_AUDIO_DURATION_MS = 60000
AUDIO_MS_PER_CHAR = 80


def text_message(text: str) -> dict:
    return {"type": "text", "text": text}


def audio_message(url: str, duration_ms: int) -> dict:
    return {"type": "audio", "originalContentUrl": url, "duration": duration_ms}


def estimate_audio_duration(text: str) -> int:
    """Rough spoken duration in milliseconds for the audio message header."""
    return min(len(text) * AUDIO_MS_PER_CHAR, MAX_AUDIO_DURATION_MS)


class LineService:
    """Service for talking to the LINE Messaging API on behalf of one bot."""

    API_BASE_URL = "https://api.line.me/v2/bot"
    DATA_API_BASE_URL = "https://api-data.line.me/v2/bot"

    def __init__(
        self,
        channel_access_token: str,
        *,
        api_base_url: Optional[str] = None,
        data_api_base_url: Optional[str] = None,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.channel_access_token = channel_access_token
        self.api_base_url = (api_base_url or self.API_BASE_URL).rstrip("/")
        self.data_api_base_url = (data_api_base_url or self.DATA_API_BASE_URL).rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.channel_access_token}",
        }

    async def _post(self, path: str, data: dict) -> bool:
        url = f"{self.api_base_url}/{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.post(url, json=data, headers=self._headers())
        except httpx.HTTPError as e:
            logger.error(f"LINE API error: {path}: {e}")
            return False

        if response.status_code != 200:
            logger.error(f"LINE API error: {path}: {response.status_code} - {response.text[:200]}")
            return False
        return True

    async def reply_message(self, reply_token: str, messages: list[dict]) -> bool:
        """Reply using the event's one-shot reply token."""
        if not reply_token or not messages:
            logger.warning("reply_message: missing reply token or messages")
            return False
        return await self._post(
            "message/reply",
            {"replyToken": reply_token, "messages": messages[:MAX_MESSAGES_PER_CALL]},
        )

    async def reply_text(self, reply_token: str, text: str) -> bool:
        return await self.reply_message(reply_token, [text_message(text)])

    async def push_message(self, to: str, messages: list[dict]) -> bool:
        """Push messages to a user without a reply token, five per call."""
        if not to or not messages:
            logger.warning("push_message: missing recipient or messages")
            return False
        ok = True
        for start in range(0, len(messages), MAX_MESSAGES_PER_CALL):
            batch = messages[start : start + MAX_MESSAGES_PER_CALL]
            ok = await self._post("message/push", {"to": to, "messages": batch}) and ok
        return ok

    async def push_text(self, to: str, text: str) -> bool:
        return await self.push_message(to, [text_message(text)])

    async def get_message_content(self, message_id: str) -> bytes:
        """Download the binary content (voice, image...) of a user message."""
        url = f"{self.data_api_base_url}/message/{message_id}/content"
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.get(
                    url,
                    headers={"Authorization": f"Bearer {self.channel_access_token}"},
                )
        except httpx.TimeoutException as e:
            raise UpstreamError("line_content", f"timeout: {e}") from e
        except httpx.HTTPError as e:
            raise UpstreamError("line_content", str(e)) from e

        if response.status_code != 200:
            raise UpstreamError("line_content", response.text[:200], status_code=response.status_code)
        return response.content

    async def deliver(self, reply_token: str, to: str, messages: list[dict]) -> bool:
        """Reply with the first five messages and push whatever does not fit."""
        ok = await self.reply_message(reply_token, messages[:MAX_MESSAGES_PER_CALL])
        if ok and len(messages) > MAX_MESSAGES_PER_CALL:
            ok = await self.push_message(to, messages[MAX_MESSAGES_PER_CALL:])
        return ok
