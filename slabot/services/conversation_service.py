"""Conversation turns: system prompt + bounded history -> chat completion."""

from slabot.logging_config import get_logger
from slabot.services.errors import UpstreamError
from slabot.services.llm import LLMProvider
from slabot.services.registry_service import BotConfig
from slabot.services.session_service import SessionStore

logger = get_logger("conversation_service")

DEFAULT_MODEL = "llama-3.3-70b-versatile"
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 500
# LINE rejects text messages over 5000 chars
REPLY_MAX_CHARS = 4500

AUDIO_KEYWORDS = (
    "語音",
    "聽",
    "發音",
    "念",
    "唸",
    "讀給我聽",
    "說給我聽",
    "audio",
    "listen",
    "voice",
    "speak",
    "pronunciation",
    "hear",
    "sound",
    "say it",
    "read it",
    "listening practice",
)


def split_message(text: str, limit: int = REPLY_MAX_CHARS) -> list[str]:
    """Split text into ordered chunks of at most `limit` characters."""
    if limit <= 0:
        raise ValueError("limit must be positive")
    return [text[start : start + limit] for start in range(0, len(text), limit)]


def wants_audio(user_text: str) -> bool:
    normalized = (user_text or "").lower()
    return any(keyword in normalized for keyword in AUDIO_KEYWORDS)


class ConversationService:
    def __init__(
        self,
        llm: LLMProvider,
        sessions: SessionStore,
        *,
        model: str = DEFAULT_MODEL,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ):
        self.llm = llm
        self.sessions = sessions
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    def build_messages(self, bot: BotConfig, user_id: str) -> list[dict]:
        session = self.sessions.get(bot.bot_id, user_id)
        return [{"role": "system", "content": bot.system_prompt}, *session.to_messages()]

    async def respond(self, bot: BotConfig, user_id: str, user_text: str) -> str:
        """Run one turn for the user and return the assistant reply.

        Raises UpstreamError if the completion fails; the session then keeps
        the user turn but gets no assistant turn.
        """
        async with self.sessions.lock(bot.bot_id, user_id):
            session = self.sessions.get(bot.bot_id, user_id)
            session.append("user", user_text)
            messages = self.build_messages(bot, user_id)

            response = await self.llm.generate(
                messages,
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
            reply = response.content or ""
            if not reply.strip():
                raise UpstreamError("completion", "empty completion")

            session.append("assistant", reply)
            self.sessions.set_last_response(bot.bot_id, user_id, reply)

        logger.info(
            "Turn completed",
            extra={
                "context": {
                    "bot_id": bot.bot_id,
                    "user_id": user_id,
                    "history_len": len(session),
                    "usage": response.usage,
                }
            },
        )
        return reply
