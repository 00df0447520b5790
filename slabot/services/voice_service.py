"""Voice messages: download -> transcribe -> conversation turn -> reply."""

from slabot.logging_config import get_logger
from slabot.services.command_service import MSG_VOICE_ERROR
from slabot.services.conversation_service import REPLY_MAX_CHARS, ConversationService, split_message
from slabot.services.errors import UpstreamError
from slabot.services.line_service import LineService, text_message
from slabot.services.llm import LLMProvider
from slabot.services.registry_service import BotConfig
from slabot.services.result import Result

logger = get_logger("voice_service")

VOICE_FILENAME = "audio.m4a"
VOICE_MIME_TYPE = "audio/m4a"


def format_voice_reply(transcript: str, feedback: str) -> str:
    return f'I heard you say: "{transcript}"\n\n{feedback}'


class VoiceService:
    def __init__(
        self,
        llm: LLMProvider,
        conversation: ConversationService,
        *,
        transcription_model: str = "whisper-large-v3",
        language: str = "en",
        reply_max_chars: int = REPLY_MAX_CHARS,
    ):
        self.llm = llm
        self.conversation = conversation
        self.transcription_model = transcription_model
        self.language = language
        self.reply_max_chars = reply_max_chars

    async def transcribe(self, line: LineService, message_id: str) -> str:
        audio_bytes = await line.get_message_content(message_id)
        logger.info(f"Audio downloaded: {len(audio_bytes)} bytes")
        transcript = await self.llm.transcribe_audio(
            audio_bytes=audio_bytes,
            filename=VOICE_FILENAME,
            mime_type=VOICE_MIME_TYPE,
            model=self.transcription_model,
            language=self.language,
        )
        if not transcript or not transcript.strip():
            raise UpstreamError("transcription", "empty transcript")
        return transcript.strip()

    async def handle_voice(
        self,
        bot: BotConfig,
        user_id: str,
        message_id: str,
        reply_token: str,
        line: LineService,
    ) -> Result[tuple[str, str]]:
        """Answer a voice message. On failure the user gets a push notice.

        The reply token may already be spent or expired by the time a slow
        transcription fails, so the failure notice goes through push.
        """
        try:
            transcript = await self.transcribe(line, message_id)
            logger.info(f"Transcribed: {transcript[:100]}")
            feedback = await self.conversation.respond(bot, user_id, transcript)
        except Exception as e:
            result = Result.from_exception(e)
            logger.error(
                f"Voice processing failed: {e}",
                extra={"context": {"bot_id": bot.bot_id, "user_id": user_id, "service": result.error_code}},
                exc_info=not isinstance(e, UpstreamError),
            )
            if not await line.push_text(user_id, MSG_VOICE_ERROR):
                logger.error("Voice failure notice could not be pushed", extra={"context": {"user_id": user_id}})
            return result

        chunks = split_message(format_voice_reply(transcript, feedback), self.reply_max_chars)
        messages = [text_message(chunk) for chunk in chunks]
        if not await line.deliver(reply_token, user_id, messages):
            logger.warning("Voice feedback reply failed", extra={"context": {"bot_id": bot.bot_id, "user_id": user_id}})
        return Result.success((transcript, feedback))
