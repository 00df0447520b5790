from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import Request

from slabot.config import Settings
from slabot.logging_config import get_logger
from slabot.services.audio_store import AudioStore
from slabot.services.background import BackgroundTasks
from slabot.services.conversation_service import ConversationService
from slabot.services.line_service import LineService
from slabot.services.llm import LLMProvider, OpenAIProvider
from slabot.services.registry_service import BotConfig
from slabot.services.session_service import SessionStore
from slabot.services.speech_service import SpeechService
from slabot.services.voice_service import VoiceService

logger = get_logger("services")


@dataclass
class Services:
    """Process-wide state and upstream clients shared by every request."""

    settings: Settings
    sessions: SessionStore
    audio_store: AudioStore
    llm: LLMProvider
    conversation: ConversationService
    voice: VoiceService
    speech: Optional[SpeechService]
    background: BackgroundTasks
    line_transport: Optional[httpx.AsyncBaseTransport] = None

    def line_for(self, bot: BotConfig) -> LineService:
        return LineService(
            bot.channel_access_token,
            api_base_url=self.settings.line_api_base_url,
            data_api_base_url=self.settings.line_data_api_base_url,
            timeout_seconds=self.settings.upstream_timeout_seconds,
            transport=self.line_transport,
        )


def build_services(
    settings: Settings,
    *,
    llm: Optional[LLMProvider] = None,
    speech: Optional[SpeechService] = None,
    line_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Services:
    sessions = SessionStore(max_turns=settings.history_max_turns)
    if llm is None:
        if not settings.groq_api_key:
            logger.warning("GROQ_API_KEY not set; completions and transcriptions will fail")
        llm = OpenAIProvider(
            api_key=settings.groq_api_key,
            default_model=settings.llm_model,
            base_url=settings.llm_base_url,
            transcription_model=settings.transcription_model,
            timeout_seconds=settings.upstream_timeout_seconds,
        )
    if speech is None and settings.google_tts_api_key:
        speech = SpeechService(
            settings.google_tts_api_key,
            voice_name=settings.tts_voice_name,
            language_code=settings.tts_language_code,
            max_chars=settings.tts_max_chars,
            timeout_seconds=settings.upstream_timeout_seconds,
        )

    conversation = ConversationService(
        llm,
        sessions,
        model=settings.llm_model,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
    )
    voice = VoiceService(
        llm,
        conversation,
        transcription_model=settings.transcription_model,
        language=settings.transcription_language,
        reply_max_chars=settings.reply_max_chars,
    )
    return Services(
        settings=settings,
        sessions=sessions,
        audio_store=AudioStore(ttl_seconds=settings.audio_ttl_seconds),
        llm=llm,
        conversation=conversation,
        voice=voice,
        speech=speech,
        background=BackgroundTasks(),
        line_transport=line_transport,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
