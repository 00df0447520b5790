from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./slabot.db"
    debug: bool = False
    log_level: str = "INFO"
    cors_allow_origins: str = "*"

    # Chat completion + transcription (OpenAI-compatible, Groq by default)
    groq_api_key: Optional[str] = None
    llm_base_url: str = "https://api.groq.com/openai/v1"
    llm_model: str = "llama-3.3-70b-versatile"
    llm_temperature: float = 0.7
    llm_max_tokens: int = 500
    transcription_model: str = "whisper-large-v3"
    transcription_language: str = "en"

    # Google Cloud Text-to-Speech
    google_tts_api_key: Optional[str] = None
    tts_language_code: str = "en-US"
    tts_voice_name: str = "en-US-Standard-C"
    tts_max_chars: int = 5000

    # LINE Messaging API
    line_api_base_url: str = "https://api.line.me/v2/bot"
    line_data_api_base_url: str = "https://api-data.line.me/v2/bot"

    public_base_url: Optional[str] = None
    admin_token: Optional[str] = None
    upstream_timeout_seconds: float = 30.0
    history_max_turns: int = 20
    reply_max_chars: int = 4500
    audio_ttl_seconds: int = 300
    conversation_log_enabled: bool = True

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
