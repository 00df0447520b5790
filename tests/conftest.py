import json
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import List, Optional

import httpx
import pytest

from slabot.config import Settings
from slabot.database import Base, SessionLocal, engine
from slabot.services.container import build_services
from slabot.services.errors import UpstreamError
from slabot.services.llm import LLMProvider, LLMResponse
from slabot.services.registry_service import BotConfig


class FakeLLM(LLMProvider):
    """Records completion calls and answers from a script."""

    def __init__(self, replies: Optional[list] = None, transcript: str = "I like apples"):
        self.replies = list(replies or [])
        self.transcript = transcript
        self.calls: list[dict] = []
        self.transcribe_calls: list[dict] = []
        self.counter = 0

    async def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 500,
    ) -> LLMResponse:
        self.calls.append(
            {
                "messages": [dict(message) for message in messages],
                "model": model,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        self.counter += 1
        reply = self.replies.pop(0) if self.replies else f"reply {self.counter}"
        if isinstance(reply, Exception):
            raise reply
        return LLMResponse(content=reply, model=model or "fake")

    async def transcribe_audio(
        self,
        *,
        audio_bytes: bytes,
        filename: str,
        mime_type: Optional[str] = None,
        model: Optional[str] = None,
        language: Optional[str] = None,
    ) -> str:
        self.transcribe_calls.append(
            {"audio_bytes": audio_bytes, "filename": filename, "model": model, "language": language}
        )
        if isinstance(self.transcript, Exception):
            raise self.transcript
        return self.transcript


class FakeSpeech:
    def __init__(self, audio: bytes = b"ID3-fake-mp3", error: Optional[Exception] = None):
        self.audio = audio
        self.error = error
        self.calls: list[str] = []

    async def synthesize(self, text: str, language_code: Optional[str] = None) -> bytes:
        self.calls.append(text)
        if self.error:
            raise self.error
        return self.audio


class LineRecorder:
    """httpx.MockTransport handler standing in for the LINE API."""

    def __init__(self, audio: bytes = b"voice-bytes"):
        self.audio = audio
        self.requests: list[tuple[str, str, Optional[dict]]] = []
        self.fail_paths: set[str] = set()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        body = json.loads(request.content) if request.method == "POST" and request.content else None
        self.requests.append((request.method, path, body))
        if any(path.endswith(fail) for fail in self.fail_paths):
            return httpx.Response(500, json={"message": "boom"})
        if path.endswith("/content"):
            return httpx.Response(200, content=self.audio)
        return httpx.Response(200, json={})

    def bodies(self, suffix: str) -> list[dict]:
        return [body for method, path, body in self.requests if path.endswith(suffix)]

    @property
    def replies(self) -> list[dict]:
        return self.bodies("/message/reply")

    @property
    def pushes(self) -> list[dict]:
        return self.bodies("/message/push")


@pytest.fixture
def db_session():
    """Real SQLAlchemy session on an in-memory SQLite database."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def fake_speech():
    return FakeSpeech()


@pytest.fixture
def line_recorder():
    return LineRecorder()


@pytest.fixture
def test_settings():
    return Settings(
        database_url="sqlite://",
        public_base_url="https://bots.example.com",
        admin_token="admin-secret",
        groq_api_key="test-key",
    )


@pytest.fixture
def services(test_settings, fake_llm, fake_speech, line_recorder):
    return build_services(
        test_settings,
        llm=fake_llm,
        speech=fake_speech,
        line_transport=httpx.MockTransport(line_recorder),
    )


@pytest.fixture
def bot_config():
    return BotConfig(
        bot_id="john_doe",
        student_name="John Doe",
        skill_type="Speaking",
        channel_access_token="access-token",
        channel_secret="secret123",
        system_prompt="You are a speaking coach.",
    )


def upstream_error(service: str = "completion") -> UpstreamError:
    return UpstreamError(service, "upstream exploded", status_code=503)
