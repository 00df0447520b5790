import asyncio
from unittest.mock import patch

import httpx
import pytest
from conftest import upstream_error

from slabot.models import ConversationLog
from slabot.schemas.line import AudioMessageEvent, FollowEvent, TextMessageEvent, UnknownEvent
from slabot.services.command_service import (
    MSG_AI_ERROR,
    MSG_AUDIO_FAILED,
    MSG_NOTHING_TO_LISTEN,
    MSG_RESET,
)
from slabot.services.container import build_services
from slabot.services.event_service import EventContext, handle_event, process_events
from slabot.services.llm import OpenAIProvider


@pytest.fixture
def ctx(services, bot_config, db_session):
    return EventContext(
        bot=bot_config,
        services=services,
        db=db_session,
        line=services.line_for(bot_config),
        public_base_url="https://bots.example.com",
    )


def text_event(text: str, user_id: str = "U1", reply_token: str = "rt-1") -> TextMessageEvent:
    return TextMessageEvent(reply_token=reply_token, user_id=user_id, text=text)


def run(ctx, *events):
    async def main():
        results = await process_events(ctx, list(events))
        pending = ctx.services.background.pending
        if pending:
            await asyncio.gather(*pending)
        return results

    return asyncio.run(main())


def replied_texts(line_recorder) -> list[str]:
    return [m["text"] for body in line_recorder.replies for m in body["messages"] if m["type"] == "text"]


class TestTextMessage:
    def test_reply_comes_from_completion(self, ctx, fake_llm, line_recorder):
        fake_llm.replies = ["Hi! What strategy shall we practice?"]

        results = run(ctx, text_event("Hello"))

        assert results[0].ok
        assert replied_texts(line_recorder) == ["Hi! What strategy shall we practice?"]
        assert fake_llm.calls[0]["messages"][0]["content"] == ctx.bot.system_prompt

    def test_long_reply_is_split(self, ctx, fake_llm, line_recorder):
        fake_llm.replies = ["x" * 9001]

        run(ctx, text_event("Explain everything"))

        assert [len(text) for text in replied_texts(line_recorder)] == [4500, 4500, 1]

    def test_completion_failure_replies_apology(self, ctx, fake_llm, line_recorder):
        fake_llm.replies = [upstream_error()]

        results = run(ctx, text_event("Hello"))

        assert not results[0].ok
        assert results[0].error_code == "completion"
        assert replied_texts(line_recorder) == [MSG_AI_ERROR]

    def test_turn_is_logged(self, ctx, db_session):
        run(ctx, text_event("Hello"))

        row = db_session.query(ConversationLog).one()
        assert (row.user_input, row.bot_output, row.message_type) == ("Hello", "reply 1", "text")

    def test_logging_can_be_disabled(self, ctx, db_session):
        ctx.services.settings.conversation_log_enabled = False

        run(ctx, text_event("Hello"))

        assert db_session.query(ConversationLog).count() == 0


class TestAutoSpeech:
    def test_audio_keyword_pushes_voice_version(self, ctx, fake_speech, line_recorder):
        run(ctx, text_event("Can I hear the pronunciation?"))

        assert fake_speech.calls == ["reply 1"]
        assert len(line_recorder.replies) == 1
        message = line_recorder.pushes[0]["messages"][0]
        assert message["type"] == "audio"
        assert message["originalContentUrl"].startswith("https://bots.example.com/audio/audio_")
        assert message["originalContentUrl"].endswith(".mp3")
        assert message["duration"] == len("reply 1") * 80
        assert len(ctx.services.audio_store) == 1

    def test_no_keyword_no_speech(self, ctx, fake_speech, line_recorder):
        run(ctx, text_event("What is scaffolding?"))

        assert fake_speech.calls == []
        assert line_recorder.pushes == []

    def test_speech_failure_keeps_text_reply(self, ctx, fake_speech, line_recorder):
        fake_speech.error = upstream_error("tts")

        results = run(ctx, text_event("please speak"))

        assert results[0].ok
        assert replied_texts(line_recorder) == ["reply 1"]
        assert line_recorder.pushes == []

    def test_without_speech_configured(self, ctx, line_recorder):
        ctx.services.speech = None

        run(ctx, text_event("please speak"))

        assert line_recorder.pushes == []


class TestCommands:
    def test_reset_clears_history_without_completion(self, ctx, fake_llm, line_recorder):
        run(ctx, text_event("Hello"), text_event("Again"))
        calls_before = len(fake_llm.calls)

        run(ctx, text_event("/RESET"))

        assert len(fake_llm.calls) == calls_before
        assert len(ctx.services.sessions.get(ctx.bot.bot_id, "U1")) == 0
        assert replied_texts(line_recorder)[-1] == MSG_RESET

    def test_reset_on_empty_session(self, ctx, line_recorder):
        run(ctx, text_event("/reset"))

        assert replied_texts(line_recorder) == [MSG_RESET]

    def test_help(self, ctx, fake_llm, line_recorder):
        run(ctx, text_event("/help"))

        assert fake_llm.calls == []
        assert replied_texts(line_recorder)[0].startswith("Welcome to John Doe's Speaking Strategy Bot!")

    def test_listen_without_previous_reply(self, ctx, fake_speech, line_recorder):
        run(ctx, text_event("/listen"))

        assert fake_speech.calls == []
        assert replied_texts(line_recorder) == [MSG_NOTHING_TO_LISTEN]

    def test_listen_replays_last_reply(self, ctx, fake_speech, line_recorder):
        run(ctx, text_event("Hello"))

        run(ctx, text_event("/listen", reply_token="rt-2"))

        assert fake_speech.calls == ["reply 1"]
        last = line_recorder.replies[-1]
        assert last["replyToken"] == "rt-2"
        assert last["messages"][0]["type"] == "audio"
        audio_id = last["messages"][0]["originalContentUrl"].rsplit("/", 1)[-1]
        assert ctx.services.audio_store.fetch(audio_id) == fake_speech.audio

    def test_listen_tts_failure(self, ctx, fake_speech, line_recorder):
        run(ctx, text_event("Hello"))
        fake_speech.error = upstream_error("tts")

        results = run(ctx, text_event("/listen"))

        assert results[0].error_code == "tts"
        assert replied_texts(line_recorder)[-1] == MSG_AUDIO_FAILED

    def test_commands_are_not_added_to_history(self, ctx):
        run(ctx, text_event("/help"))

        assert len(ctx.services.sessions.get(ctx.bot.bot_id, "U1")) == 0


class TestOtherEvents:
    def test_follow_sends_welcome(self, ctx, line_recorder):
        run(ctx, FollowEvent(reply_token="rt-f", user_id="U1"))

        assert replied_texts(line_recorder)[0].startswith("Welcome! I'm John Doe's Speaking Strategy Coach.")

    def test_unknown_event_is_ignored(self, ctx, fake_llm, line_recorder):
        results = run(ctx, UnknownEvent(event_type="message", message_type="image"))

        assert results[0].ok
        assert fake_llm.calls == []
        assert line_recorder.requests == []

    def test_voice_turn_is_logged_as_audio(self, ctx, db_session):
        run(ctx, AudioMessageEvent(reply_token="rt-1", user_id="U1", message_id="m-1"))

        row = db_session.query(ConversationLog).one()
        assert row.message_type == "audio"
        assert row.user_input == "[Voice Message] I like apples"


class TestProcessEvents:
    def test_unexpected_completion_error_still_gets_apology(self, ctx, fake_llm, line_recorder):
        fake_llm.replies = [RuntimeError("unexpected"), "second reply"]

        results = run(ctx, text_event("first", user_id="U1"), text_event("second", user_id="U2"))

        assert [result.ok for result in results] == [False, True]
        assert results[0].error_code == "internal"
        assert replied_texts(line_recorder) == [MSG_AI_ERROR, "second reply"]

    def test_failing_handler_does_not_stop_the_rest(self, ctx, line_recorder):
        with patch("slabot.services.event_service.handle_follow", side_effect=RuntimeError("boom")):
            results = run(ctx, FollowEvent(reply_token="rt-f", user_id="U1"), text_event("Hello"))

        assert [result.ok for result in results] == [False, True]
        assert results[0].error_code == "internal"
        assert replied_texts(line_recorder) == ["reply 1"]

    def test_events_are_handled_in_order(self, ctx, line_recorder):
        run(ctx, text_event("/help", reply_token="a"), text_event("Hello", reply_token="b"))

        assert [body["replyToken"] for body in line_recorder.replies] == ["a", "b"]

    def test_handle_event_rejects_foreign_objects(self, ctx):
        with pytest.raises(TypeError):
            asyncio.run(handle_event(ctx, object()))


class TestMalformedCompletion:
    @pytest.mark.parametrize("body", [[], {"choices": [{"message": None}]}, {"choices": ["oops"]}])
    def test_user_gets_apology(self, test_settings, fake_speech, line_recorder, bot_config, db_session, body):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=body)

        llm = OpenAIProvider(api_key="test-key", transport=httpx.MockTransport(handler))
        services = build_services(
            test_settings,
            llm=llm,
            speech=fake_speech,
            line_transport=httpx.MockTransport(line_recorder),
        )
        ctx = EventContext(
            bot=bot_config,
            services=services,
            db=db_session,
            line=services.line_for(bot_config),
            public_base_url="https://bots.example.com",
        )

        results = run(ctx, text_event("Hello"))

        assert results[0].error_code == "completion"
        assert replied_texts(line_recorder) == [MSG_AI_ERROR]
