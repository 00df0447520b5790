import asyncio

import pytest
from conftest import FakeLLM, upstream_error

from slabot.services.conversation_service import ConversationService, split_message, wants_audio
from slabot.services.errors import UpstreamError
from slabot.services.session_service import SessionStore


class TestSplitMessage:
    def test_short_text_is_one_chunk(self):
        assert split_message("hello") == ["hello"]

    def test_exact_limit_is_one_chunk(self):
        assert split_message("a" * 4500) == ["a" * 4500]

    def test_long_text_is_split_in_order(self):
        text = "".join(str(i % 10) for i in range(9001))

        chunks = split_message(text)

        assert [len(chunk) for chunk in chunks] == [4500, 4500, 1]
        assert "".join(chunks) == text

    def test_custom_limit(self):
        assert split_message("abcdefg", limit=3) == ["abc", "def", "g"]

    def test_empty_text(self):
        assert split_message("") == []

    def test_rejects_non_positive_limit(self):
        with pytest.raises(ValueError):
            split_message("abc", limit=0)


class TestWantsAudio:
    @pytest.mark.parametrize(
        "text",
        ["Can you SPEAK this?", "I want listening practice", "請用語音", "How is the pronunciation?"],
    )
    def test_keywords_match(self, text):
        assert wants_audio(text) is True

    @pytest.mark.parametrize("text", ["What is scaffolding?", "", None])
    def test_other_text(self, text):
        assert wants_audio(text) is False


class TestConversationService:
    def _service(self, llm, max_turns=20):
        return ConversationService(llm, SessionStore(max_turns=max_turns), model="test-model")

    def test_first_turn_sends_system_prompt_and_user_text(self, bot_config):
        llm = FakeLLM(["Hi there!"])
        service = self._service(llm)

        reply = asyncio.run(service.respond(bot_config, "U1", "Hello"))

        assert reply == "Hi there!"
        assert llm.calls[0]["messages"] == [
            {"role": "system", "content": "You are a speaking coach."},
            {"role": "user", "content": "Hello"},
        ]
        assert llm.calls[0]["model"] == "test-model"
        assert llm.calls[0]["temperature"] == 0.7
        assert llm.calls[0]["max_tokens"] == 500

    def test_history_is_carried_between_turns(self, bot_config):
        llm = FakeLLM(["one", "two"])
        service = self._service(llm)

        asyncio.run(service.respond(bot_config, "U1", "first"))
        asyncio.run(service.respond(bot_config, "U1", "second"))

        assert llm.calls[1]["messages"][1:] == [
            {"role": "user", "content": "first"},
            {"role": "assistant", "content": "one"},
            {"role": "user", "content": "second"},
        ]

    @pytest.mark.parametrize("turns", [1, 5, 10, 11, 15])
    def test_history_is_capped(self, bot_config, turns):
        service = self._service(FakeLLM())

        for i in range(turns):
            asyncio.run(service.respond(bot_config, "U1", f"message {i}"))

        session = service.sessions.get(bot_config.bot_id, "U1")
        assert len(session) == min(2 * turns, 20)

    def test_system_prompt_is_not_counted_in_history(self, bot_config):
        llm = FakeLLM()
        service = self._service(llm)

        for i in range(12):
            asyncio.run(service.respond(bot_config, "U1", f"message {i}"))

        messages = llm.calls[-1]["messages"]
        assert messages[0] == {"role": "system", "content": bot_config.system_prompt}
        assert len(messages) == 21

    def test_last_response_is_recorded(self, bot_config):
        service = self._service(FakeLLM(["Great answer"]))

        asyncio.run(service.respond(bot_config, "U1", "Hello"))

        assert service.sessions.get_last_response(bot_config.bot_id, "U1") == "Great answer"

    def test_failure_keeps_user_turn_only(self, bot_config):
        service = self._service(FakeLLM([upstream_error()]))

        with pytest.raises(UpstreamError):
            asyncio.run(service.respond(bot_config, "U1", "Hello"))

        messages = service.sessions.get(bot_config.bot_id, "U1").to_messages()
        assert messages == [{"role": "user", "content": "Hello"}]
        assert service.sessions.get_last_response(bot_config.bot_id, "U1") is None

    def test_empty_completion_is_an_upstream_failure(self, bot_config):
        service = self._service(FakeLLM(["   "]))

        with pytest.raises(UpstreamError) as exc_info:
            asyncio.run(service.respond(bot_config, "U1", "Hello"))

        assert exc_info.value.service == "completion"
        assert len(service.sessions.get(bot_config.bot_id, "U1")) == 1

    def test_users_have_separate_histories(self, bot_config):
        llm = FakeLLM()
        service = self._service(llm)

        asyncio.run(service.respond(bot_config, "U1", "from one"))
        asyncio.run(service.respond(bot_config, "U2", "from two"))

        assert llm.calls[1]["messages"][1:] == [{"role": "user", "content": "from two"}]

    def test_concurrent_turns_for_same_user_do_not_interleave(self, bot_config):
        class SlowLLM(FakeLLM):
            async def generate(self, messages, model=None, temperature=0.7, max_tokens=500):
                await asyncio.sleep(0.01)
                return await super().generate(messages, model, temperature, max_tokens)

        llm = SlowLLM()
        service = self._service(llm)

        async def main():
            await asyncio.gather(
                service.respond(bot_config, "U1", "a"),
                service.respond(bot_config, "U1", "b"),
            )

        asyncio.run(main())

        roles = [m["role"] for m in service.sessions.get(bot_config.bot_id, "U1").to_messages()]
        assert roles == ["user", "assistant", "user", "assistant"]
        # the second call saw the whole first turn
        assert len(llm.calls[1]["messages"]) == 4
