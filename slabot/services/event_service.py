"""Processing of one webhook delivery, event by event."""

from dataclasses import dataclass

from sqlalchemy.orm import Session

from slabot.logging_config import bind, get_logger
from slabot.schemas.line import AudioMessageEvent, FollowEvent, LineEvent, TextMessageEvent, UnknownEvent
from slabot.services.command_service import (
    MSG_AI_ERROR,
    MSG_AUDIO_FAILED,
    MSG_NOTHING_TO_LISTEN,
    MSG_RESET,
    Command,
    format_help_message,
    format_welcome_message,
    parse_command,
)
from slabot.services.container import Services
from slabot.services.conversation_log_service import log_conversation
from slabot.services.conversation_service import split_message, wants_audio
from slabot.services.errors import UpstreamError
from slabot.services.line_service import LineService, audio_message, estimate_audio_duration, text_message
from slabot.services.registry_service import BotConfig
from slabot.services.result import Result

logger = get_logger("event_service")


@dataclass
class EventContext:
    """Everything a handler needs for one delivery of one bot."""

    bot: BotConfig
    services: Services
    db: Session
    line: LineService
    public_base_url: str

    def audio_url(self, audio_id: str) -> str:
        return f"{self.public_base_url.rstrip('/')}/audio/{audio_id}.mp3"


async def synthesize_audio_message(ctx: EventContext, text: str) -> dict:
    """Synthesize text, park the MP3 in the audio store and build the message."""
    speech = ctx.services.speech
    if speech is None:
        raise UpstreamError("tts", "GOOGLE_TTS_API_KEY not configured")
    audio = await speech.synthesize(text)
    audio_id = ctx.services.audio_store.store(audio)
    return audio_message(ctx.audio_url(audio_id), estimate_audio_duration(text))


async def push_speech(ctx: EventContext, user_id: str, text: str) -> None:
    """Follow-up voice version of a reply. Failures are only logged."""
    try:
        message = await synthesize_audio_message(ctx, text)
        if await ctx.line.push_message(user_id, [message]):
            logger.info("Auto audio sent", extra={"context": {"bot_id": ctx.bot.bot_id, "user_id": user_id}})
        else:
            logger.warning("Auto audio push failed", extra={"context": {"bot_id": ctx.bot.bot_id, "user_id": user_id}})
    except Exception as e:
        logger.error(f"Auto TTS error: {e}", extra={"context": {"bot_id": ctx.bot.bot_id, "user_id": user_id}})


async def handle_listen(ctx: EventContext, event: TextMessageEvent) -> Result[str]:
    last_response = ctx.services.sessions.get_last_response(ctx.bot.bot_id, event.user_id)
    if not last_response:
        await ctx.line.reply_text(event.reply_token, MSG_NOTHING_TO_LISTEN)
        return Result.success("listen_empty")

    try:
        message = await synthesize_audio_message(ctx, last_response)
    except UpstreamError as e:
        logger.error(f"TTS error: {e}", extra={"context": {"bot_id": ctx.bot.bot_id, "user_id": event.user_id}})
        await ctx.line.reply_text(event.reply_token, MSG_AUDIO_FAILED)
        return Result.from_exception(e)

    await ctx.line.reply_message(event.reply_token, [message])
    return Result.success("listen")


async def handle_command(ctx: EventContext, event: TextMessageEvent, command: Command) -> Result[str]:
    bot = ctx.bot
    if command is Command.RESET:
        async with ctx.services.sessions.lock(bot.bot_id, event.user_id):
            ctx.services.sessions.reset(bot.bot_id, event.user_id)
        await ctx.line.reply_text(event.reply_token, MSG_RESET)
        return Result.success("reset")

    if command is Command.HELP:
        await ctx.line.reply_text(event.reply_token, format_help_message(bot))
        return Result.success("help")

    return await handle_listen(ctx, event)


async def handle_text_message(ctx: EventContext, event: TextMessageEvent) -> Result[str]:
    command = parse_command(event.text)
    if command is not None:
        return await handle_command(ctx, event, command)

    bot = ctx.bot
    settings = ctx.services.settings
    try:
        reply = await ctx.services.conversation.respond(bot, event.user_id, event.text)
    except Exception as e:
        logger.error(
            f"AI response error: {e}",
            extra={"context": {"bot_id": bot.bot_id, "user_id": event.user_id}},
            exc_info=not isinstance(e, UpstreamError),
        )
        await ctx.line.reply_text(event.reply_token, MSG_AI_ERROR)
        return Result.from_exception(e)

    messages = [text_message(chunk) for chunk in split_message(reply, settings.reply_max_chars)]
    if not await ctx.line.deliver(event.reply_token, event.user_id, messages):
        logger.warning("Reply delivery failed", extra={"context": {"bot_id": bot.bot_id, "user_id": event.user_id}})

    if wants_audio(event.text) and ctx.services.speech is not None:
        logger.info("User requested audio, generating TTS")
        ctx.services.background.spawn(
            push_speech(ctx, event.user_id, reply),
            name=f"auto-tts:{bot.bot_id}",
            context={"bot_id": bot.bot_id, "user_id": event.user_id},
        )

    if settings.conversation_log_enabled:
        log_conversation(ctx.db, bot, event.user_id, event.text, reply)
    return Result.success(reply)


async def handle_audio_message(ctx: EventContext, event: AudioMessageEvent) -> Result:
    result = await ctx.services.voice.handle_voice(
        ctx.bot,
        event.user_id,
        event.message_id,
        event.reply_token,
        ctx.line,
    )
    if result.ok and ctx.services.settings.conversation_log_enabled:
        transcript, feedback = result.value
        log_conversation(ctx.db, ctx.bot, event.user_id, f"[Voice Message] {transcript}", feedback, "audio")
    return result


async def handle_follow(ctx: EventContext, event: FollowEvent) -> Result[str]:
    await ctx.line.reply_text(event.reply_token, format_welcome_message(ctx.bot))
    return Result.success("follow")


async def handle_event(ctx: EventContext, event: LineEvent) -> Result:
    if isinstance(event, TextMessageEvent):
        return await handle_text_message(ctx, event)
    if isinstance(event, AudioMessageEvent):
        return await handle_audio_message(ctx, event)
    if isinstance(event, FollowEvent):
        return await handle_follow(ctx, event)
    if isinstance(event, UnknownEvent):
        logger.debug(f"Ignoring event: type={event.event_type}, message_type={event.message_type}, reason={event.reason}")
        return Result.success("ignored")
    raise TypeError(f"Unhandled event: {event!r}")


async def process_events(ctx: EventContext, events: list[LineEvent]) -> list[Result]:
    """Handle events in order; a failing event never stops the others."""
    results: list[Result] = []
    for index, event in enumerate(events):
        event_logger = bind(
            logger,
            bot_id=ctx.bot.bot_id,
            event_index=index,
            kind=event.kind,
            user_id=getattr(event, "user_id", None),
        )
        try:
            result = await handle_event(ctx, event)
        except Exception as e:
            event_logger.error(f"Event processing failed: {e}", exc_info=True)
            result = Result.from_exception(e)
        results.append(result)

    failed = [result for result in results if not result.ok]
    if failed:
        logger.warning(
            "Webhook delivery had failed events",
            extra={
                "context": {
                    "bot_id": ctx.bot.bot_id,
                    "events": len(results),
                    "failed": len(failed),
                    "errors": [result.describe() for result in failed],
                }
            },
        )
    return results
