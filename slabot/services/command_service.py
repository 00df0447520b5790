"""Reserved chat commands, intercepted before any completion call."""

from enum import Enum
from typing import Optional

from slabot.services.registry_service import BotConfig


class Command(str, Enum):
    RESET = "/reset"
    HELP = "/help"
    LISTEN = "/listen"


MSG_RESET = "Conversation reset! Let's start fresh. How can I help you practice today?"
MSG_NOTHING_TO_LISTEN = "No previous response to listen to. Send me a message first!"
MSG_AUDIO_FAILED = "Sorry, I couldn't generate the audio. Please try again."
MSG_AI_ERROR = "Sorry, I'm having trouble right now. Please try again in a moment."
MSG_VOICE_ERROR = (
    "Sorry, I had trouble processing your voice message. Please try again or type your message instead."
)


def parse_command(text: Optional[str]) -> Optional[Command]:
    """Exact, case-insensitive match; anything else is free-form content."""
    if not text:
        return None
    try:
        return Command(text.lower())
    except ValueError:
        return None


def format_help_message(bot: BotConfig) -> str:
    return (
        f"Welcome to {bot.student_name}'s {bot.skill_type} Strategy Bot!\n\n"
        "📝 Text: Type your message to practice\n"
        "🎤 Voice: Send a voice message for speaking practice!\n"
        "🔊 /listen: Hear the last response as audio\n\n"
        "Commands:\n"
        "/reset - Clear conversation history\n"
        "/listen - Listen to the last response\n"
        "/help - Show this message\n\n"
        f"Just type or speak naturally to practice {bot.skill_type.lower()} strategies!"
    )


def format_welcome_message(bot: BotConfig) -> str:
    return (
        f"Welcome! I'm {bot.student_name}'s {bot.skill_type} Strategy Coach.\n\n"
        f"I'm here to help you learn {bot.skill_type.lower()} strategies based on SLA theory.\n\n"
        "📝 Type a message to practice\n"
        "🎤 Send a voice message for speaking practice!\n\n"
        "Type /help for more options."
    )
