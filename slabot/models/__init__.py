from slabot.models.bot import Bot
from slabot.models.conversation_log import ConversationLog

__all__ = [
    "Bot",
    "ConversationLog",
]
