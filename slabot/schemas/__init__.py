from slabot.schemas.bot import (
    BotListResponse,
    BotSummaryResponse,
    HealthResponse,
    PromptUpdate,
    RegisterRequest,
    RegisterResponse,
    StatusResponse,
)
from slabot.schemas.line import (
    AudioMessageEvent,
    FollowEvent,
    LineEvent,
    TextMessageEvent,
    UnknownEvent,
    WebhookPayload,
    parse_event,
)

__all__ = [
    "RegisterRequest",
    "RegisterResponse",
    "PromptUpdate",
    "BotSummaryResponse",
    "BotListResponse",
    "StatusResponse",
    "HealthResponse",
    "TextMessageEvent",
    "AudioMessageEvent",
    "FollowEvent",
    "UnknownEvent",
    "LineEvent",
    "WebhookPayload",
    "parse_event",
]
