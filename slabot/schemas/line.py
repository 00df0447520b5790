"""LINE webhook payloads.

Each raw event is parsed on its own into one of TextMessageEvent,
AudioMessageEvent, FollowEvent or UnknownEvent, so one malformed event
cannot break the rest of the delivery.
"""

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator


class EventSource(BaseModel):
    type: Optional[str] = None
    userId: Optional[str] = None


class EventMessage(BaseModel):
    id: Optional[str] = None
    type: Optional[str] = None
    text: Optional[str] = None


class RawEvent(BaseModel):
    type: Optional[str] = None
    replyToken: Optional[str] = None
    source: Optional[EventSource] = None
    message: Optional[EventMessage] = None


class TextMessageEvent(BaseModel):
    kind: Literal["text"] = "text"
    reply_token: str
    user_id: str
    text: str


class AudioMessageEvent(BaseModel):
    kind: Literal["audio"] = "audio"
    reply_token: str
    user_id: str
    message_id: str


class FollowEvent(BaseModel):
    kind: Literal["follow"] = "follow"
    reply_token: str
    user_id: Optional[str] = None


class UnknownEvent(BaseModel):
    kind: Literal["unknown"] = "unknown"
    event_type: Optional[str] = None
    message_type: Optional[str] = None
    reason: Optional[str] = None


LineEvent = Union[TextMessageEvent, AudioMessageEvent, FollowEvent, UnknownEvent]


class WebhookPayload(BaseModel):
    destination: Optional[str] = None
    events: list[Any] = Field(default_factory=list)

    @field_validator("events", mode="before")
    @classmethod
    def null_events_are_empty(cls, value: Any) -> Any:
        return [] if value is None else value


def parse_event(raw: Any) -> LineEvent:
    if not isinstance(raw, dict):
        return UnknownEvent(reason="event is not an object")
    try:
        event = RawEvent.model_validate(raw)
    except ValidationError as e:
        return UnknownEvent(event_type=str(raw.get("type")), reason=f"invalid event: {e.error_count()} errors")

    user_id = event.source.userId if event.source else None
    message_type = event.message.type if event.message else None

    if event.type == "follow" and event.replyToken:
        return FollowEvent(reply_token=event.replyToken, user_id=user_id)

    if event.type != "message" or event.message is None:
        return UnknownEvent(event_type=event.type, message_type=message_type)

    if not event.replyToken or not user_id:
        return UnknownEvent(event_type=event.type, message_type=message_type, reason="missing replyToken or userId")

    if message_type == "text" and event.message.text is not None:
        return TextMessageEvent(reply_token=event.replyToken, user_id=user_id, text=event.message.text)

    if message_type == "audio" and event.message.id:
        return AudioMessageEvent(reply_token=event.replyToken, user_id=user_id, message_id=event.message.id)

    return UnknownEvent(event_type=event.type, message_type=message_type)
