"""Bot registry: per-tenant LINE credentials and system prompts."""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from slabot.logging_config import get_logger
from slabot.models import Bot
from slabot.services.errors import BotNotFoundError, DuplicateBotError, InvalidRegistrationError

logger = get_logger("registry_service")

_BOT_ID_INVALID_CHARS = re.compile(r"[^a-z0-9]")


@dataclass(frozen=True)
class BotConfig:
    """Read-only snapshot of a registered bot, including its secrets."""

    bot_id: str
    student_name: str
    skill_type: str
    channel_access_token: str
    channel_secret: str
    system_prompt: str
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class BotSummary:
    bot_id: str
    student_name: str
    skill_type: str
    created_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.bot_id,
            "studentName": self.student_name,
            "skillType": self.skill_type,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


def derive_bot_id(student_name: str) -> str:
    """Lowercase the name and replace every character outside [a-z0-9] with "_".

    The replacement is one-for-one, so "John Doe!!" becomes "john_doe__".
    """
    return _BOT_ID_INVALID_CHARS.sub("_", (student_name or "").lower())


def _to_config(bot: Bot) -> BotConfig:
    return BotConfig(
        bot_id=bot.id,
        student_name=bot.student_name,
        skill_type=bot.skill_type,
        channel_access_token=bot.channel_access_token,
        channel_secret=bot.channel_secret,
        system_prompt=bot.system_prompt,
        created_at=bot.created_at,
    )


def _require(fields: dict[str, Optional[str]]) -> None:
    missing = [name for name, value in fields.items() if not value or not str(value).strip()]
    if missing:
        raise InvalidRegistrationError(f"Missing required fields: {', '.join(missing)}")


def register_bot(
    db: Session,
    *,
    student_name: Optional[str],
    skill_type: Optional[str],
    channel_access_token: Optional[str],
    channel_secret: Optional[str],
    system_prompt: Optional[str],
) -> BotConfig:
    """Create a bot; the id is derived from the student name and must be free."""
    _require(
        {
            "studentName": student_name,
            "skillType": skill_type,
            "channelAccessToken": channel_access_token,
            "channelSecret": channel_secret,
            "systemPrompt": system_prompt,
        }
    )

    bot_id = derive_bot_id(student_name)
    if db.get(Bot, bot_id) is not None:
        raise DuplicateBotError(bot_id)

    now = datetime.now(timezone.utc)
    bot = Bot(
        id=bot_id,
        student_name=student_name,
        skill_type=skill_type,
        channel_access_token=channel_access_token,
        channel_secret=channel_secret,
        system_prompt=system_prompt,
        created_at=now,
        updated_at=now,
    )
    db.add(bot)
    try:
        db.commit()
    except IntegrityError:
        # lost a race against a concurrent registration of the same id
        db.rollback()
        raise DuplicateBotError(bot_id)

    logger.info("Bot registered", extra={"context": {"bot_id": bot_id, "skill_type": skill_type}})
    return _to_config(bot)


def get_bot_config(db: Session, bot_id: str) -> Optional[BotConfig]:
    """Internal lookup used to process webhooks. Returns secrets."""
    bot = db.get(Bot, bot_id)
    if bot is None:
        return None
    return _to_config(bot)


def list_bots(db: Session) -> list[BotSummary]:
    bots = db.query(Bot).order_by(Bot.created_at.desc()).all()
    return [
        BotSummary(
            bot_id=bot.id,
            student_name=bot.student_name,
            skill_type=bot.skill_type,
            created_at=bot.created_at,
        )
        for bot in bots
    ]


def count_bots(db: Session) -> int:
    return db.query(func.count(Bot.id)).scalar() or 0


def update_system_prompt(db: Session, bot_id: str, system_prompt: Optional[str]) -> BotConfig:
    if not system_prompt or not system_prompt.strip():
        raise InvalidRegistrationError("System prompt cannot be empty")

    bot = db.get(Bot, bot_id)
    if bot is None:
        raise BotNotFoundError(bot_id)

    bot.system_prompt = system_prompt
    bot.updated_at = datetime.now(timezone.utc)
    db.commit()
    logger.info("System prompt updated", extra={"context": {"bot_id": bot_id}})
    return _to_config(bot)


def delete_bot(db: Session, bot_id: str) -> None:
    bot = db.get(Bot, bot_id)
    if bot is None:
        raise BotNotFoundError(bot_id)
    db.delete(bot)
    db.commit()
    logger.info("Bot deleted", extra={"context": {"bot_id": bot_id}})
