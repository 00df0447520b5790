import time
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from slabot.logging_config import get_logger
from slabot.models import ConversationLog
from slabot.services.registry_service import BotConfig

logger = get_logger("conversation_log")


def log_conversation(
    db: Session,
    bot: BotConfig,
    user_id: str,
    user_input: str,
    bot_output: str,
    message_type: str = "text",
) -> bool:
    """Persist one turn for later review. Never raises."""
    conversation_id = f"{bot.bot_id}_{user_id}_{int(time.time() * 1000)}"
    try:
        db.add(
            ConversationLog(
                conversation_id=conversation_id,
                bot_id=bot.bot_id,
                student_name=bot.student_name,
                skill_type=bot.skill_type,
                system_prompt=bot.system_prompt,
                line_user_id=user_id,
                user_input=user_input,
                bot_output=bot_output,
                message_type=message_type,
                created_at=datetime.now(timezone.utc),
            )
        )
        db.commit()
    except Exception as e:
        logger.error(
            f"Conversation log write failed: {e}",
            extra={"context": {"conversation_id": conversation_id}},
        )
        try:
            db.rollback()
        except Exception as rollback_error:
            logger.warning(f"Conversation log rollback failed: {rollback_error}")
        return False

    logger.info("Conversation logged", extra={"context": {"conversation_id": conversation_id}})
    return True
