"""Admin API endpoints for registering and managing bots."""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slabot.database import get_db
from slabot.logging_config import get_logger
from slabot.routers.webhook import public_base_url
from slabot.schemas.bot import (
    BotListResponse,
    BotSummaryResponse,
    HealthResponse,
    PromptUpdate,
    RegisterRequest,
    RegisterResponse,
    StatusResponse,
)
from slabot.services.container import Services, get_services
from slabot.services.errors import BotNotFoundError, DuplicateBotError, InvalidRegistrationError
from slabot.services.registry_service import (
    count_bots,
    delete_bot,
    list_bots,
    register_bot,
    update_system_prompt,
)

logger = get_logger("admin")

router = APIRouter(prefix="/api", tags=["admin"])


def _require_admin_token(provided: Optional[str], expected: Optional[str]) -> None:
    if not expected:
        raise HTTPException(status_code=500, detail="ADMIN_TOKEN not configured")
    if not provided or provided != expected:
        raise HTTPException(status_code=401, detail="Invalid admin token")


@router.get("/health", response_model=HealthResponse)
def health(db: Session = Depends(get_db)):
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        registered = count_bots(db)
    except SQLAlchemyError as e:
        logger.warning(f"Health check could not reach database: {e}")
        return HealthResponse(
            status="OK",
            message="SLA LINE Bot Server is running (DB connecting...)",
            registeredBots=0,
            timestamp=timestamp,
        )
    return HealthResponse(
        status="OK",
        message="SLA LINE Bot Server is running",
        registeredBots=registered,
        timestamp=timestamp,
    )


@router.get("/bots", response_model=BotListResponse)
def get_bots(db: Session = Depends(get_db)):
    """List registered bots without credentials."""
    bots = [BotSummaryResponse(**bot.to_dict()) for bot in list_bots(db)]
    return BotListResponse(success=True, bots=bots)


@router.post("/register", response_model=RegisterResponse)
def register(
    data: RegisterRequest,
    request: Request,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
):
    try:
        bot = register_bot(
            db,
            student_name=data.studentName,
            skill_type=data.skillType,
            channel_access_token=data.channelAccessToken,
            channel_secret=data.channelSecret,
            system_prompt=data.systemPrompt,
        )
    except InvalidRegistrationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DuplicateBotError as e:
        raise HTTPException(
            status_code=409,
            detail={"error": "Bot with this name already exists", "existingBotId": e.bot_id},
        )

    webhook_url = f"{public_base_url(request, services)}/webhook/{bot.bot_id}"
    return RegisterResponse(
        success=True,
        message="Bot registered successfully!",
        botId=bot.bot_id,
        webhookUrl=webhook_url,
    )


@router.put("/bots/{bot_id}", response_model=StatusResponse)
def update_bot(
    bot_id: str,
    data: PromptUpdate,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    x_admin_token: Optional[str] = Header(default=None),
):
    """Replace the system prompt. The admin token is checked when one is configured."""
    if services.settings.admin_token:
        _require_admin_token(x_admin_token, services.settings.admin_token)

    try:
        update_system_prompt(db, bot_id, data.systemPrompt)
    except BotNotFoundError:
        raise HTTPException(status_code=404, detail="Bot not found")
    except InvalidRegistrationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return StatusResponse(success=True, message="Bot updated successfully")


@router.delete("/bots/{bot_id}", response_model=StatusResponse)
def remove_bot(
    bot_id: str,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    x_admin_token: Optional[str] = Header(default=None),
):
    _require_admin_token(x_admin_token, services.settings.admin_token)

    try:
        delete_bot(db, bot_id)
    except BotNotFoundError:
        raise HTTPException(status_code=404, detail="Bot not found")

    return StatusResponse(success=True, message="Bot deleted successfully")
