import json
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError
from sqlalchemy.orm import Session

from slabot.database import get_db
from slabot.logging_config import get_logger
from slabot.schemas.line import WebhookPayload, parse_event
from slabot.services.container import Services, get_services
from slabot.services.event_service import EventContext, process_events
from slabot.services.registry_service import get_bot_config
from slabot.services.signature_service import verify_signature

logger = get_logger("webhook")

router = APIRouter()

SIGNATURE_HEADERS = ("X-Line-Signature", "X-Signature")


def _get_request_signature(request: Request) -> Optional[str]:
    for header in SIGNATURE_HEADERS:
        value = request.headers.get(header)
        if value:
            return value.strip()
    return None


def public_base_url(request: Request, services: Services) -> str:
    """Externally reachable base URL; LINE only fetches media over https."""
    configured = services.settings.public_base_url
    if configured:
        return configured.rstrip("/")
    host = request.headers.get("host") or request.url.netloc
    return f"https://{host}"


@router.get("/webhook/{bot_id}")
def webhook_probe(bot_id: str, db: Session = Depends(get_db)):
    """Browser/console check that the webhook URL points at a known bot."""
    bot = get_bot_config(db, bot_id)
    if bot is None:
        raise HTTPException(status_code=404, detail={"error": "Bot not found", "botId": bot_id})
    return {
        "status": "OK",
        "message": f"Webhook endpoint for {bot.student_name}'s {bot.skill_type} Bot is active",
        "botId": bot_id,
        "note": "This endpoint receives POST requests from LINE. Use LINE app to chat with the bot.",
    }


@router.post("/webhook/{bot_id}")
async def handle_webhook(
    bot_id: str,
    request: Request,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
):
    """Handle a LINE webhook delivery for one bot.

    The signature is checked against the raw body before anything is parsed.
    Per-event failures are logged and the delivery still returns 200 so LINE
    does not redeliver the whole batch.
    """
    logger.info(f"Webhook received for bot: {bot_id}")

    bot = get_bot_config(db, bot_id)
    if bot is None:
        logger.error(f"Bot not found: {bot_id}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bot not found")

    raw_body = await request.body()
    if not verify_signature(raw_body, _get_request_signature(request), bot.channel_secret):
        logger.error("Invalid signature", extra={"context": {"bot_id": bot_id}})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    try:
        payload = WebhookPayload.model_validate(json.loads(raw_body))
    except (ValueError, ValidationError) as e:
        logger.error(f"Failed to parse body: {e}", extra={"context": {"bot_id": bot_id}})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON")

    events = [parse_event(raw) for raw in payload.events]
    ctx = EventContext(
        bot=bot,
        services=services,
        db=db,
        line=services.line_for(bot),
        public_base_url=public_base_url(request, services),
    )
    results = await process_events(ctx, events)

    logger.info(
        "Webhook processed",
        extra={"context": {"bot_id": bot_id, "events": len(results), "ok": sum(1 for r in results if r.ok)}},
    )
    return {"success": True}
