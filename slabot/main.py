from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from slabot.config import settings
from slabot.database import init_db
from slabot.logging_config import get_logger, setup_logging
from slabot.routers import admin, audio, webhook
from slabot.services.container import build_services

setup_logging(settings.log_level, debug=settings.debug)

logger = get_logger("main")

app = FastAPI(
    title="SLA LINE Bot Server",
    description="Multi-tenant LINE relay for student strategy bots",
    version="0.1.0",
)

cors_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()]
if not cors_origins:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(webhook.router)
app.include_router(audio.router)
app.include_router(admin.router)

app.state.services = build_services(settings)

REGISTER_PATH = "/api/register"


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    # registration answers malformed fields with 400 like missing ones
    if request.url.path == REGISTER_PATH:
        logger.warning("Invalid registration payload", extra={"context": {"errors": exc.errors()}})
        return JSONResponse(status_code=400, content={"detail": "Invalid registration payload"})
    return await request_validation_exception_handler(request, exc)


@app.on_event("startup")
async def startup() -> None:
    try:
        init_db()
    except Exception as exc:
        # the webhook and admin routes report their own DB errors; keep serving
        logger.error("Database initialization failed", extra={"context": {"error": str(exc)}})
        return
    logger.info(
        "SLA LINE Bot Server started",
        extra={
            "context": {
                "model": settings.llm_model,
                "groq_configured": bool(settings.groq_api_key),
                "tts_configured": bool(settings.google_tts_api_key),
                "public_base_url": settings.public_base_url,
            }
        },
    )


@app.on_event("shutdown")
async def shutdown() -> None:
    await app.state.services.background.cancel_all()

