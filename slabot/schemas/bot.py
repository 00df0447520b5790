from typing import Optional

from pydantic import BaseModel


class RegisterRequest(BaseModel):
    # every field is optional so missing ones reach the registry checks (400)
    studentName: Optional[str] = None
    skillType: Optional[str] = None
    channelAccessToken: Optional[str] = None
    channelSecret: Optional[str] = None
    systemPrompt: Optional[str] = None


class RegisterResponse(BaseModel):
    success: bool
    message: str
    botId: str
    webhookUrl: str


class PromptUpdate(BaseModel):
    systemPrompt: Optional[str] = None


class BotSummaryResponse(BaseModel):
    id: str
    studentName: str
    skillType: str
    createdAt: Optional[str] = None


class BotListResponse(BaseModel):
    success: bool
    bots: list[BotSummaryResponse]


class StatusResponse(BaseModel):
    success: bool
    message: str


class HealthResponse(BaseModel):
    status: str
    message: str
    registeredBots: int
    timestamp: str
