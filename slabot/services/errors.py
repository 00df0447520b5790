"""Domain errors raised by the relay services."""

from typing import Optional


class RelayError(Exception):
    """Base class for relay errors."""


class InvalidRegistrationError(RelayError):
    """Registration or update payload is missing fields or malformed."""


class DuplicateBotError(RelayError):
    def __init__(self, bot_id: str):
        super().__init__(f"Bot with this name already exists: {bot_id}")
        self.bot_id = bot_id


class BotNotFoundError(RelayError):
    def __init__(self, bot_id: str):
        super().__init__(f"Bot not found: {bot_id}")
        self.bot_id = bot_id


class UpstreamError(RelayError):
    """A third-party API call failed (network, non-2xx, timeout, empty payload)."""

    def __init__(self, service: str, detail: str, status_code: Optional[int] = None):
        message = f"{service} error: {status_code} - {detail}" if status_code else f"{service} error: {detail}"
        super().__init__(message)
        self.service = service
        self.detail = detail
        self.status_code = status_code
