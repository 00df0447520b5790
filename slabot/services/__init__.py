from slabot.services.container import Services, build_services, get_services
from slabot.services.conversation_service import ConversationService, split_message, wants_audio
from slabot.services.errors import (
    BotNotFoundError,
    DuplicateBotError,
    InvalidRegistrationError,
    UpstreamError,
)
from slabot.services.registry_service import (
    BotConfig,
    derive_bot_id,
    get_bot_config,
    register_bot,
)
from slabot.services.session_service import Session, SessionStore
from slabot.services.signature_service import compute_signature, verify_signature
