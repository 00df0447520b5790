from slabot.services.llm.base import LLMProvider, LLMResponse
from slabot.services.llm.openai_provider import OpenAIProvider

__all__ = ["LLMProvider", "LLMResponse", "OpenAIProvider"]
