"""
AI provider clients.

Usage:
    from providers import ProviderRegistry

    registry = ProviderRegistry(settings, credentials, schema_for(domain))
    result = registry.get("openai").analyze(system_prompt, user_prompt, images)
"""

from .base import BaseProvider, Completion, ProviderResult
from .anthropic_provider import AnthropicProvider
from .chat import ChatCompletionsProvider, GeminiProvider, GroqProvider, OpenAIProvider
from .registry import PROVIDER_CLASSES, ProviderRegistry
from .parsing import extract_json, repair_truncated_json

__all__ = [
    "BaseProvider",
    "Completion",
    "ProviderResult",
    "AnthropicProvider",
    "ChatCompletionsProvider",
    "GeminiProvider",
    "GroqProvider",
    "OpenAIProvider",
    "PROVIDER_CLASSES",
    "ProviderRegistry",
    "extract_json",
    "repair_truncated_json",
]
