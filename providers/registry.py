"""
Static provider registry.

Maps provider ids to classes and builds configured instances for one run.
Credentials and model tiers are resolved before construction, so a run's
registry only ever hands out providers that can actually be called.
"""

from typing import Callable, Mapping, Optional, Type

from config import Settings
from errors import ProviderUnavailableError
from models.results import ResultBase
from .anthropic_provider import AnthropicProvider
from .base import BaseProvider
from .chat import GeminiProvider, GroqProvider, OpenAIProvider

PROVIDER_CLASSES: dict[str, Type[BaseProvider]] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "gemini": GeminiProvider,
    "groq": GroqProvider,
}

ProviderFactory = Callable[..., BaseProvider]


class ProviderRegistry:
    """
    Per-run provider lookup.

    Args:
        settings: process settings (timeouts, tiers, logging)
        credentials: provider -> resolved API key for this run
        schema: result model replies are validated against
        model_tiers: per-request provider -> tier overrides
        factories: provider id -> class or callable, defaults to PROVIDER_CLASSES
    """

    def __init__(
        self,
        settings: Settings,
        credentials: Mapping[str, str],
        schema: Type[ResultBase],
        model_tiers: Optional[Mapping[str, str]] = None,
        factories: Optional[Mapping[str, ProviderFactory]] = None,
    ):
        self.settings = settings
        self.credentials = dict(credentials)
        self.schema = schema
        self.model_tiers = dict(model_tiers or {})
        self.factories = dict(factories if factories is not None else PROVIDER_CLASSES)
        self._instances: dict[str, BaseProvider] = {}

    def get(self, name: str) -> BaseProvider:
        """Return a ready provider or raise ProviderUnavailableError."""
        if name in self._instances:
            return self._instances[name]

        factory = self.factories.get(name)
        if factory is None:
            raise ProviderUnavailableError(name, "unknown provider")

        api_key = self.credentials.get(name)
        if not api_key:
            raise ProviderUnavailableError(name, "no API key configured")

        try:
            model = self.settings.model_for(name, self.model_tiers.get(name))
        except ValueError as e:
            raise ProviderUnavailableError(name, str(e)) from e

        try:
            provider = factory(
                api_key=api_key,
                model=model,
                schema=self.schema,
                timeout=self.settings.provider_timeout,
                max_output_tokens=self.settings.max_output_tokens,
                log_dir=self.settings.log_dir if self.settings.api_logging else None,
            )
        except ProviderUnavailableError:
            raise
        except Exception as e:
            raise ProviderUnavailableError(name, f"client setup failed: {e}") from e

        self._instances[name] = provider
        return provider

    def is_available(self, name: str) -> bool:
        return name in self.factories and bool(self.credentials.get(name))

    def partition(self, names: list[str]) -> tuple[list[str], dict[str, str]]:
        """
        Split requested providers into (available, excluded -> reason).

        Order of the available list follows the request. Only credentials and
        registration are checked; client construction happens on first use.
        """
        available, excluded = [], {}
        for name in names:
            if name not in self.factories:
                excluded[name] = "unknown provider"
            elif not self.credentials.get(name):
                excluded[name] = "no API key configured"
            else:
                available.append(name)
        return available, excluded
