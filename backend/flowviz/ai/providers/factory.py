"""
AI Provider factory — builds the AIService for a ProviderConfig and resolves
provider configuration from settings.

Selection:
    explicit provider argument → AI_PROVIDER setting → anthropic

Each provider reads <PROVIDER>_API_KEY (required), <PROVIDER>_BASE_URL and
<PROVIDER>_MODEL (optional; the adapter's built-in defaults apply when unset).
"""
from typing import Optional

from flowviz.ai.providers.base import (
    DEFAULT_PROVIDER,
    AIService,
    ConfigurationError,
    MissingCredentialError,
    ProviderConfig,
    ProviderIdentity,
    UnsupportedProviderError,
)
from flowviz.config import Settings, get_settings
from flowviz.core.logging import get_logger

logger = get_logger(__name__)

# Known identities in listing order; each maps to its env var prefix
KNOWN_PROVIDERS: tuple[ProviderIdentity, ...] = (
    ProviderIdentity.ANTHROPIC,
    ProviderIdentity.OPENAI,
)


def create_ai_service(config: ProviderConfig) -> AIService:
    """
    Instantiate the AIService for `config`. Performs no network I/O.
    Raises UnsupportedProviderError if the provider tag is unknown.
    """
    provider = ProviderIdentity.parse(config.provider)

    logger.info(
        f"Creating AI service: {provider.value} with model {config.model or 'default'}",
        extra={"event": "ai_service_create", "provider": provider.value,
               "model": config.model or "default"},
    )

    if provider is ProviderIdentity.ANTHROPIC:
        from flowviz.ai.providers.anthropic_provider import AnthropicService
        return AnthropicService(config)

    elif provider is ProviderIdentity.OPENAI:
        from flowviz.ai.providers.openai_provider import OpenAIService
        return OpenAIService(config)

    raise UnsupportedProviderError(
        f"Unsupported AI provider: '{provider.value}'. "
        f"Must be one of: {', '.join(p.value for p in KNOWN_PROVIDERS)}.",
        provider=provider.value,
    )


def _env_prefix(provider: ProviderIdentity) -> str:
    return provider.value.upper()


class ProviderSelector:
    """Resolves provider configuration from a read-only Settings object."""

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings or get_settings()

    def default_provider(self) -> str:
        """The configured default provider tag (not validated)."""
        return self._settings.AI_PROVIDER or DEFAULT_PROVIDER.value

    def config_from_environment(
        self, provider: "Optional[str | ProviderIdentity]" = None,
    ) -> ProviderConfig:
        """
        Build the ProviderConfig for `provider` (or the configured default).

        Raises:
            UnsupportedProviderError if the resolved tag is unknown.
            MissingCredentialError if its API key is not configured.
        """
        identity = ProviderIdentity.parse(provider or self.default_provider())
        prefix = _env_prefix(identity)

        api_key = self._settings.value(f"{prefix}_API_KEY")
        if not api_key:
            raise MissingCredentialError(
                f"{prefix}_API_KEY not configured",
                provider=identity.value,
            )

        return ProviderConfig(
            provider=identity.value,
            api_key=api_key,
            base_url=self._settings.value(f"{prefix}_BASE_URL"),
            model=self._settings.value(f"{prefix}_MODEL"),
        )

    def is_configured(self, provider: "str | ProviderIdentity") -> bool:
        """True iff config_from_environment(provider) would succeed. Never raises."""
        try:
            self.config_from_environment(provider)
        except ConfigurationError:
            return False
        return True

    def available_providers(self) -> list[ProviderIdentity]:
        """Known providers whose API key is present, in listing order."""
        return [
            p for p in KNOWN_PROVIDERS
            if self._settings.value(f"{_env_prefix(p)}_API_KEY")
        ]

    def require_any_provider(self) -> None:
        """Raise ConfigurationError unless at least one provider has an API key."""
        if not self.available_providers():
            names = ", ".join(f"{_env_prefix(p)}_API_KEY" for p in KNOWN_PROVIDERS)
            raise ConfigurationError(
                f"No AI provider configured. Set at least one of: {names}."
            )

    def describe(self) -> dict:
        """Provider listing for API consumers (no secrets)."""
        return {
            "available": [p.value for p in self.available_providers()],
            "default": self.default_provider(),
            "configured": {p.value: self.is_configured(p) for p in KNOWN_PROVIDERS},
        }
