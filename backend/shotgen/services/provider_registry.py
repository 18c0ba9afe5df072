"""Provider registry: maps provider ids to adapter instances.

The dispatcher only ever asks the registry; adding a backend means
registering an adapter, not touching queue code.

Usage:
    from shotgen.services.provider_registry import build_default_registry
    registry = build_default_registry(get_settings())
    provider = registry.get("veo")
    registry.list_providers(media="image")
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from shotgen.config import Settings
from shotgen.services.errors import UnknownProviderError
from shotgen.services.providers.base import AsyncTaskProvider, Provider

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """In-memory registry of generation backends."""

    def __init__(self) -> None:
        self._providers: dict[str, Provider] = {}

    def register(self, provider: Provider) -> None:
        if provider.provider_id in self._providers:
            logger.info("Replacing provider registration: %s", provider.provider_id)
        self._providers[provider.provider_id] = provider

    def get(self, provider_id: str) -> Provider:
        try:
            return self._providers[provider_id]
        except KeyError:
            raise UnknownProviderError(provider_id) from None

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._providers

    def list_providers(self, media: str | None = None) -> list[Provider]:
        """List providers, optionally filtered by media type ("image"/"video")."""
        providers = list(self._providers.values())
        if media:
            providers = [p for p in providers if p.media == media]
        return providers

    def available(self, media: str | None = None) -> list[str]:
        """Ids of providers whose credentials are present."""
        return [p.provider_id for p in self.list_providers(media) if p.is_configured()]

    def to_dict_list(self) -> list[dict[str, Any]]:
        """Serialize all providers for API response."""
        return [
            {
                "id": p.provider_id,
                "label": p.label,
                "media": p.media,
                "kind": "async_task" if isinstance(p, AsyncTaskProvider) else "synchronous",
                "configured": p.is_configured(),
            }
            for p in self._providers.values()
        ]


def build_default_registry(
    settings: Settings,
    http_client: httpx.AsyncClient | None = None,
) -> ProviderRegistry:
    """Register every built-in backend (or mocks when USE_MOCK_API is set)."""
    registry = ProviderRegistry()

    if settings.USE_MOCK_API:
        from shotgen.services.providers.mock import MockImageProvider, MockVideoProvider

        for provider_id in ("veo", "kling", "jimeng"):
            registry.register(MockVideoProvider(provider_id))
        for provider_id in ("openai", "gemini"):
            registry.register(MockImageProvider(provider_id))
    else:
        from shotgen.services.providers.gemini_image import GeminiImageProvider
        from shotgen.services.providers.jimeng_video import JimengVideoProvider
        from shotgen.services.providers.kling_video import KlingVideoProvider
        from shotgen.services.providers.openai_image import OpenAIImageProvider
        from shotgen.services.providers.veo_video import VeoVideoProvider

        registry.register(VeoVideoProvider(settings, http_client))
        registry.register(KlingVideoProvider(settings, http_client))
        registry.register(JimengVideoProvider(settings, http_client))
        registry.register(OpenAIImageProvider(settings, http_client))
        registry.register(GeminiImageProvider(settings))

    logger.info(
        "Provider registry initialized: %d providers (%d configured, mock=%s)",
        len(registry._providers),
        len(registry.available()),
        settings.USE_MOCK_API,
    )
    return registry
