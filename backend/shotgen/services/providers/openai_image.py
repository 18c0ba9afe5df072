"""OpenAI image provider (gpt-image-1, OpenAI-compatible images endpoint)."""

from __future__ import annotations

import base64
import binascii
import logging

import httpx

from shotgen.config import Settings
from shotgen.services.errors import ConfigurationError, ProviderError
from shotgen.services.jobs import GenerationParams
from shotgen.services.providers.base import (
    HttpProviderMixin,
    Result,
    SynchronousProvider,
    error_excerpt,
)

logger = logging.getLogger(__name__)


class OpenAIImageProvider(HttpProviderMixin, SynchronousProvider):

    provider_id = "openai"
    label = "OpenAI DALL-E"
    media = "image"

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None) -> None:
        # Image calls get three times the default timeout.
        super().__init__(http_client, timeout=settings.HTTP_TIMEOUT * 3)
        self._settings = settings

    def _api_config(self) -> tuple[str, str] | None:
        s = self._settings
        api_key = s.AI_INTEGRATIONS_OPENAI_API_KEY or s.OPENAI_API_KEY
        if not api_key:
            return None
        base_url = s.AI_INTEGRATIONS_OPENAI_BASE_URL or s.OPENAI_BASE_URL
        return api_key, base_url.rstrip("/")

    def is_configured(self) -> bool:
        return self._api_config() is not None

    async def generate(self, params: GenerationParams) -> Result:
        config = self._api_config()
        if config is None:
            raise ConfigurationError(
                "OpenAI client is not configured. Set AI_INTEGRATIONS_OPENAI_API_KEY or OPENAI_API_KEY."
            )
        api_key, base_url = config

        model = params.model or self._settings.OPENAI_IMAGE_MODEL
        payload = {
            "model": model,
            "prompt": params.prompt,
            "size": params.extra.get("size", self._settings.OPENAI_IMAGE_SIZE),
        }

        logger.info("Calling OpenAI image model=%s", model)
        resp = await self._request(
            "POST", f"{base_url}/images/generations", json=payload,
            headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
        )
        if resp.is_error:
            raise ProviderError(self.provider_id, f"Image API error: {error_excerpt(resp)}")

        data_list = resp.json().get("data") or []
        if not data_list:
            raise ProviderError(self.provider_id, "Image API returned empty data")

        item = data_list[0]
        if item.get("b64_json"):
            try:
                image_data = base64.b64decode(item["b64_json"], validate=True)
            except (binascii.Error, ValueError) as e:
                raise ProviderError(self.provider_id, f"Malformed b64_json: {e}") from e
            logger.info("OpenAI image generated (%d bytes)", len(image_data))
            return Result.success(artifact_bytes=image_data, mime_type="image/png")
        if item.get("url"):
            return Result.success(artifact_url=item["url"])

        raise ProviderError(self.provider_id, "Image API returned no image data (no b64_json or url)")
