"""Google Veo image-to-video provider.

Long-running-operation pattern:
1. POST models/{model}:predictLongRunning → operation ``name``
2. GET  {name} until ``done`` → generatedSamples[0].video.uri
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from shotgen.config import Settings
from shotgen.services.errors import ConfigurationError, ProviderError
from shotgen.services.jobs import GenerationParams
from shotgen.services.providers.base import (
    AsyncTaskProvider,
    HttpProviderMixin,
    PollHandle,
    PollStatus,
    error_excerpt,
    strip_data_url,
)

logger = logging.getLogger(__name__)


class VeoVideoProvider(HttpProviderMixin, AsyncTaskProvider):
    """Veo via the Gemini API (Replit AI Integrations proxy or direct key)."""

    provider_id = "veo"
    label = "Google Veo"
    media = "video"

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None) -> None:
        super().__init__(http_client, timeout=settings.HTTP_TIMEOUT)
        self._settings = settings

    def _api_config(self) -> tuple[str, str] | None:
        """Resolve (api_key, base_url); the integrations proxy wins when complete."""
        s = self._settings
        if s.AI_INTEGRATIONS_GEMINI_API_KEY and s.AI_INTEGRATIONS_GEMINI_BASE_URL:
            return s.AI_INTEGRATIONS_GEMINI_API_KEY, s.AI_INTEGRATIONS_GEMINI_BASE_URL.rstrip("/")
        if s.GEMINI_API_KEY:
            return s.GEMINI_API_KEY, s.GEMINI_BASE_URL.rstrip("/")
        return None

    def is_configured(self) -> bool:
        return self._api_config() is not None

    def _require_config(self) -> tuple[str, str]:
        config = self._api_config()
        if config is None:
            raise ConfigurationError(
                "Gemini API not configured. Set AI_INTEGRATIONS_GEMINI_API_KEY and "
                "AI_INTEGRATIONS_GEMINI_BASE_URL, or GEMINI_API_KEY."
            )
        return config

    async def submit(self, params: GenerationParams) -> PollHandle:
        api_key, base_url = self._require_config()
        model = params.model or self._settings.VEO_MODEL

        instance: dict[str, Any] = {"prompt": params.prompt}
        if params.image_base64:
            instance["image"] = {"bytesBase64Encoded": strip_data_url(params.image_base64)}

        body = {
            "instances": [instance],
            "parameters": {
                "aspectRatio": params.extra.get("aspect_ratio", "16:9"),
                "durationSeconds": params.duration,
                "personGeneration": "allow_adult",
            },
        }

        url = f"{base_url}/v1beta/models/{model}:predictLongRunning"
        resp = await self._request(
            "POST", url, json=body,
            headers={"Content-Type": "application/json", "x-goog-api-key": api_key},
        )
        if resp.is_error:
            raise ProviderError(self.provider_id, f"VEO API error: {error_excerpt(resp)}")

        operation_name = resp.json().get("name")
        if not operation_name:
            raise ProviderError(self.provider_id, "Unexpected VEO response: no operation name")

        logger.info("Veo operation started: %s (model=%s)", operation_name, model)
        return PollHandle(self.provider_id, operation_name)

    async def check_status(self, handle: PollHandle) -> PollStatus:
        api_key, base_url = self._require_config()
        resp = await self._request(
            "GET", f"{base_url}/v1beta/{handle.token}",
            headers={"x-goog-api-key": api_key},
        )
        resp.raise_for_status()
        data = resp.json()

        if data.get("error"):
            err = data["error"]
            message = err.get("message", "unknown") if isinstance(err, dict) else str(err)
            return PollStatus.failed(f"Veo operation failed: {message}")
        if not data.get("done"):
            return PollStatus.pending()

        samples = data.get("response", {}).get("generatedSamples") or [{}]
        uri = samples[0].get("video", {}).get("uri")
        if not uri:
            return PollStatus.failed("Veo operation finished without a video")
        return PollStatus.succeeded(uri)
