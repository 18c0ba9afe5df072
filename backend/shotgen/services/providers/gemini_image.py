"""Gemini multimodal image provider ("Nano Banana"), via the google-genai SDK."""

from __future__ import annotations

import logging
from typing import Any

from google import genai
from google.genai import types

from shotgen.config import Settings
from shotgen.services.errors import ConfigurationError, ProviderError
from shotgen.services.jobs import GenerationParams
from shotgen.services.providers.base import Result, SynchronousProvider

logger = logging.getLogger(__name__)


class GeminiImageProvider(SynchronousProvider):

    provider_id = "gemini"
    label = "NANO BANANA PRO (Gemini)"
    media = "image"

    def __init__(self, settings: Settings, client: Any | None = None) -> None:
        self._settings = settings
        self._client = client

    def is_configured(self) -> bool:
        s = self._settings
        return bool(
            self._client is not None
            or (s.AI_INTEGRATIONS_GEMINI_API_KEY and s.AI_INTEGRATIONS_GEMINI_BASE_URL)
            or s.GEMINI_API_KEY
        )

    def _get_client(self) -> Any:
        """Create the genai client on first use; the integrations proxy wins when complete."""
        if self._client is not None:
            return self._client

        s = self._settings
        if s.AI_INTEGRATIONS_GEMINI_API_KEY and s.AI_INTEGRATIONS_GEMINI_BASE_URL:
            self._client = genai.Client(
                api_key=s.AI_INTEGRATIONS_GEMINI_API_KEY,
                http_options=types.HttpOptions(
                    api_version="",
                    base_url=s.AI_INTEGRATIONS_GEMINI_BASE_URL,
                ),
            )
        elif s.GEMINI_API_KEY:
            logger.warning("AI_INTEGRATIONS_GEMINI not configured, using GEMINI_API_KEY")
            self._client = genai.Client(api_key=s.GEMINI_API_KEY)
        else:
            raise ConfigurationError(
                "Gemini client is not configured. Set AI_INTEGRATIONS_GEMINI_API_KEY and "
                "AI_INTEGRATIONS_GEMINI_BASE_URL, or GEMINI_API_KEY."
            )
        return self._client

    async def generate(self, params: GenerationParams) -> Result:
        client = self._get_client()
        model = params.model or self._settings.GEMINI_IMAGE_MODEL
        logger.info("Generating image with model: %s", model)

        response = await client.aio.models.generate_content(
            model=model,
            contents=[types.Content(role="user", parts=[types.Part(text=params.prompt)])],
            config=types.GenerateContentConfig(
                response_modalities=["TEXT", "IMAGE"],
            ),
        )

        if not response.candidates:
            feedback = getattr(response, "prompt_feedback", None)
            block_reason = getattr(feedback, "block_reason", None)
            if block_reason:
                raise ProviderError(
                    self.provider_id, f"Request blocked by safety filter: {_enum_name(block_reason)}"
                )
            raise ProviderError(
                self.provider_id,
                "No candidates returned from model. The request may have been blocked.",
            )

        candidate = response.candidates[0]
        finish_reason = _enum_name(candidate.finish_reason) if candidate.finish_reason else None
        if finish_reason and finish_reason != "STOP":
            raise ProviderError(self.provider_id, f"Generation stopped with reason: {finish_reason}")

        parts = candidate.content.parts if candidate.content else None
        if not parts:
            raise ProviderError(self.provider_id, "No content generated in response")

        for part in parts:
            inline = part.inline_data
            if inline and inline.data and (inline.mime_type or "").startswith("image/"):
                logger.info("Gemini image generated (%d bytes)", len(inline.data))
                return Result.success(artifact_bytes=inline.data, mime_type=inline.mime_type)

        raise ProviderError(
            self.provider_id,
            "No image data found in response. The model may have returned text only.",
        )


def _enum_name(value: Any) -> str:
    return getattr(value, "name", None) or str(value)
