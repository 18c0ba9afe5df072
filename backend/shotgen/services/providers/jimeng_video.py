"""Jimeng (即梦) image-to-video provider.

Generic status-field pattern: POST /api/v1/video/generate returns ``task_id``;
GET /api/v1/video/query?task_id=... carries ``status`` and ``video_url``.
"""

from __future__ import annotations

import logging

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


class JimengVideoProvider(HttpProviderMixin, AsyncTaskProvider):

    provider_id = "jimeng"
    label = "即梦 Jimeng"
    media = "video"

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None) -> None:
        super().__init__(http_client, timeout=settings.HTTP_TIMEOUT)
        self._settings = settings

    def is_configured(self) -> bool:
        return bool(self._settings.JIMENG_API_KEY)

    def _auth_header(self) -> dict[str, str]:
        if not self.is_configured():
            raise ConfigurationError("Jimeng API key not configured. Set JIMENG_API_KEY.")
        return {"Authorization": f"Bearer {self._settings.JIMENG_API_KEY}"}

    async def submit(self, params: GenerationParams) -> PollHandle:
        headers = {**self._auth_header(), "Content-Type": "application/json"}
        body = {
            "model": params.model or self._settings.JIMENG_MODEL,
            "image": strip_data_url(params.image_base64) if params.image_base64 else None,
            "prompt": params.prompt,
            "duration": params.duration,
            "aspect_ratio": params.extra.get("aspect_ratio", "16:9"),
        }

        base = self._settings.JIMENG_BASE_URL.rstrip("/")
        resp = await self._request("POST", f"{base}/api/v1/video/generate", json=body, headers=headers)
        if resp.is_error:
            raise ProviderError(self.provider_id, f"Jimeng API error: {error_excerpt(resp)}")

        task_id = resp.json().get("task_id")
        if not task_id:
            raise ProviderError(self.provider_id, "Unexpected Jimeng response: no task_id")

        logger.info("Jimeng task created: %s", task_id)
        return PollHandle(self.provider_id, task_id)

    async def check_status(self, handle: PollHandle) -> PollStatus:
        base = self._settings.JIMENG_BASE_URL.rstrip("/")
        resp = await self._request(
            "GET", f"{base}/api/v1/video/query",
            params={"task_id": handle.token},
            headers=self._auth_header(),
        )
        resp.raise_for_status()
        data = resp.json()

        status = data.get("status")
        if status == "completed":
            url = data.get("video_url")
            if not url:
                return PollStatus.failed("Jimeng task completed without a video URL")
            return PollStatus.succeeded(url)
        if status == "failed":
            return PollStatus.failed(f"Jimeng task failed: {data.get('message', 'unknown')}")
        return PollStatus.pending()
