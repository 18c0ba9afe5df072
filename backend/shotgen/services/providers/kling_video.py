"""Kling image-to-video provider.

Task pattern:
1. POST /v1/videos/image2video → data.task_id
2. GET  /v1/videos/image2video/{taskId} → data.task_status (submitted/processing/succeed/failed)
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


class KlingVideoProvider(HttpProviderMixin, AsyncTaskProvider):

    provider_id = "kling"
    label = "Kling"
    media = "video"

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None) -> None:
        super().__init__(http_client, timeout=settings.HTTP_TIMEOUT)
        self._settings = settings

    def is_configured(self) -> bool:
        return bool(self._settings.KLING_ACCESS_KEY and self._settings.KLING_SECRET_KEY)

    def _headers(self) -> dict[str, str]:
        if not self.is_configured():
            raise ConfigurationError(
                "Kling API keys not configured. Set KLING_ACCESS_KEY and KLING_SECRET_KEY."
            )
        return {
            "Authorization": f"Bearer {self._settings.KLING_ACCESS_KEY}",
            "Content-Type": "application/json",
        }

    @property
    def _endpoint(self) -> str:
        return f"{self._settings.KLING_BASE_URL.rstrip('/')}/v1/videos/image2video"

    async def submit(self, params: GenerationParams) -> PollHandle:
        headers = self._headers()
        body = {
            "model_name": params.model or self._settings.KLING_MODEL,
            "prompt": params.prompt,
            "duration": str(params.duration),
            "mode": params.extra.get("mode", "std"),
            "cfg_scale": params.extra.get("cfg_scale", 0.5),
        }
        if params.image_base64:
            body["image"] = f"data:image/png;base64,{strip_data_url(params.image_base64)}"

        resp = await self._request("POST", self._endpoint, json=body, headers=headers)
        if resp.is_error:
            raise ProviderError(self.provider_id, f"Kling API error: {error_excerpt(resp)}")

        data = resp.json()
        if data.get("code", 0) != 0:
            raise ProviderError(
                self.provider_id,
                f"Kling task creation failed: {data.get('message', 'unknown error')}",
            )
        task_id = (data.get("data") or {}).get("task_id")
        if not task_id:
            raise ProviderError(self.provider_id, "Unexpected Kling response: no task_id")

        logger.info("Kling task created: %s (model=%s)", task_id, body["model_name"])
        return PollHandle(self.provider_id, task_id)

    async def check_status(self, handle: PollHandle) -> PollStatus:
        headers = self._headers()
        resp = await self._request("GET", f"{self._endpoint}/{handle.token}", headers=headers)
        resp.raise_for_status()
        data = resp.json()

        if data.get("code", 0) != 0:
            logger.warning("Kling poll error for %s: %s", handle.token, data.get("message"))
            return PollStatus.pending()

        task = data.get("data") or {}
        status = task.get("task_status")
        if status == "succeed":
            videos = (task.get("task_result") or {}).get("videos") or [{}]
            url = videos[0].get("url")
            if not url:
                return PollStatus.failed("Kling task succeeded but returned no video URL")
            return PollStatus.succeeded(url)
        if status == "failed":
            return PollStatus.failed(f"Kling task failed: {task.get('task_status_msg', 'unknown')}")

        logger.debug("Kling task %s: %s", handle.token, status)
        return PollStatus.pending()
