"""Mock providers used when USE_MOCK_API is enabled.

They register under the real provider ids so the whole queue → poll →
propagate path runs without credentials or network access.
"""

from __future__ import annotations

from shotgen.services.jobs import GenerationParams
from shotgen.services.providers.base import (
    AsyncTaskProvider,
    PollHandle,
    PollStatus,
    Result,
    SynchronousProvider,
)

_PLACEHOLDER_PNG = (
    b'\x89PNG\r\n\x1a\n'
    b'\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x02'
    b'\x00\x00\x00\x90wS\xde\x00\x00\x00\x0cIDATx'
    b'\x9cc\xf8\x0f\x00\x00\x01\x01\x00\x05\x18\xd8N'
    b'\x00\x00\x00\x00IEND\xaeB`\x82'
)


class MockImageProvider(SynchronousProvider):
    media = "image"

    def __init__(self, provider_id: str, label: str = "") -> None:
        self.provider_id = provider_id
        self.label = label or f"{provider_id} (mock)"

    def is_configured(self) -> bool:
        return True

    async def generate(self, params: GenerationParams) -> Result:
        return Result.success(artifact_bytes=_PLACEHOLDER_PNG, mime_type="image/png")


class MockVideoProvider(AsyncTaskProvider):
    """Reports success after ``polls_until_done`` status checks."""

    media = "video"

    def __init__(self, provider_id: str, label: str = "", polls_until_done: int = 2) -> None:
        self.provider_id = provider_id
        self.label = label or f"{provider_id} (mock)"
        self._polls_until_done = polls_until_done
        self._polls: dict[str, int] = {}
        self._counter = 0

    def is_configured(self) -> bool:
        return True

    async def submit(self, params: GenerationParams) -> PollHandle:
        self._counter += 1
        token = f"mock-{self.provider_id}-{self._counter}"
        self._polls[token] = 0
        return PollHandle(self.provider_id, token)

    async def check_status(self, handle: PollHandle) -> PollStatus:
        self._polls[handle.token] = self._polls.get(handle.token, 0) + 1
        if self._polls[handle.token] < self._polls_until_done:
            return PollStatus.pending()
        self._polls.pop(handle.token, None)
        return PollStatus.succeeded(f"https://mock.invalid/videos/{handle.token}.mp4")
