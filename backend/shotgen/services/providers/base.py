"""Provider adapter contracts and the normalized result types.

Two capability shapes exist:

- ``SynchronousProvider``: one request, the response carries the artifact.
- ``AsyncTaskProvider``: submit returns a handle, completion is discovered by
  polling ``check_status`` (see ``shotgen.services.lro_poller``).

Adapters own credential resolution, request bodies and response parsing;
nothing above this layer sees a backend-specific shape.
"""

from __future__ import annotations

import base64
import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

from shotgen.services.jobs import GenerationParams


@dataclass(frozen=True)
class Result:
    """Provider-normalized generation outcome."""
    ok: bool
    artifact_url: str | None = None
    artifact_bytes: bytes | None = None
    mime_type: str | None = None
    reason: str | None = None

    @classmethod
    def success(
        cls,
        *,
        artifact_url: str | None = None,
        artifact_bytes: bytes | None = None,
        mime_type: str = "image/png",
    ) -> Result:
        if artifact_url is None and artifact_bytes is None:
            raise ValueError("A successful result needs an artifact URL or bytes")
        return cls(
            ok=True,
            artifact_url=artifact_url,
            artifact_bytes=artifact_bytes,
            mime_type=mime_type if artifact_bytes is not None else None,
        )

    @classmethod
    def failure(cls, reason: str) -> Result:
        return cls(ok=False, reason=reason or "Unknown error")

    @property
    def artifact_ref(self) -> str | None:
        """URL of the artifact; raw bytes are inlined as a data URL."""
        if self.artifact_url is not None:
            return self.artifact_url
        if self.artifact_bytes is not None:
            encoded = base64.b64encode(self.artifact_bytes).decode("ascii")
            return f"data:{self.mime_type};base64,{encoded}"
        return None


@dataclass(frozen=True)
class PollHandle:
    """Opaque provider-issued token (operation name or task id)."""
    provider_id: str
    token: str


class PollState(str, enum.Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class PollStatus:
    state: PollState
    artifact_ref: str | None = None
    reason: str | None = None

    @classmethod
    def pending(cls) -> PollStatus:
        return cls(PollState.PENDING)

    @classmethod
    def succeeded(cls, artifact_ref: str) -> PollStatus:
        return cls(PollState.SUCCEEDED, artifact_ref=artifact_ref)

    @classmethod
    def failed(cls, reason: str) -> PollStatus:
        return cls(PollState.FAILED, reason=reason)


class Provider(ABC):
    """Common adapter surface."""

    provider_id: str = "unknown"
    label: str = ""
    media: str = "image"   # "image" or "video"

    @abstractmethod
    def is_configured(self) -> bool:
        """True when the credentials this adapter needs are present."""
        ...


class SynchronousProvider(Provider):
    """Backend that returns the artifact in the submission response."""

    @abstractmethod
    async def generate(self, params: GenerationParams) -> Result:
        ...


class AsyncTaskProvider(Provider):
    """Backend with a submit-then-poll protocol."""

    @abstractmethod
    async def submit(self, params: GenerationParams) -> PollHandle:
        ...

    @abstractmethod
    async def check_status(self, handle: PollHandle) -> PollStatus:
        ...


class HttpProviderMixin:
    """Shared httpx client handling for HTTP-based adapters.

    A client passed in by the caller is reused and never closed here;
    otherwise a per-call client is opened and closed around each request.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
    ) -> None:
        self._http_client = http_client
        self._timeout = timeout

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        client = self._http_client or httpx.AsyncClient(timeout=self._timeout)
        own_client = self._http_client is None
        try:
            return await client.request(method, url, **kwargs)
        finally:
            if own_client:
                await client.aclose()


def strip_data_url(image: str) -> str:
    """Return raw base64 from a ``data:image/...;base64,`` URL (or as-is)."""
    if image.startswith("data:") and "," in image:
        return image.split(",", 1)[1]
    return image


def error_excerpt(response: httpx.Response, limit: int = 300) -> str:
    """Short description of a non-2xx response for error messages."""
    body = response.text.strip()
    if len(body) > limit:
        body = body[:limit] + "..."
    return f"HTTP {response.status_code}: {body}" if body else f"HTTP {response.status_code}"
