"""Error taxonomy for the generation job core."""

from __future__ import annotations


class GenerationError(Exception):
    """Base class for all job-core errors."""


class ConfigurationError(GenerationError):
    """A required credential or collaborator is missing. Never retried."""


class UnknownProviderError(ConfigurationError):
    """No adapter is registered under the requested provider id."""

    def __init__(self, provider_id: str) -> None:
        super().__init__(f"Unknown provider: {provider_id}")
        self.provider_id = provider_id


class ProviderError(GenerationError):
    """The backend rejected the request or returned a malformed response."""

    def __init__(self, provider_id: str, message: str) -> None:
        super().__init__(f"{provider_id}: {message}")
        self.provider_id = provider_id


class PollTimeoutError(GenerationError):
    """An async task never reached a terminal state within the poll budget."""

    def __init__(self, attempts: int, interval: float) -> None:
        super().__init__(
            f"Generation timed out after {attempts} status checks "
            f"({attempts * interval:.0f}s)"
        )
        self.attempts = attempts


class PersistenceError(GenerationError):
    """Writing a job outcome to its target entity failed."""


class InvalidTransitionError(GenerationError):
    """A job status change that would break the monotonic state machine."""
