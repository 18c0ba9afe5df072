"""In-memory job model and target-entity descriptors.

A Job lives only inside the JobQueue; the only trace that survives a restart
is the outcome written into its target entity.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from shotgen.services.errors import InvalidTransitionError


class JobStatus(str, enum.Enum):
    """Job lifecycle statuses."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


# Allowed forward moves; terminal states have none.
_TRANSITIONS: dict[JobStatus, tuple[JobStatus, ...]] = {
    JobStatus.PENDING: (JobStatus.PROCESSING,),
    JobStatus.PROCESSING: (JobStatus.COMPLETED, JobStatus.FAILED),
    JobStatus.COMPLETED: (),
    JobStatus.FAILED: (),
}


@dataclass(frozen=True)
class TargetKind:
    """Where a kind of entity stores generation outcomes."""
    name: str
    table: str
    artifact_field: str
    status_field: str
    error_field: str
    job_prefix: str = "job"
    processing_status: str | None = None   # written when a job starts, if set

    def success_fields(self, artifact_ref: str) -> dict[str, Any]:
        return {
            self.artifact_field: artifact_ref,
            self.status_field: JobStatus.COMPLETED.value,
            self.error_field: None,
        }

    def failure_fields(self, reason: str) -> dict[str, Any]:
        return {
            self.status_field: JobStatus.FAILED.value,
            self.error_field: reason,
        }

    def processing_fields(self) -> dict[str, Any] | None:
        if self.processing_status is None:
            return None
        return {self.status_field: self.processing_status}

    @property
    def columns(self) -> tuple[str, ...]:
        return (self.artifact_field, self.status_field, self.error_field)


SHOT_VIDEO = TargetKind(
    name="shot_video",
    table="shots",
    artifact_field="video_url",
    status_field="video_status",
    error_field="video_error",
    job_prefix="job",
    processing_status="generating",
)

CHARACTER_IMAGE = TargetKind(
    name="character_image",
    table="character_image_variants",
    artifact_field="image_url",
    status_field="status",
    error_field="error_message",
    job_prefix="char_img",
    processing_status="generating",
)

TARGET_KINDS: dict[str, TargetKind] = {
    SHOT_VIDEO.name: SHOT_VIDEO,
    CHARACTER_IMAGE.name: CHARACTER_IMAGE,
}


@dataclass(frozen=True)
class TargetRef:
    """Identifies the persisted entity a job writes into."""
    kind: TargetKind
    id: str
    owner_id: str | None = None

    def __str__(self) -> str:
        return f"{self.kind.name}:{self.id}"


@dataclass
class GenerationParams:
    """Provider-agnostic generation inputs."""
    prompt: str
    image_base64: str | None = None    # source frame for image-to-video
    duration: int = 5
    model: str | None = None           # overrides the provider's default model
    extra: dict[str, Any] = field(default_factory=dict)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Job:
    """A single generation request moving through the queue."""
    target: TargetRef
    provider_id: str
    parameters: GenerationParams
    id: str = ""
    status: JobStatus = JobStatus.PENDING
    error: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.id:
            self.id = f"{self.target.kind.job_prefix}_{uuid.uuid4().hex}"

    def transition(self, status: JobStatus, error: str | None = None) -> None:
        """Move to ``status``; only pending → processing → terminal is allowed."""
        if status not in _TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Job {self.id}: {self.status.value} -> {status.value} not allowed"
            )
        self.status = status
        if status is JobStatus.PROCESSING:
            self.started_at = _utcnow()
        else:
            self.finished_at = _utcnow()
            self.error = error

    def snapshot(self) -> JobSnapshot:
        return JobSnapshot(
            id=self.id,
            target_kind=self.target.kind.name,
            target_id=self.target.id,
            owner_id=self.target.owner_id,
            provider_id=self.provider_id,
            status=self.status,
            created_at=self.created_at,
        )


@dataclass(frozen=True)
class JobSnapshot:
    """Read-only view of a job handed out by the status projection."""
    id: str
    target_kind: str
    target_id: str
    owner_id: str | None
    provider_id: str
    status: JobStatus
    created_at: datetime
