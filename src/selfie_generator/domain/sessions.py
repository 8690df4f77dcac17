"""Domain models for time-boxed generation sessions."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from uuid import UUID


class PaymentStatus(StrEnum):
    """Payment state of a session."""

    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not PaymentStatus.PENDING


class GenerationStatus(StrEnum):
    """Progress of the AI generation job for a session."""

    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class DeletionStatus(StrEnum):
    """Processing state of an erasure request."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


@dataclass(frozen=True)
class ConsentChoices:
    """Consent flags as submitted by the user; None means not provided."""

    data_consent: bool | None
    cookie_consent: bool | None
    marketing_consent: bool = False


@dataclass(frozen=True)
class ClientContext:
    """Request metadata kept for security purposes only."""

    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True)
class UploadReference:
    """Pointer to the stored original image."""

    path: str
    filename: str
    content_type: str
    size_bytes: int


@dataclass(frozen=True)
class ProcessingLogEntry:
    """A single GDPR Article 30 processing record."""

    action: str
    purpose: str
    legal_basis: str
    data_types: tuple[str, ...]
    timestamp: datetime


@dataclass(frozen=True)
class SessionRecord:
    """Represents a persisted generation session."""

    id: UUID
    data_consent: bool
    cookie_consent: bool
    marketing_consent: bool
    payment_status: PaymentStatus
    checkout_id: str | None
    generation_status: GenerationStatus
    generation_job_id: str | None
    generated_image_path: str | None
    upload: UploadReference | None
    created_at: datetime
    expires_at: datetime
    processing_log: tuple[ProcessingLogEntry, ...] = ()

    def is_active(self, now: datetime) -> bool:
        """Return true while the retention window is open."""
        return now < self.expires_at

    def blob_paths(self) -> list[str]:
        """Return every stored blob that belongs to this session."""
        paths = []
        if self.upload is not None:
            paths.append(self.upload.path)
        if self.generated_image_path:
            paths.append(self.generated_image_path)
        return paths


@dataclass(frozen=True)
class DeletionRequest:
    """Audit record of an erasure request."""

    id: UUID
    session_id: UUID
    status: DeletionStatus
    reason: str | None
    requested_at: datetime
    processed_at: datetime | None
