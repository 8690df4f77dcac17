"""Session lifecycle: consent, payment state, retention and erasure."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from typing import Protocol
from uuid import UUID

from selfie_generator.domain.sessions import (
    ClientContext,
    ConsentChoices,
    DeletionRequest,
    GenerationStatus,
    PaymentStatus,
    ProcessingLogEntry,
    SessionRecord,
    UploadReference,
)
from selfie_generator.errors import NotFoundError, ValidationError
from selfie_generator.services.storage import BlobStore

_logger = logging.getLogger(__name__)

RECENT_ACTIVITY_LIMIT = 10


class SessionRepository(Protocol):
    """Persistence interface for generation sessions."""

    def create_session(
        self,
        consent: ConsentChoices,
        client: ClientContext,
        created_at: datetime,
        expires_at: datetime,
    ) -> SessionRecord:
        """Create a new session and return it."""

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        """Return a session by id regardless of expiry, if present."""

    def get_active_session(
        self, session_id: UUID, now: datetime
    ) -> SessionRecord | None:
        """Return a session by id only if it expires after ``now``."""

    def attach_upload(self, session_id: UUID, upload: UploadReference) -> None:
        """Store the upload reference on a session."""

    def update_payment(
        self,
        session_id: UUID,
        checkout_id: str | None,
        status: PaymentStatus,
        expires_at: datetime | None,
    ) -> bool:
        """Update payment fields while the session is still PENDING.

        Returns false when no PENDING row matched.
        """

    def update_generation(  # noqa: PLR0913
        self,
        session_id: UUID,
        status: GenerationStatus,
        expected: GenerationStatus | None = None,
        job_id: str | None = None,
        image_path: str | None = None,
    ) -> bool:
        """Update generation fields, optionally only from an expected status."""

    def delete_session(self, session_id: UUID) -> bool:
        """Delete a session row; returns false if it was already gone."""

    def list_expired_session_ids(self, now: datetime) -> list[UUID]:
        """Return ids of sessions whose expiry is before ``now``."""


class ProcessingLogRepository(Protocol):
    """Persistence interface for processing-log entries."""

    def append(self, session_id: UUID, entry: ProcessingLogEntry) -> None:
        """Append a processing-log entry for a session."""

    def list_entries(
        self, session_id: UUID, limit: int | None = None
    ) -> list[ProcessingLogEntry]:
        """Return entries for a session, newest first."""


class DeletionRequestRepository(Protocol):
    """Persistence interface for erasure requests."""

    def create_request(
        self, session_id: UUID, reason: str | None, requested_at: datetime
    ) -> DeletionRequest:
        """Record a PENDING deletion request."""

    def get_request(self, request_id: UUID) -> DeletionRequest | None:
        """Return a deletion request by id, if present."""

    def complete_pending(self, session_id: UUID, processed_at: datetime) -> int:
        """Mark PENDING requests for a session COMPLETED; return how many."""


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class SessionService:
    """Lifecycle manager for time-boxed generation sessions."""

    session_repository: SessionRepository
    log_repository: ProcessingLogRepository
    deletion_repository: DeletionRequestRepository
    blob_store: BlobStore
    retention: timedelta = timedelta(hours=24)
    clock: Callable[[], datetime] = field(default=_utcnow)

    def create(
        self,
        consent: ConsentChoices,
        client: ClientContext | None = None,
        upload: UploadReference | None = None,
    ) -> SessionRecord:
        """Create a session that expires after the retention window."""
        if consent.data_consent is None:
            raise ValidationError("Data processing consent is required")
        if consent.cookie_consent is None:
            raise ValidationError("Cookie consent is required")
        now = self.clock()
        session = self.session_repository.create_session(
            consent=consent,
            client=client or ClientContext(),
            created_at=now,
            expires_at=now + self.retention,
        )
        self.log_processing(
            session.id,
            action="session_created",
            purpose="user_session_management",
            legal_basis="consent",
            data_types=("session_data", "consent_preferences"),
        )
        if upload is not None:
            self.attach_upload(session.id, upload)
            session = replace(session, upload=upload)
        return session

    def get_active(self, session_id: UUID) -> SessionRecord:
        """Return an unexpired session with its recent processing activity."""
        session = self.session_repository.get_active_session(session_id, self.clock())
        if session is None:
            raise NotFoundError("Session not found or expired")
        recent = self.log_repository.list_entries(
            session_id, limit=RECENT_ACTIVITY_LIMIT
        )
        return replace(session, processing_log=tuple(recent))

    def processing_history(self, session_id: UUID) -> list[ProcessingLogEntry]:
        """Return every processing record of an active session, newest first."""
        self.get_active(session_id)
        return self.log_repository.list_entries(session_id)

    def require_processing_consent(self, session: SessionRecord) -> None:
        """Refuse payment or processing without data-processing consent."""
        if not session.data_consent:
            raise ValidationError("Data consent required for processing")

    def attach_upload(self, session_id: UUID, upload: UploadReference) -> None:
        """Record the stored original image on a session."""
        self.session_repository.attach_upload(session_id, upload)
        self.log_processing(
            session_id,
            action="image_uploaded",
            purpose="image_generation",
            legal_basis="consent",
            data_types=("image_data",),
        )

    def update_payment_status(
        self, session_id: UUID, external_ref: str | None, status: PaymentStatus
    ) -> SessionRecord:
        """Apply a payment status change; PAID extends the retention window.

        PAID and FAILED are terminal. Repeating the current terminal status is a
        no-op, so duplicate webhook deliveries leave the session unchanged.
        """
        session = self.session_repository.get_active_session(session_id, self.clock())
        if session is None:
            raise NotFoundError("Session not found or expired")
        if session.payment_status.is_terminal:
            if session.payment_status is not status:
                _logger.warning(
                    "Ignoring payment transition from terminal status",
                    extra={
                        "session_id": str(session_id),
                        "current": session.payment_status.value,
                        "requested": status.value,
                    },
                )
            return session

        expires_at = None
        if status is PaymentStatus.PAID:
            expires_at = self.clock() + self.retention
        updated = self.session_repository.update_payment(
            session_id,
            checkout_id=external_ref,
            status=status,
            expires_at=expires_at,
        )
        if updated:
            self.log_processing(
                session_id,
                action="payment_processed",
                purpose="payment_processing",
                legal_basis="contract",
                data_types=("payment_info", "session_data"),
            )
        refreshed = self.session_repository.get_session(session_id)
        if refreshed is None:
            raise NotFoundError("Session not found or expired")
        return refreshed

    def update_generation(  # noqa: PLR0913
        self,
        session_id: UUID,
        status: GenerationStatus,
        expected: GenerationStatus | None = None,
        job_id: str | None = None,
        image_path: str | None = None,
    ) -> bool:
        """Record generation progress; ``expected`` guards concurrent claims."""
        return self.session_repository.update_generation(
            session_id,
            status=status,
            expected=expected,
            job_id=job_id,
            image_path=image_path,
        )

    def log_processing(
        self,
        session_id: UUID,
        action: str,
        purpose: str,
        legal_basis: str,
        data_types: tuple[str, ...],
    ) -> None:
        """Append a processing record for GDPR transparency."""
        self.log_repository.append(
            session_id,
            ProcessingLogEntry(
                action=action,
                purpose=purpose,
                legal_basis=legal_basis,
                data_types=data_types,
                timestamp=self.clock(),
            ),
        )

    def request_deletion(
        self, session_id: UUID, reason: str | None = None
    ) -> DeletionRequest:
        """Record an erasure request and execute it immediately."""
        self.get_active(session_id)
        request = self.deletion_repository.create_request(
            session_id, reason=reason, requested_at=self.clock()
        )
        try:
            self.log_processing(
                session_id,
                action="deletion_requested",
                purpose="gdpr_compliance",
                legal_basis="legal_obligation",
                data_types=("all_session_data",),
            )
        except Exception:
            # A concurrent erasure may have removed the session row already.
            _logger.warning(
                "Could not log deletion request",
                exc_info=True,
                extra={"session_id": str(session_id)},
            )
        self.execute_deletion(session_id)
        return self.deletion_repository.get_request(request.id) or request

    def get_deletion_request(self, request_id: UUID) -> DeletionRequest:
        """Return a deletion request for status lookups."""
        request = self.deletion_repository.get_request(request_id)
        if request is None:
            raise NotFoundError("Deletion request not found")
        return request

    def execute_deletion(self, session_id: UUID) -> bool:
        """Delete a session, its logs and blobs.

        Returns false when there was nothing to delete. Safe to call
        concurrently with the sweeper.
        """
        session = self.session_repository.get_session(session_id)
        deleted = False
        if session is not None:
            for path in session.blob_paths():
                try:
                    self.blob_store.remove([path])
                except Exception:
                    _logger.warning(
                        "Blob deletion failed",
                        exc_info=True,
                        extra={"session_id": str(session_id), "path": path},
                    )
            deleted = self.session_repository.delete_session(session_id)
        self.deletion_repository.complete_pending(session_id, processed_at=self.clock())
        if not deleted:
            _logger.info(
                "Nothing to delete for session", extra={"session_id": str(session_id)}
            )
        return deleted

    def cleanup_expired(self) -> int:
        """Delete every expired session and return how many were processed."""
        expired = self.session_repository.list_expired_session_ids(self.clock())
        _logger.info("GDPR cleanup: found %s expired sessions", len(expired))
        for session_id in expired:
            self.execute_deletion(session_id)
        return len(expired)
