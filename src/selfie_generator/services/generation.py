"""AI generation job submission and polling."""

import logging
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from selfie_generator.domain.generation import GenerationPoll
from selfie_generator.domain.sessions import (
    GenerationStatus,
    PaymentStatus,
    SessionRecord,
)
from selfie_generator.errors import NotFoundError, ValidationError
from selfie_generator.services.retry import RetryPolicy
from selfie_generator.services.sessions import SessionService
from selfie_generator.services.storage import BlobStore, generated_path

_logger = logging.getLogger(__name__)

GENERATED_CONTENT_TYPE = "image/jpeg"


class GenerationClient(Protocol):
    """Interface for the image generation provider."""

    async def submit(
        self, session_id: UUID, image_bytes: bytes, content_type: str
    ) -> str:
        """Submit a generation job and return its id."""

    async def poll_status(self, job_id: str) -> GenerationPoll:
        """Return the current status of a job."""

    async def download(self, result_url: str) -> bytes:
        """Download a generated image."""


@dataclass
class GenerationService:
    """Runs generation for paid sessions and stores the results."""

    client: GenerationClient
    session_service: SessionService
    blob_store: BlobStore
    retry_policy: RetryPolicy

    async def start(self, session_id: UUID) -> SessionRecord:
        """Submit the session's upload once payment has been received."""
        session = self.session_service.get_active(session_id)
        self.session_service.require_processing_consent(session)
        if session.payment_status is not PaymentStatus.PAID:
            raise ValidationError("Payment required before generation")
        if session.upload is None:
            raise ValidationError("No uploaded image for this session")
        claimed = self.session_service.update_generation(
            session_id,
            GenerationStatus.IN_PROGRESS,
            expected=GenerationStatus.NOT_STARTED,
        )
        if not claimed:
            return session

        self.session_service.log_processing(
            session_id,
            action="ai_generation_started",
            purpose="image_generation",
            legal_basis="contract",
            data_types=("image_data",),
        )
        upload = session.upload
        try:
            image_bytes = self.blob_store.download(upload.path)
            job_id = await self.retry_policy.call(
                lambda: self.client.submit(
                    session_id, image_bytes, upload.content_type
                ),
                action="submit_generation",
            )
        except Exception:
            _logger.exception(
                "Generation submission failed", extra={"session_id": str(session_id)}
            )
            self._mark_failed(session_id)
            raise

        self.session_service.update_generation(
            session_id, GenerationStatus.IN_PROGRESS, job_id=job_id
        )
        self.session_service.log_processing(
            session_id,
            action="ai_job_submitted",
            purpose="image_generation",
            legal_basis="contract",
            data_types=("processed_image_data",),
        )
        return self.session_service.get_active(session_id)

    async def refresh(self, session_id: UUID) -> SessionRecord:
        """Poll an in-flight job and store the result once it completes."""
        session = self.session_service.get_active(session_id)
        job_id = session.generation_job_id
        if session.generation_status is not GenerationStatus.IN_PROGRESS or not job_id:
            return session

        poll = await self.retry_policy.call(
            lambda: self.client.poll_status(job_id),
            action="poll_generation",
        )
        if poll.status is GenerationStatus.COMPLETED and poll.result_url:
            await self._store_result(session_id, poll.result_url)
        elif poll.status in {GenerationStatus.COMPLETED, GenerationStatus.FAILED}:
            _logger.warning(
                "Generation job failed",
                extra={"session_id": str(session_id), "job_id": job_id},
            )
            self._mark_failed(session_id)
        return self.session_service.get_active(session_id)

    def read_generated_image(self, session_id: UUID) -> bytes:
        """Return the stored generated image of an active session."""
        session = self.session_service.get_active(session_id)
        if (
            session.generation_status is not GenerationStatus.COMPLETED
            or not session.generated_image_path
        ):
            raise NotFoundError("Generated image not available")
        return self.blob_store.download(session.generated_image_path)

    async def _store_result(self, session_id: UUID, result_url: str) -> None:
        image_bytes = await self.retry_policy.call(
            lambda: self.client.download(result_url),
            action="download_generation",
        )
        path = generated_path(session_id)
        self.blob_store.upload(path, image_bytes, GENERATED_CONTENT_TYPE)
        stored = self.session_service.update_generation(
            session_id,
            GenerationStatus.COMPLETED,
            expected=GenerationStatus.IN_PROGRESS,
            image_path=path,
        )
        if stored:
            self.session_service.log_processing(
                session_id,
                action="ai_generation_completed",
                purpose="image_delivery",
                legal_basis="contract",
                data_types=("generated_image_data",),
            )

    def _mark_failed(self, session_id: UUID) -> None:
        self.session_service.update_generation(session_id, GenerationStatus.FAILED)
        self.session_service.log_processing(
            session_id,
            action="ai_generation_failed",
            purpose="error_tracking",
            legal_basis="legitimate_interest",
            data_types=("error_data",),
        )
