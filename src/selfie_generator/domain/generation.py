"""Domain models for AI generation jobs."""

from dataclasses import dataclass

from selfie_generator.domain.sessions import GenerationStatus

_QUEUE_STATUSES = {
    "IN_QUEUE": GenerationStatus.IN_PROGRESS,
    "IN_PROGRESS": GenerationStatus.IN_PROGRESS,
    "COMPLETED": GenerationStatus.COMPLETED,
    "SUCCEEDED": GenerationStatus.COMPLETED,
    "FAILED": GenerationStatus.FAILED,
    "ERROR": GenerationStatus.FAILED,
    "CANCELED": GenerationStatus.FAILED,
    "CANCELLED": GenerationStatus.FAILED,
}


@dataclass(frozen=True)
class GenerationPoll:
    """Result of polling a generation job."""

    status: GenerationStatus
    result_url: str | None = None


def map_queue_status(raw: str | None) -> GenerationStatus:
    """Map a provider queue status onto the session generation status."""
    return _QUEUE_STATUSES.get((raw or "").upper(), GenerationStatus.IN_PROGRESS)
