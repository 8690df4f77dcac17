"""Supabase repository for erasure requests."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from selfie_generator.domain.sessions import DeletionRequest, DeletionStatus
from selfie_generator.services.sessions import DeletionRequestRepository

_COLUMNS = "id, session_id, status, reason, requested_at, processed_at"


@dataclass
class SupabaseDeletionRequestRepository(DeletionRequestRepository):
    """Supabase-backed deletion request repository."""

    client: Client

    def create_request(
        self, session_id: UUID, reason: str | None, requested_at: datetime
    ) -> DeletionRequest:
        """Insert a PENDING deletion request row."""
        response = (
            self.client.table("deletion_requests")
            .insert(
                {
                    "session_id": str(session_id),
                    "status": DeletionStatus.PENDING.value,
                    "reason": reason,
                    "requested_at": requested_at.isoformat(),
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create deletion request")
        return _parse_row(response.data[0])

    def get_request(self, request_id: UUID) -> DeletionRequest | None:
        """Return a deletion request by id."""
        response = (
            self.client.table("deletion_requests")
            .select(_COLUMNS)
            .eq("id", str(request_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_row(response.data[0])

    def complete_pending(self, session_id: UUID, processed_at: datetime) -> int:
        """Mark the session's PENDING requests as COMPLETED."""
        response = (
            self.client.table("deletion_requests")
            .update(
                {
                    "status": DeletionStatus.COMPLETED.value,
                    "processed_at": processed_at.isoformat(),
                }
            )
            .eq("session_id", str(session_id))
            .eq("status", DeletionStatus.PENDING.value)
            .execute()
        )
        return len(response.data or [])


def _parse_row(row: dict[str, object]) -> DeletionRequest:
    raw_processed = row.get("processed_at")
    processed_at = datetime.fromisoformat(str(raw_processed)) if raw_processed else None
    return DeletionRequest(
        id=UUID(str(row["id"])),
        session_id=UUID(str(row["session_id"])),
        status=DeletionStatus(row["status"]),
        reason=row.get("reason"),
        requested_at=datetime.fromisoformat(str(row["requested_at"])),
        processed_at=processed_at,
    )
